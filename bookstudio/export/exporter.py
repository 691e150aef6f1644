"""Export of rendered books (HTML, PDF, DOCX) to local files."""

import re
from enum import Enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..api import BackendClient, Project
from ..config.constants import EXPORT_MEDIA_TYPES
from ..utils.logging import get_logger


class ExportFormat(str, Enum):
    HTML = "html"
    PDF = "pdf"
    DOCX = "docx"

    @property
    def media_type(self) -> str:
        return EXPORT_MEDIA_TYPES[self.value]

    def endpoint(self, project_id: str) -> str:
        """Backend path that renders this format."""
        if self == ExportFormat.HTML:
            return f"/export-book/{project_id}"
        return f"/export-book-{self.value}/{project_id}"


@dataclass
class ExportArtifact:
    """A fully downloaded export, ready to be written."""

    filename: str
    media_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def safe_filename(name: str) -> str:
    """Keep a title usable as a single path component."""
    cleaned = re.sub(r'[/\\\x00]', '-', name).strip()
    return cleaned or "book"


class BookExporter:
    """Requests rendered books from the backend and saves them locally."""

    def __init__(self, client: BackendClient):
        """
        Initialize exporter.

        Args:
            client: Backend client
        """
        self.client = client

    async def fetch(self, project: Project, fmt: ExportFormat) -> ExportArtifact:
        """
        Download the rendered book in one format.

        Args:
            project: Project to export
            fmt: Export format

        Returns:
            ExportArtifact with the complete content

        Raises:
            BackendError: If the backend call fails
        """
        fmt = ExportFormat(fmt)

        if fmt == ExportFormat.HTML:
            payload = await self.client.export_html(project.id)
            filename = payload.filename or f"{project.title}.html"
            content = payload.html.encode('utf-8')
        else:
            content = await self.client.get_raw(fmt.endpoint(project.id))
            filename = f"{project.title}.{fmt.value}"

        return ExportArtifact(
            filename=safe_filename(filename),
            media_type=fmt.media_type,
            content=content
        )

    def save(self, artifact: ExportArtifact, directory: Path, filename: Optional[str] = None) -> Path:
        """
        Write an artifact to disk.

        Args:
            artifact: Downloaded export
            directory: Target directory (created if missing)
            filename: Optional override of the artifact's filename

        Returns:
            Path of the written file
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        output_path = directory / safe_filename(filename or artifact.filename)
        output_path.write_bytes(artifact.content)

        get_logger("export").info(
            f"Exported {artifact.filename} ({artifact.media_type}, {artifact.size} bytes) to {output_path}"
        )
        return output_path

    async def export(self, project: Project, fmt: ExportFormat, directory: Path) -> Path:
        """Fetch and save in one step."""
        artifact = await self.fetch(project, fmt)
        return self.save(artifact, directory)
