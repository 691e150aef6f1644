"""Tests for book export."""

from unittest.mock import MagicMock

import pytest

from bookstudio.api import BackendClient, Project, BackendHTTPError
from bookstudio.export import BookExporter, ExportFormat, ExportArtifact, safe_filename


class TestExportFormat:

    def test_media_types(self):
        assert ExportFormat.HTML.media_type == "text/html"
        assert ExportFormat.PDF.media_type == "application/pdf"
        assert ExportFormat.DOCX.media_type == (
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
        )

    def test_endpoints(self):
        assert ExportFormat.HTML.endpoint("p1") == "/export-book/p1"
        assert ExportFormat.PDF.endpoint("p1") == "/export-book-pdf/p1"
        assert ExportFormat.DOCX.endpoint("p1") == "/export-book-docx/p1"

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            ExportFormat("epub")


class TestSafeFilename:

    @pytest.mark.parametrize("name, expected", [
        ("My Book.pdf", "My Book.pdf"),
        ("Yes/No.html", "Yes-No.html"),
        ("a\\b", "a-b"),
        ("  ", "book"),
    ])
    def test_safe_filename(self, name, expected):
        assert safe_filename(name) == expected


class TestBookExporter:

    @pytest.fixture
    def project(self, project_factory):
        return Project.model_validate(project_factory())

    @pytest.mark.asyncio
    async def test_pdf_artifact(self, client, fake_backend, project):
        """Test the PDF export is named after the title."""
        fake_backend.add_project()

        artifact = await BookExporter(client).fetch(project, ExportFormat.PDF)

        assert artifact.filename == "My Book.pdf"
        assert artifact.media_type == "application/pdf"
        assert artifact.content == fake_backend.pdf_bytes
        assert artifact.size == len(fake_backend.pdf_bytes)

    @pytest.mark.asyncio
    async def test_docx_artifact(self, client, fake_backend, project):
        fake_backend.add_project()
        artifact = await BookExporter(client).fetch(project, "docx")
        assert artifact.filename == "My Book.docx"
        assert artifact.content == fake_backend.docx_bytes

    @pytest.mark.asyncio
    async def test_html_artifact(self, client, fake_backend, project):
        fake_backend.add_project()
        artifact = await BookExporter(client).fetch(project, ExportFormat.HTML)
        assert artifact.filename == "My Book.html"
        assert artifact.content.decode('utf-8').startswith("<html>")

    @pytest.mark.asyncio
    async def test_missing_project(self, client, project):
        with pytest.raises(BackendHTTPError):
            await BookExporter(client).fetch(project, ExportFormat.PDF)

    @pytest.mark.asyncio
    async def test_export_writes_file(self, client, fake_backend, project, temp_dir):
        fake_backend.add_project()
        path = await BookExporter(client).export(project, ExportFormat.PDF, temp_dir / "nested")
        assert path == temp_dir / "nested" / "My Book.pdf"
        assert path.read_bytes() == fake_backend.pdf_bytes

    def test_save_with_override(self, temp_dir):
        artifact = ExportArtifact(filename="Book.html", media_type="text/html", content=b"<html/>")
        path = BookExporter(MagicMock(spec=BackendClient)).save(artifact, temp_dir, filename="copy.html")
        assert path == temp_dir / "copy.html"
        assert path.read_bytes() == b"<html/>"
