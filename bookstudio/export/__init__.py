"""Export functionality for book projects."""

from .exporter import BookExporter, ExportArtifact, ExportFormat, safe_filename

__all__ = ['BookExporter', 'ExportArtifact', 'ExportFormat', 'safe_filename']
