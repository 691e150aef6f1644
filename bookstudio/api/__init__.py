from .client import BackendClient
from .models import (
    Project, ProjectForm, UserStats, BookCostEstimate,
    ChapterGeneration, HtmlExport, writing_style_display
)
from .errors import (
    BackendError, BackendHTTPError, InsufficientCreditsError,
    BackendTimeoutError, BackendConnectionError, InvalidResponseError
)
from .auth import resolve_api_token

__all__ = [
    'BackendClient',
    'Project', 'ProjectForm', 'UserStats', 'BookCostEstimate',
    'ChapterGeneration', 'HtmlExport', 'writing_style_display',
    'BackendError', 'BackendHTTPError', 'InsufficientCreditsError',
    'BackendTimeoutError', 'BackendConnectionError', 'InvalidResponseError',
    'resolve_api_token'
]
