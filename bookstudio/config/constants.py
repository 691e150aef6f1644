"""Application constants and defaults."""
from pathlib import Path

# Backend Configuration
DEFAULT_BACKEND_URL = "http://localhost:8000"
DEFAULT_API_PREFIX = "/api"
REQUEST_TIMEOUT_SECONDS = 120  # Fixed upper bound for a single backend call

# Directory Structure
DEFAULT_EXPORTS_DIR = Path("./exports")
USER_CONFIG_DIRNAME = ".bookstudio"

# Credits
INSUFFICIENT_CREDITS_STATUS = 402
CREDIT_CACHE_TTL_SECONDS = 300

# Setup form
COST_DEBOUNCE_SECONDS = 0.5
DEFAULT_FORM = {
    'pages': 100,
    'chapters': 10,
    'language': 'English',
    'writing_style': 'story'
}

# Writing styles offered by the backend
WRITING_STYLES = {
    'story': 'Story',
    'descriptive': 'Descriptive',
    'academic': 'Academic',
    'technical': 'Technical',
    'biography': 'Biography',
    'self_help': 'Self-Help',
    'children': "Children's",
    'poetry': 'Poetry',
    'business': 'Business'
}

# Supported Export Formats
EXPORT_MEDIA_TYPES = {
    'html': 'text/html',
    'pdf': 'application/pdf',
    'docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
}

# Progress Messages
PROGRESS_MESSAGES = {
    'outline': 'Generating outline...',
    'chapter': 'Writing chapter {chapter}...',
    'export': 'Exporting to {format}...'
}
