"""BookStudio - terminal client for an AI book-writing backend."""

__version__ = "1.0.0"
__author__ = "BookStudio"

from .api import BackendClient, Project
from .workflow import WorkflowController

__all__ = [
    '__version__',
    'BackendClient',
    'Project',
    'WorkflowController'
]
