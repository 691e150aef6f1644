from .logging import setup_logging, get_logger, cleanup_old_logs
from .session_logger import SessionLogger, get_session_logger, init_session_logger, close_session_logger

__all__ = [
    'setup_logging', 'get_logger', 'cleanup_old_logs',
    'SessionLogger', 'get_session_logger', 'init_session_logger', 'close_session_logger'
]
