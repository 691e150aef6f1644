"""JSON Lines record of the backend traffic of one CLI session."""
import json
import os
import traceback
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO, Any, Dict


class SessionLogger:
    """
    Appends one JSON object per line to logs/session_<start>.jsonl.

    Every line has the shape {"type": ..., "data": {...}} and data always
    carries an ISO timestamp. Events after close() are dropped.
    """

    def __init__(self, logs_dir: Optional[Path] = None):
        self.logs_dir = Path(logs_dir) if logs_dir else Path.home() / ".bookstudio" / "logs"
        self.logs_dir.mkdir(parents=True, exist_ok=True)

        self.session_start = datetime.now()
        self.log_file_path = self.logs_dir / f"session_{self.session_start:%Y%m%d_%H%M%S}.jsonl"
        self.log_file: Optional[TextIO] = open(self.log_file_path, 'a', encoding='utf-8', buffering=1)

        self._write_event("session_start", {
            "log_file": str(self.log_file_path),
            "cwd": str(Path.cwd()),
            "pid": os.getpid()
        })

    def log(self, message: str, level: str = "INFO", **metadata):
        self._write_event("log", {"level": level, "message": message, **metadata})

    def log_request(
        self,
        method: str,
        path: str,
        status: int,
        elapsed: float,
        payload: Optional[Dict[str, Any]] = None
    ):
        """Record a request that got an HTTP response (of any status)."""
        self._write_event("request", {
            "method": method,
            "path": path,
            "status": status,
            "elapsed": round(elapsed, 3),
            "payload": payload or {}
        })

    def log_request_error(
        self,
        method: str,
        path: str,
        error: Exception,
        payload: Optional[Dict[str, Any]] = None
    ):
        """Record a request that failed before or while reading the response."""
        self._write_event("request_error", {
            "method": method,
            "path": path,
            "error": str(error),
            "error_type": type(error).__name__,
            "payload": payload or {}
        })

    def log_error(self, error: Exception, context: str = ""):
        self._write_event("error", {
            "context": context,
            "error": str(error),
            "type": type(error).__name__,
            "traceback": traceback.format_exc()
        })

    def _write_event(self, event_type: str, data: Dict[str, Any]):
        if not self.log_file:
            return
        event = {"type": event_type, "data": {"timestamp": datetime.now().isoformat(), **data}}
        self.log_file.write(json.dumps(event, default=str) + '\n')

    def close(self):
        if not self.log_file:
            return
        self._write_event("session_end", {"duration": str(datetime.now() - self.session_start)})
        self.log_file.close()
        self.log_file = None


_session_logger: Optional[SessionLogger] = None


def get_session_logger() -> Optional[SessionLogger]:
    return _session_logger


def init_session_logger(logs_dir: Optional[Path] = None) -> SessionLogger:
    """Start a new session log, closing any previous one."""
    global _session_logger
    close_session_logger()
    _session_logger = SessionLogger(logs_dir)
    return _session_logger


def close_session_logger():
    global _session_logger
    if _session_logger:
        _session_logger.close()
        _session_logger = None
