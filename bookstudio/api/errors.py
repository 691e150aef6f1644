"""Exceptions raised by the backend client."""
from typing import Optional


class BackendError(Exception):
    """Base class for every failure talking to the backend."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class BackendHTTPError(BackendError):
    """Backend answered with an error status."""

    def __init__(self, status: int, detail: str):
        super().__init__(f"Backend returned {status}: {detail}", status=status)
        self.detail = detail


class InsufficientCreditsError(BackendHTTPError):
    """Backend refused a credit-consuming operation (HTTP 402)."""

    def __init__(self, detail: str):
        super().__init__(402, detail)
        self.message = detail


class BackendTimeoutError(BackendError):
    """Request exceeded the configured timeout."""


class BackendConnectionError(BackendError):
    """Transport level failure (DNS, refused connection, reset...)."""


class InvalidResponseError(BackendError):
    """Response body did not match the expected shape."""
