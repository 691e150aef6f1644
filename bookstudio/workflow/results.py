"""Result type returned by workflow operations."""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Any, Dict, List, Generic, TypeVar

from ..api.errors import (
    BackendError,
    InsufficientCreditsError,
    BackendTimeoutError,
    BackendConnectionError,
    InvalidResponseError
)


T = TypeVar('T')


class ErrorKind(str, Enum):
    PRECONDITION = "precondition"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    GENERATION = "generation"
    NETWORK = "network"
    TIMEOUT = "timeout"
    INVALID_RESPONSE = "invalid_response"
    STORAGE = "storage"


@dataclass
class OperationResult(Generic[T]):
    """Success payload or tagged error of a workflow operation."""

    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Optional[T] = None, message: str = "") -> 'OperationResult[T]':
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, error: ErrorKind, message: str, value: Optional[T] = None) -> 'OperationResult[T]':
        return cls(ok=False, value=value, error=error, message=message)

    @classmethod
    def precondition(cls, message: str) -> 'OperationResult[T]':
        return cls.failure(ErrorKind.PRECONDITION, message)

    @classmethod
    def from_error(cls, error: BackendError) -> 'OperationResult[T]':
        """Map a backend exception to a tagged failure."""
        return cls.failure(classify_error(error), error.message)


def classify_error(error: BackendError) -> ErrorKind:
    if isinstance(error, InsufficientCreditsError):
        return ErrorKind.INSUFFICIENT_CREDITS
    if isinstance(error, BackendTimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(error, BackendConnectionError):
        return ErrorKind.NETWORK
    if isinstance(error, InvalidResponseError):
        return ErrorKind.INVALID_RESPONSE
    return ErrorKind.GENERATION


@dataclass
class BatchReport:
    """Outcome of a bulk chapter generation run."""

    total_chapters: int
    generated: Dict[int, str] = field(default_factory=dict)
    failed: List[int] = field(default_factory=list)
    credits_used: int = 0
    remaining_credits: Optional[int] = None
    stopped_early: bool = False
    credit_error: Optional[str] = None

    @property
    def succeeded(self) -> int:
        return len(self.generated)

    @property
    def chapters_left(self) -> int:
        """Chapters still missing, counting the one that hit the credit limit."""
        return self.total_chapters - self.succeeded if self.stopped_early else 0

    def summary(self) -> str:
        text = (
            f"Successfully generated {self.succeeded} chapter(s). "
            f"Credits used: {self.credits_used}."
        )
        if self.remaining_credits is not None:
            text += f" Remaining credits: {self.remaining_credits}"
        return text
