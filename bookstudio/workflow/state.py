"""State machine and in-memory state of the writing workflow."""

from enum import Enum, IntEnum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict


class View(str, Enum):
    """Top-level screens."""

    DASHBOARD = "dashboard"
    WRITING = "writing"


class WorkflowStep(IntEnum):
    """Steps of the writing workflow, in order of progression."""

    SETUP = 1              # Project form
    OUTLINE_PENDING = 2    # Project exists, no outline yet
    OUTLINE_REVIEW = 3     # Outline generated, can be edited or regenerated
    WRITING = 4            # Chapter editing

    @classmethod
    def entry_for(cls, has_outline: bool) -> 'WorkflowStep':
        """Step to open an existing project at."""
        return cls.OUTLINE_REVIEW if has_outline else cls.OUTLINE_PENDING

    @property
    def label(self) -> str:
        return {
            WorkflowStep.SETUP: "Setup",
            WorkflowStep.OUTLINE_PENDING: "Details",
            WorkflowStep.OUTLINE_REVIEW: "Outline",
            WorkflowStep.WRITING: "Writing",
        }[self]


class ChapterState(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class ChapterStatus:
    """Progress of one chapter during bulk generation."""

    status: ChapterState = ChapterState.PENDING
    progress: int = 0

    @classmethod
    def generating(cls) -> 'ChapterStatus':
        return cls(ChapterState.GENERATING, 0)

    @classmethod
    def completed(cls) -> 'ChapterStatus':
        return cls(ChapterState.COMPLETED, 100)

    @classmethod
    def error(cls) -> 'ChapterStatus':
        return cls(ChapterState.ERROR, 0)


ChapterProgress = Dict[int, ChapterStatus]


def count_completed(progress: ChapterProgress) -> int:
    """Number of chapters marked completed."""
    return sum(1 for s in progress.values() if s.status == ChapterState.COMPLETED)


class BalanceSource(str, Enum):
    FETCH = "fetch"        # Read from /credits/balance or /user/stats
    RESPONSE = "response"  # remaining_credits of a generation response


@dataclass
class CreditState:
    """
    Locally cached credit balance.

    The cache is advisory: it gates bulk generation without contacting the
    backend, but only a fresh fetch is authoritative.
    """

    cached_balance: Optional[int] = None
    updated_at: Optional[datetime] = None
    source: Optional[BalanceSource] = None
    ttl_seconds: int = 300

    @property
    def is_known(self) -> bool:
        return self.cached_balance is not None

    @property
    def is_stale(self) -> bool:
        """Unknown or older than the TTL."""
        if self.updated_at is None:
            return True
        age = datetime.now(timezone.utc) - self.updated_at
        return age.total_seconds() > self.ttl_seconds

    def update(self, balance: int, source: BalanceSource) -> None:
        self.cached_balance = balance
        self.source = source
        self.updated_at = datetime.now(timezone.utc)

    def covers(self, required: int) -> bool:
        """Advisory check. An unknown balance never blocks."""
        return self.cached_balance is None or self.cached_balance >= required


@dataclass
class WorkflowState:
    """Which screen and which step are active."""

    view: View = View.DASHBOARD
    step: WorkflowStep = WorkflowStep.SETUP
    chapter_progress: ChapterProgress = field(default_factory=dict)
