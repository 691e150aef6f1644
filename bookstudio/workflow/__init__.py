"""Writing workflow: step state machine, credit gating and chapter generation."""

from .state import (
    View, WorkflowStep, WorkflowState, ChapterState, ChapterStatus,
    ChapterProgress, CreditState, BalanceSource, count_completed
)
from .results import OperationResult, ErrorKind, BatchReport, classify_error
from .debounce import Debouncer
from .generator import SequentialChapterGenerator
from .controller import WorkflowController

__all__ = [
    'View', 'WorkflowStep', 'WorkflowState', 'ChapterState', 'ChapterStatus',
    'ChapterProgress', 'CreditState', 'BalanceSource', 'count_completed',
    'OperationResult', 'ErrorKind', 'BatchReport', 'classify_error',
    'Debouncer',
    'SequentialChapterGenerator',
    'WorkflowController',
]
