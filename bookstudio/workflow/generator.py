"""Sequential, credit-gated generation of every chapter of a book."""

from typing import Optional, Callable

from ..api import BackendClient, Project
from ..api.errors import BackendError, InsufficientCreditsError
from ..utils.logging import get_logger
from .results import BatchReport, OperationResult, ErrorKind
from .state import ChapterStatus, ChapterProgress, CreditState, BalanceSource


ProgressCallback = Callable[[int, ChapterStatus], None]


class SequentialChapterGenerator:
    """
    Generates chapters 1..N strictly in order, one request at a time.

    Each request consumes a credit, so the balance reported by one response
    must be seen before the next request is issued. Failure policy:

    - insufficient credits (HTTP 402): mark the chapter as error and stop
    - any other failure: mark the chapter as error and move on
    """

    def __init__(
        self,
        client: BackendClient,
        credits: CreditState,
        on_progress: Optional[ProgressCallback] = None
    ):
        """
        Initialize generator.

        Args:
            client: Backend client
            credits: Credit cache shared with the controller
            on_progress: Called with (chapter, status) on every status change
        """
        self.client = client
        self.credits = credits
        self.on_progress = on_progress
        self.progress: ChapterProgress = {}

    def _set_status(self, chapter: int, status: ChapterStatus) -> None:
        self.progress[chapter] = status
        if self.on_progress:
            self.on_progress(chapter, status)

    async def run(self, project: Project) -> OperationResult[BatchReport]:
        """
        Generate all chapters of a project.

        Args:
            project: Project with an outline

        Returns:
            Result carrying a BatchReport. A credit gate rejection or a
            credit exhaustion mid-run is reported as INSUFFICIENT_CREDITS.
        """
        logger = get_logger("generator")
        total = project.chapters

        if not self.credits.covers(total):
            message = (
                f"Insufficient credits. You need {total} credits to generate all chapters "
                f"but have {self.credits.cached_balance}. Please purchase more credits or "
                f"generate chapters individually."
            )
            logger.info(f"Bulk generation for {project.id} rejected by credit gate: "
                        f"need {total}, cached {self.credits.cached_balance}")
            return OperationResult.failure(ErrorKind.INSUFFICIENT_CREDITS, message)

        self.progress = {}
        report = BatchReport(total_chapters=total, remaining_credits=self.credits.cached_balance)
        logger.info(f"Bulk generation started for {project.id}: {total} chapters")

        for chapter in range(1, total + 1):
            self._set_status(chapter, ChapterStatus.generating())

            try:
                result = await self.client.generate_chapter(project.id, chapter)

            except InsufficientCreditsError as e:
                logger.warning(f"Insufficient credits for chapter {chapter}: {e.detail}")
                self._set_status(chapter, ChapterStatus.error())
                report.failed.append(chapter)
                report.stopped_early = True
                report.credit_error = f"Insufficient credits for chapter {chapter}: {e.detail}"
                break

            except BackendError as e:
                logger.error(f"Error generating chapter {chapter}: {e}")
                self._set_status(chapter, ChapterStatus.error())
                report.failed.append(chapter)
                continue

            report.generated[chapter] = result.chapter_content
            self._set_status(chapter, ChapterStatus.completed())

            if result.credit_cost:
                report.credits_used += result.credit_cost
            if result.remaining_credits is not None:
                self.credits.update(result.remaining_credits, BalanceSource.RESPONSE)
                report.remaining_credits = result.remaining_credits

        logger.info(
            f"Bulk generation finished for {project.id}: {report.succeeded}/{total} chapters, "
            f"credits used {report.credits_used}, stopped early: {report.stopped_early}"
        )

        if report.stopped_early:
            return OperationResult.failure(ErrorKind.INSUFFICIENT_CREDITS, report.credit_error, value=report)
        return OperationResult.success(report, message=report.summary())
