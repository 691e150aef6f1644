"""Workflow controller: owns project, credit and step state and drives backend calls."""

import asyncio
from pathlib import Path
from typing import Optional, List

from ..api import BackendClient, Project, ProjectForm, UserStats, BookCostEstimate
from ..api.errors import BackendError, InsufficientCreditsError
from ..config import get_settings, Settings
from ..export import BookExporter, ExportFormat
from ..utils.logging import get_logger
from .debounce import Debouncer
from .generator import SequentialChapterGenerator, ProgressCallback
from .results import OperationResult, BatchReport, ErrorKind, classify_error
from .state import (
    View,
    WorkflowStep,
    WorkflowState,
    CreditState,
    BalanceSource,
    ChapterStatus
)


class WorkflowController:
    """
    Tracks a book project from setup to export.

    Every operation catches backend failures itself and returns an
    OperationResult; a failure never moves the step state machine.
    All mutations of the project, chapter mapping and credit cache happen
    here, from one event loop.
    """

    def __init__(self, client: BackendClient, settings: Optional[Settings] = None):
        """
        Initialize controller.

        Args:
            client: Backend client
            settings: Optional settings (uses cached settings if not provided)
        """
        self.settings = settings or get_settings()
        self.client = client
        self.state = WorkflowState()
        self.credits = CreditState(ttl_seconds=self.settings.credit_cache_ttl)
        self.project: Optional[Project] = None
        self.projects: List[Project] = []
        self.user_stats: Optional[UserStats] = None
        self.book_cost: Optional[BookCostEstimate] = None
        self.form = ProjectForm(
            pages=self.settings.default_pages,
            chapters=self.settings.default_chapters,
            language=self.settings.default_language,
            writing_style=self.settings.default_writing_style
        )
        self.exporter = BookExporter(client)
        self._cost_debouncer = Debouncer(self.settings.cost_debounce_seconds)
        self.logger = get_logger("workflow")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Tear down owned timers."""
        self._cost_debouncer.cancel()

    @property
    def view(self) -> View:
        return self.state.view

    @property
    def step(self) -> WorkflowStep:
        return self.state.step

    @property
    def outline(self) -> str:
        return self.project.outline if self.project else ""

    @property
    def chapters(self):
        """Chapter mapping of the active project."""
        return self.project.chapters_content if self.project else {}

    def _failed(self, action: str, error: BackendError) -> OperationResult:
        self.logger.error(f"Error {action}: {error}")
        return OperationResult.from_error(error)

    # Navigation

    def show_dashboard(self) -> None:
        self.state.view = View.DASHBOARD

    def edit_book(self) -> None:
        """Go back to the setup step of the writing view."""
        self.state.step = WorkflowStep.SETUP
        self.state.view = View.WRITING

    def enter_writing(self, force: bool = False) -> OperationResult[WorkflowStep]:
        """
        Move from outline review to chapter writing.

        Only allowed from outline review (or when already writing) with an
        outline in place.

        Args:
            force: Navigate even when no chapter exists yet
        """
        if not self.project:
            return OperationResult.precondition("No active project")
        if self.state.step < WorkflowStep.OUTLINE_REVIEW or not self.project.has_outline:
            return OperationResult.precondition("Generate and review the outline before writing")
        if not self.chapters and not force:
            return OperationResult.precondition("Generate at least one chapter before writing")
        self.state.step = WorkflowStep.WRITING
        self.state.view = View.WRITING
        return OperationResult.success(self.state.step)

    # Dashboard

    async def load_dashboard(self) -> None:
        """Load projects, stats and the initial cost estimate."""
        await self.load_projects()
        await self.load_user_stats()
        await self.estimate_cost(self.form.pages, self.form.chapters)

    async def load_projects(self) -> OperationResult[List[Project]]:
        try:
            self.projects = await self.client.list_projects()
        except BackendError as e:
            return self._failed("loading projects", e)
        return OperationResult.success(self.projects)

    async def load_user_stats(self) -> OperationResult[UserStats]:
        """Fetch dashboard stats; a reported balance refreshes the credit cache."""
        try:
            stats = await self.client.get_user_stats()
        except BackendError as e:
            return self._failed("loading user stats", e)

        self.user_stats = stats
        if stats.credit_balance is not None:
            self.credits.update(stats.credit_balance, BalanceSource.FETCH)
        return OperationResult.success(stats)

    async def refresh_balance(self) -> OperationResult[int]:
        """Fetch the authoritative credit balance."""
        try:
            balance = await self.client.get_credit_balance()
        except BackendError as e:
            return self._failed("loading credit balance", e)

        self.credits.update(balance, BalanceSource.FETCH)
        return OperationResult.success(balance)

    # Setup form

    async def estimate_cost(self, pages: int, chapters: int) -> OperationResult[BookCostEstimate]:
        try:
            estimate = await self.client.calculate_book_cost(pages, chapters)
        except BackendError as e:
            return self._failed("calculating book cost", e)

        self.book_cost = estimate
        return OperationResult.success(estimate)

    def schedule_cost_estimate(self, pages: int, chapters: int) -> asyncio.Task:
        """Recalculate the estimate once the form has been quiet for a moment."""
        return self._cost_debouncer.schedule(self.estimate_cost, pages, chapters)

    async def wait_for_cost_estimate(self) -> Optional[OperationResult[BookCostEstimate]]:
        return await self._cost_debouncer.wait()

    def update_form(self, **changes) -> ProjectForm:
        """
        Apply setup form edits.

        Changing pages or chapters schedules a debounced cost estimate, so
        this must be called from within the event loop.
        """
        previous = self.form
        self.form = ProjectForm.model_validate({**previous.model_dump(), **changes})
        if (self.form.pages, self.form.chapters) != (previous.pages, previous.chapters):
            self.schedule_cost_estimate(self.form.pages, self.form.chapters)
        return self.form

    # Project lifecycle

    async def create_project(self, form: Optional[ProjectForm] = None) -> OperationResult[Project]:
        """Create a project and move to the outline step."""
        form = form or self.form
        if not form.is_complete:
            return OperationResult.precondition("Title and description are required")

        try:
            project = await self.client.create_project(form)
        except BackendError as e:
            return self._failed("creating project", e)

        self.form = form
        self.project = project
        self.state.step = WorkflowStep.OUTLINE_PENDING
        self.state.view = View.WRITING
        self.logger.info(f"Created project {project.id} ({project.title})")

        await self.load_projects()
        await self.load_user_stats()
        return OperationResult.success(project)

    async def open_project(self, project_id: str) -> OperationResult[Project]:
        """Load an existing project and route to the step its content implies."""
        try:
            project = await self.client.get_project(project_id)
        except BackendError as e:
            return self._failed(f"loading project {project_id}", e)

        self.project = project
        self.state.step = WorkflowStep.entry_for(project.has_outline)
        self.state.view = View.WRITING
        return OperationResult.success(project)

    # Outline

    async def generate_outline(self) -> OperationResult[str]:
        """Generate (or regenerate) the outline and move to outline review."""
        if not self.project:
            return OperationResult.precondition("No active project")

        try:
            outline = await self.client.generate_outline(self.project.id)
        except BackendError as e:
            return self._failed("generating outline", e)

        self.project.outline = outline
        self.state.step = WorkflowStep.OUTLINE_REVIEW
        return OperationResult.success(outline)

    async def update_outline(self, outline: str) -> OperationResult[str]:
        """Overwrite the outline with edited text."""
        if not self.project:
            return OperationResult.precondition("No active project")
        if not outline or not outline.strip():
            return OperationResult.precondition("Outline text is empty")

        try:
            await self.client.update_outline(self.project.id, outline)
        except BackendError as e:
            return self._failed("updating outline", e)

        self.project.outline = outline
        return OperationResult.success(outline)

    # Chapters

    async def generate_all_chapters(
        self,
        on_progress: Optional[ProgressCallback] = None
    ) -> OperationResult[BatchReport]:
        """
        Generate every chapter in order, stopping when credits run out.

        The project's chapter mapping is replaced by whatever the run
        produced; chapters that failed or were not reached are absent.
        """
        if not self.project:
            return OperationResult.precondition("No active project")
        if not self.project.has_outline:
            return OperationResult.precondition("Generate an outline before writing chapters")

        def track(chapter: int, status: ChapterStatus) -> None:
            self.state.chapter_progress = generator.progress
            if on_progress:
                on_progress(chapter, status)

        generator = SequentialChapterGenerator(self.client, self.credits, on_progress=track)
        try:
            result = await generator.run(self.project)
        finally:
            self.state.chapter_progress = generator.progress

        report = result.value
        if report is None:
            return result

        self.project.chapters_content = dict(report.generated)

        if report.stopped_early:
            refreshed = await self.refresh_balance()
            if refreshed.ok:
                report.remaining_credits = refreshed.value
            result.message = (
                f"{report.credit_error}. Required: {report.chapters_left} credit(s), "
                f"available: {self.credits.cached_balance}."
            )

        return result

    async def generate_chapter(self, chapter_number: int) -> OperationResult[str]:
        """Generate a single chapter and merge it into the mapping."""
        if not self.project:
            return OperationResult.precondition("No active project")
        if not self.project.has_outline:
            return OperationResult.precondition("Generate an outline before writing chapters")
        if not self.project.is_valid_chapter(chapter_number):
            return OperationResult.precondition(
                f"Chapter {chapter_number} is outside 1..{self.project.chapters}"
            )

        try:
            result = await self.client.generate_chapter(self.project.id, chapter_number)
        except InsufficientCreditsError as e:
            self.logger.warning(f"Insufficient credits for chapter {chapter_number}: {e.detail}")
            # Cache is known to be stale at this point
            await self.refresh_balance()
            return OperationResult.failure(
                ErrorKind.INSUFFICIENT_CREDITS,
                f"Insufficient credits: {e.detail} (available: {self.credits.cached_balance})"
            )
        except BackendError as e:
            return self._failed(f"generating chapter {chapter_number}", e)

        self.project.set_chapter(chapter_number, result.chapter_content)
        if result.remaining_credits is not None:
            self.credits.update(result.remaining_credits, BalanceSource.RESPONSE)

        message = f"Chapter {chapter_number} generated."
        if result.credit_cost:
            message += (
                f" Cost: {result.credit_cost} credit(s). "
                f"Remaining: {self.credits.cached_balance}"
            )
        self.logger.info(message)
        return OperationResult.success(result.chapter_content, message=message)

    def read_content(self, chapter_number: Optional[int] = None) -> OperationResult[str]:
        """
        Full markup of one chapter, or of the outline when no chapter is given.

        This is the text to edit before handing it back to save_chapter or
        update_outline.
        """
        if not self.project:
            return OperationResult.precondition("No active project")

        if chapter_number is None:
            if not self.project.has_outline:
                return OperationResult.precondition("The outline has not been generated yet")
            return OperationResult.success(self.project.outline)

        if not self.project.is_valid_chapter(chapter_number):
            return OperationResult.precondition(
                f"Chapter {chapter_number} is outside 1..{self.project.chapters}"
            )
        content = self.project.get_chapter(chapter_number)
        if not content:
            return OperationResult.precondition(f"Chapter {chapter_number} has not been written yet")
        return OperationResult.success(content)

    async def save_chapter(self, chapter_number: int, content: str) -> OperationResult[str]:
        """Persist edited chapter text. Last write wins."""
        if not self.project:
            return OperationResult.precondition("No active project")
        if not content or not content.strip():
            return OperationResult.precondition("Chapter text is empty")
        if not self.project.is_valid_chapter(chapter_number):
            return OperationResult.precondition(
                f"Chapter {chapter_number} is outside 1..{self.project.chapters}"
            )

        try:
            await self.client.update_chapter(self.project.id, chapter_number, content)
        except BackendError as e:
            return self._failed(f"saving chapter {chapter_number}", e)

        self.project.set_chapter(chapter_number, content)
        return OperationResult.success(content)

    # Export

    async def export_book(self, fmt: str, directory: Optional[Path] = None) -> OperationResult[Path]:
        """Download the rendered book and write it into directory."""
        if not self.project:
            return OperationResult.precondition("No active project")
        try:
            export_format = ExportFormat(fmt)
        except ValueError:
            return OperationResult.precondition(f"Unsupported format: {fmt}")

        try:
            artifact = await self.exporter.fetch(self.project, export_format)
        except BackendError as e:
            self.logger.error(f"Error exporting as {export_format.value}: {e}")
            return OperationResult.failure(
                classify_error(e),
                f"Failed to export as {export_format.value.upper()}. Please try again."
            )

        target = directory or self.settings.exports_dir
        try:
            path = self.exporter.save(artifact, target)
        except OSError as e:
            self.logger.error(f"Error writing {artifact.filename} to {target}: {e}")
            return OperationResult.failure(
                ErrorKind.STORAGE,
                f"Could not write {artifact.filename} to {target}: {e}"
            )

        return OperationResult.success(path, message=f"Successfully exported book as {export_format.value.upper()}")
