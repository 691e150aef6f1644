"""Rich view builders for the dashboard and each workflow step."""
import re
from typing import Callable, Dict, Optional

from rich.console import Group, RenderableType
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..api import writing_style_display
from ..workflow import (
    WorkflowController,
    WorkflowStep,
    View,
    ChapterState,
    ChapterProgress,
    OperationResult,
    ErrorKind,
    count_completed
)


_TAG_RE = re.compile(r'<[^>]+>')


def plain_text(markup: str) -> str:
    """Strip editor markup for terminal display."""
    text = _TAG_RE.sub(' ', markup or '')
    return re.sub(r'[ \t]+', ' ', text).strip()


def word_count(markup: str) -> int:
    return len(plain_text(markup).split())


def preview(markup: str, limit: int = 400) -> str:
    text = plain_text(markup)
    return text if len(text) <= limit else text[:limit].rstrip() + "..."


def render_credit_balance(controller: WorkflowController) -> Text:
    credits = controller.credits
    text = Text("Credits: ", style="bold")
    if not credits.is_known:
        text.append("—", style="dim")
        return text
    text.append(str(credits.cached_balance), style="green")
    if credits.is_stale:
        text.append(" (may be out of date)", style="dim")
    return text


def render_dashboard(controller: WorkflowController) -> RenderableType:
    """Stats, credit balance and the project list."""
    stats = controller.user_stats
    stats_table = Table(title="Your Writing", show_header=False)
    stats_table.add_column("Metric", style="cyan")
    stats_table.add_column("Value", justify="right")
    if stats:
        stats_table.add_row("Total Books", str(stats.total_books))
        stats_table.add_row("Chapters Written", str(stats.total_chapters))
        stats_table.add_row("Words Written", f"{stats.total_words:,}")
        stats_table.add_row("Recent Activity", f"{stats.recent_activity} days")
        stats_table.add_row("Avg Words/Chapter", str(stats.avg_words_per_chapter))
        stats_table.add_row("Member Since", stats.user_since or "Recently")
    else:
        stats_table.add_row("Stats", "[dim]unavailable[/dim]")

    projects_table = Table(title="Book Projects")
    projects_table.add_column("ID", style="dim")
    projects_table.add_column("Title", style="cyan")
    projects_table.add_column("Style")
    projects_table.add_column("Language")
    projects_table.add_column("Chapters", justify="right")
    projects_table.add_column("Outline")
    for project in controller.projects:
        projects_table.add_row(
            project.id,
            escape(project.title),
            project.style_display,
            project.language,
            f"{len(project.chapters_content)}/{project.chapters}",
            "[green]✓[/green]" if project.has_outline else "—"
        )

    parts = [stats_table, render_credit_balance(controller)]
    if controller.projects:
        parts.append(projects_table)
    else:
        parts.append(Text("No projects yet. Create one with: bookstudio new", style="yellow"))
    return Group(*parts)


def render_progress_steps(step: WorkflowStep) -> Text:
    """Step indicator: completed steps are ticked, the active one is highlighted."""
    text = Text()
    for index, item in enumerate(WorkflowStep):
        if index:
            text.append(" → ", style="dim")
        if step > item:
            text.append(f"✓ {item.label}", style="green")
        elif step == item:
            text.append(f"{item.value} {item.label}", style="bold magenta")
        else:
            text.append(f"{item.value} {item.label}", style="dim")
    return text


def render_cost_estimate(controller: WorkflowController) -> Optional[RenderableType]:
    if not controller.book_cost:
        return None
    table = Table(title="Estimated Cost", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in controller.book_cost.summary().items():
        table.add_row(key.replace('_', ' ').title(), str(value))
    return table


def render_setup(controller: WorkflowController) -> RenderableType:
    form = controller.form
    table = Table(title="Project Setup", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Title", escape(form.title) or "[dim]required[/dim]")
    table.add_row("Description", escape(form.description) or "[dim]required[/dim]")
    table.add_row("Pages", str(form.pages))
    table.add_row("Chapters", str(form.chapters))
    table.add_row("Language", escape(form.language))
    table.add_row("Style", escape(writing_style_display(form.writing_style)))
    parts = [table]
    cost = render_cost_estimate(controller)
    if cost is not None:
        parts.append(cost)
    parts.append(render_credit_balance(controller))
    return Group(*parts)


def render_outline_pending(controller: WorkflowController) -> RenderableType:
    project = controller.project
    return Panel(
        f"[bold]{escape(project.title)}[/bold]\n\n"
        f"{escape(project.description)}\n\n"
        f"Pages: [cyan]{project.pages}[/cyan]  Chapters: [cyan]{project.chapters}[/cyan]  "
        f"Language: [cyan]{escape(project.language)}[/cyan]  Style: [cyan]{escape(project.style_display)}[/cyan]\n\n"
        f"[dim]Next: bookstudio outline {escape(project.id)}[/dim]",
        title="Generate Outline",
        border_style="cyan"
    )


def render_outline_review(controller: WorkflowController) -> RenderableType:
    project = controller.project
    parts = [Panel(
        escape(plain_text(project.outline)),
        title=f"Outline: {escape(project.title)}",
        border_style="cyan"
    )]
    if controller.state.chapter_progress:
        parts.append(render_chapter_progress(controller.state.chapter_progress, project.chapters))
    if controller.chapters:
        parts.append(Text(
            f"{len(controller.chapters)} chapters have been generated and are ready for editing.",
            style="green"
        ))
    else:
        parts.append(Text(f"Next: bookstudio write {project.id} --all", style="dim"))
    return Group(*parts)


def render_writing(controller: WorkflowController) -> RenderableType:
    project = controller.project
    table = Table(title=f"{escape(project.title)}: {len(controller.chapters)}/{project.chapters} chapters")
    table.add_column("#", justify="right")
    table.add_column("Status")
    table.add_column("Words", justify="right")
    table.add_column("Opening")
    for number in range(1, project.chapters + 1):
        content = controller.chapters.get(number)
        if content:
            table.add_row(
                str(number),
                "[green]written[/green]",
                f"{word_count(content):,}",
                escape(preview(content, 60))
            )
        else:
            table.add_row(str(number), "[dim]empty[/dim]", "—", "")
    return Group(table, render_credit_balance(controller))


STEP_VIEWS: Dict[WorkflowStep, Callable[[WorkflowController], RenderableType]] = {
    WorkflowStep.SETUP: render_setup,
    WorkflowStep.OUTLINE_PENDING: render_outline_pending,
    WorkflowStep.OUTLINE_REVIEW: render_outline_review,
    WorkflowStep.WRITING: render_writing,
}


def render_workflow(controller: WorkflowController) -> RenderableType:
    """Render the active screen."""
    if controller.view == View.DASHBOARD:
        return render_dashboard(controller)
    step_view = STEP_VIEWS[controller.step]
    return Group(render_progress_steps(controller.step), step_view(controller))


_STATUS_STYLES = {
    ChapterState.PENDING: ("pending", "dim"),
    ChapterState.GENERATING: ("generating", "yellow"),
    ChapterState.COMPLETED: ("completed", "green"),
    ChapterState.ERROR: ("error", "red"),
}


def render_chapter_progress(progress: ChapterProgress, total: int) -> Table:
    table = Table(title=f"Generating Chapters ({count_completed(progress)}/{total})")
    table.add_column("Chapter", justify="right")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    for number in range(1, total + 1):
        status = progress.get(number)
        if status is None:
            table.add_row(str(number), "[dim]pending[/dim]", "0%")
            continue
        label, style = _STATUS_STYLES[status.status]
        table.add_row(str(number), f"[{style}]{label}[/{style}]", f"{status.progress}%")
    return table


def result_style(result: OperationResult) -> str:
    if result.ok:
        return "green"
    if result.error in (ErrorKind.PRECONDITION, ErrorKind.INSUFFICIENT_CREDITS):
        return "yellow"
    return "red"


def render_result(result: OperationResult, success_text: str = "") -> Text:
    message = result.message or success_text
    if result.ok:
        return Text(f"✓ {message}" if message else "✓ Done", style="green")
    return Text(message or f"Failed ({result.error.value})", style=result_style(result))
