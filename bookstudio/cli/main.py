"""Main CLI entry point using Typer."""
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.markup import escape

from .. import __version__
from ..api import BackendClient
from ..config import get_settings
from ..config.constants import PROGRESS_MESSAGES
from ..utils.logging import setup_logging
from ..utils.session_logger import init_session_logger, get_session_logger, close_session_logger
from ..workflow import WorkflowController, OperationResult, ChapterStatus
from .views import (
    render_dashboard,
    render_workflow,
    render_chapter_progress,
    render_cost_estimate,
    render_credit_balance,
    render_result
)


app = typer.Typer(
    name="bookstudio",
    help="BookStudio - write books with an AI backend from the terminal",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()


@asynccontextmanager
async def workflow_session():
    """Backend client and controller for the duration of one command."""
    client = BackendClient()
    async with client:
        async with WorkflowController(client) as controller:
            yield controller


def run(coro) -> None:
    """Run a command coroutine, turning failures into exit codes."""
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)
    except (typer.Exit, typer.Abort):
        raise
    except Exception as e:
        session_logger = get_session_logger()
        if session_logger:
            session_logger.log_error(e, "Unhandled exception")
        raise
    finally:
        close_session_logger()


def finish(result: OperationResult, success_text: str = "") -> None:
    """Print an operation result and exit non-zero on failure."""
    console.print(render_result(result, success_text))
    if not result.ok:
        raise typer.Exit(1)


async def _open(controller: WorkflowController, project_id: str) -> None:
    result = await controller.open_project(project_id)
    if not result.ok:
        finish(result)


@app.command(help="Show stats, credit balance and projects")
def dashboard():
    """Show the dashboard."""
    async def _dashboard():
        async with workflow_session() as controller:
            await controller.load_dashboard()
            console.print(render_dashboard(controller))

    run(_dashboard())


@app.command(help="Create a new book project")
def new(
    title: str = typer.Option(..., "--title", "-t", help="Book title"),
    description: str = typer.Option(..., "--description", "-d", help="What the book is about"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", min=1, help="Target page count"),
    chapters: Optional[int] = typer.Option(None, "--chapters", "-c", min=1, help="Number of chapters"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="Book language"),
    style: Optional[str] = typer.Option(None, "--style", "-s", help="Writing style (story, academic, ...)"),
    outline: bool = typer.Option(
        False,
        "--outline/--no-outline",
        help="Generate the outline right after creating the project"
    )
):
    """Create a new book project."""
    async def _new():
        async with workflow_session() as controller:
            changes = {'title': title, 'description': description}
            for key, value in (('pages', pages), ('chapters', chapters),
                               ('language', language), ('writing_style', style)):
                if value is not None:
                    changes[key] = value

            controller.update_form(**changes)
            if not controller.book_cost:
                controller.schedule_cost_estimate(controller.form.pages, controller.form.chapters)
            await controller.wait_for_cost_estimate()
            cost = render_cost_estimate(controller)
            if cost is not None:
                console.print(cost)

            console.print(f"[cyan]Creating project: {escape(title)}[/cyan]")
            result = await controller.create_project()
            if not result.ok:
                finish(result)
            console.print(f"[green]✓ Created project {escape(result.value.id)}[/green]")

            if outline:
                with console.status(PROGRESS_MESSAGES['outline']):
                    outline_result = await controller.generate_outline()
                if not outline_result.ok:
                    finish(outline_result)

            console.print(render_workflow(controller))

    run(_new())


@app.command(name="open", help="Open a project at the step its content implies")
def open_project(
    project_id: str = typer.Argument(..., help="Project ID"),
    write: bool = typer.Option(False, "--write", "-w", help="Go on to the writing step")
):
    """Open an existing project."""
    async def _open_project():
        async with workflow_session() as controller:
            await _open(controller, project_id)
            if write:
                result = controller.enter_writing()
                if not result.ok:
                    finish(result)
            console.print(render_workflow(controller))

    run(_open_project())


@app.command(help="Print the full outline, or one chapter with --chapter")
def read(
    project_id: str = typer.Argument(..., help="Project ID"),
    chapter: Optional[int] = typer.Option(None, "--chapter", "-n", help="Chapter number"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", dir_okay=False, help="Write to this file")
):
    """Print raw outline or chapter markup, ready for editing."""
    async def _read():
        async with workflow_session() as controller:
            await _open(controller, project_id)
            result = controller.read_content(chapter)
            if not result.ok:
                finish(result)
            if output is None:
                typer.echo(result.value)
                return
            output.write_text(result.value, encoding='utf-8')
            console.print(f"[green]✓ Wrote {escape(str(output))}[/green]")

    run(_read())


@app.command(help="Generate or regenerate the outline of a project")
def outline(project_id: str = typer.Argument(..., help="Project ID")):
    """Generate the outline."""
    async def _outline():
        async with workflow_session() as controller:
            await _open(controller, project_id)
            with console.status(PROGRESS_MESSAGES['outline']):
                result = await controller.generate_outline()
            if not result.ok:
                finish(result)
            console.print(render_workflow(controller))

    run(_outline())


@app.command(name="edit-outline", help="Replace the outline with the contents of a file")
def edit_outline(
    project_id: str = typer.Argument(..., help="Project ID"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File with the new outline")
):
    """Overwrite the outline."""
    async def _edit_outline():
        async with workflow_session() as controller:
            await _open(controller, project_id)
            result = await controller.update_outline(file.read_text(encoding='utf-8'))
            finish(result, "Outline updated")

    run(_edit_outline())


@app.command(help="Generate one chapter, or every chapter with --all")
def write(
    project_id: str = typer.Argument(..., help="Project ID"),
    chapter: Optional[int] = typer.Option(None, "--chapter", "-n", help="Chapter number to generate"),
    all_chapters: bool = typer.Option(False, "--all", "-a", help="Generate all chapters in order")
):
    """Generate chapters."""
    if chapter is None and not all_chapters:
        console.print("[red]Pass --chapter N or --all[/red]")
        raise typer.Exit(2)

    async def _write():
        async with workflow_session() as controller:
            await _open(controller, project_id)
            await controller.load_user_stats()

            if chapter is not None:
                with console.status(PROGRESS_MESSAGES['chapter'].format(chapter=chapter)):
                    result = await controller.generate_chapter(chapter)
                if result.ok:
                    controller.enter_writing()
                    console.print(render_workflow(controller))
                finish(result)
                return

            total = controller.project.chapters
            with Live(render_chapter_progress({}, total), console=console, refresh_per_second=4) as live:
                def on_progress(number: int, status: ChapterStatus) -> None:
                    live.update(render_chapter_progress(controller.state.chapter_progress, total))

                result = await controller.generate_all_chapters(on_progress=on_progress)

            if result.value and result.value.succeeded:
                controller.enter_writing()
                console.print(render_workflow(controller))
            finish(result)

    run(_write())


@app.command(name="save-chapter", help="Replace a chapter with the contents of a file")
def save_chapter(
    project_id: str = typer.Argument(..., help="Project ID"),
    chapter: int = typer.Argument(..., help="Chapter number"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File with the chapter text")
):
    """Save edited chapter text."""
    async def _save():
        async with workflow_session() as controller:
            await _open(controller, project_id)
            result = await controller.save_chapter(chapter, file.read_text(encoding='utf-8'))
            finish(result, f"Chapter {chapter} saved")

    run(_save())


@app.command(help="Export a book as html, pdf or docx")
def export(
    project_id: str = typer.Argument(..., help="Project ID"),
    fmt: str = typer.Option("pdf", "--format", "-f", help="html, pdf or docx"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", file_okay=False, help="Output directory")
):
    """Export the rendered book."""
    async def _export():
        async with workflow_session() as controller:
            await _open(controller, project_id)
            with console.status(PROGRESS_MESSAGES['export'].format(format=escape(fmt))):
                result = await controller.export_book(fmt.lower(), output)
            if result.ok:
                console.print(f"[dim]Location: {escape(str(result.value))}[/dim]")
            finish(result)

    run(_export())


@app.command(help="Show the current credit balance")
def credits():
    """Fetch the authoritative balance."""
    async def _credits():
        async with workflow_session() as controller:
            result = await controller.refresh_balance()
            if not result.ok:
                finish(result)
            console.print(render_credit_balance(controller))

    run(_credits())


@app.command(help="Estimate the credit cost of a book")
def estimate(
    pages: int = typer.Option(100, "--pages", "-p", min=1, help="Target page count"),
    chapters: int = typer.Option(10, "--chapters", "-c", min=1, help="Number of chapters")
):
    """Estimate book cost."""
    async def _estimate():
        async with workflow_session() as controller:
            result = await controller.estimate_cost(pages, chapters)
            if not result.ok:
                finish(result)
            console.print(render_cost_estimate(controller))

    run(_estimate())


@app.command(help="Show or set configuration")
def config(
    key: Optional[str] = typer.Argument(None, help="Config key to show/set"),
    value: Optional[str] = typer.Argument(None, help="Value to set"),
    list_all: bool = typer.Option(
        False,
        "--list", "-l",
        help="List all configuration values"
    )
):
    """Show or set configuration values."""
    settings = get_settings()

    if list_all or not key:
        from rich.table import Table
        table = Table(title="Configuration")
        table.add_column("Key", style="cyan")
        table.add_column("Value")

        config_items = [
            ("backend_url", settings.backend_url),
            ("api_prefix", settings.api_prefix),
            ("api_token", "set" if settings.api_token else "not set"),
            ("request_timeout", f"{settings.request_timeout:g}s"),
            ("exports_dir", str(settings.exports_dir)),
            ("credit_cache_ttl", f"{settings.credit_cache_ttl}s"),
            ("default_pages", str(settings.default_pages)),
            ("default_chapters", str(settings.default_chapters)),
            ("default_language", settings.default_language),
            ("default_writing_style", settings.default_writing_style),
        ]

        for k, v in config_items:
            table.add_row(k, v)

        console.print(table)

    elif value is None:
        if hasattr(settings, key):
            console.print(f"{escape(key)}: {escape(str(getattr(settings, key)))}")
        else:
            console.print(f"[red]Unknown config key: {escape(key)}[/red]")
            raise typer.Exit(1)

    else:
        if key not in type(settings).model_fields or key == 'api_token':
            console.print(f"[red]Unknown config key: {escape(key)}[/red]")
            raise typer.Exit(1)

        try:
            setattr(settings, key, value)
        except ValidationError as e:
            message = e.errors()[0]['msg']
            console.print(f"[red]Invalid value for {escape(key)}: {escape(message)}[/red]")
            raise typer.Exit(1)

        settings.save_config_file(Path("config.yaml"))
        console.print(f"[green]✓ Set {escape(key)} = {escape(str(getattr(settings, key)))}[/green]")


@app.command(help="Show version information")
def version():
    """Show version information."""
    console.print(f"[cyan]BookStudio v{__version__}[/cyan]")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
    log_requests: bool = typer.Option(
        True,
        "--log-requests/--no-log-requests",
        help="Record backend requests in a JSONL session log"
    )
):
    """
    BookStudio - write books with an AI backend from the terminal.
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    setup_logging(level="DEBUG" if verbose or settings.verbose else "INFO")
    if log_requests:
        session_logger = init_session_logger()
        session_logger.log(f"Command: {ctx.invoked_subcommand}", command=ctx.invoked_subcommand)


if __name__ == "__main__":
    app()
