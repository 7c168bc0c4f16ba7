"""
Typer CLI for the mastery engine.

Commands:
    mastery-engine mastery summary --user U     - Band counts and averages
    mastery-engine mastery weakest --user U     - Weakest concepts after decay
    mastery-engine mastery due --user U         - Concepts due for review
    mastery-engine mastery show CONCEPT --user U
    mastery-engine mastery delete CONCEPT --user U
    mastery-engine session show --user U        - Open test session progress
    mastery-engine session history --user U     - Archived sessions
    mastery-engine session abandon --user U
    mastery-engine serve                        - Run the REST API

Usage:
    mastery-engine --help
    MASTERY_STORE_BACKEND=redis mastery-engine mastery due --user alice
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from mastery_engine.config import Settings, get_settings
from mastery_engine.mastery import EffectiveMastery
from mastery_engine.service import TestingService

T = TypeVar("T")

app = typer.Typer(help="Mastery tracking, spaced repetition and test sessions", no_args_is_help=True)
mastery_app = typer.Typer(help="Inspect per-concept mastery", no_args_is_help=True)
session_app = typer.Typer(help="Inspect and manage test sessions", no_args_is_help=True)
app.add_typer(mastery_app, name="mastery")
app.add_typer(session_app, name="session")

console = Console()

UserOption = typer.Option(..., "--user", "-u", help="Learner identifier")


def configure_logging(settings: Settings, level: str | None = None) -> None:
    """Replace loguru's default sink with a stderr sink (and optional rotating file)."""
    logger.remove()
    logger.add(sys.stderr, level=level or settings.log_level, format="<level>{message}</level>")
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


MEMORY_BACKEND_WARNING = (
    "[yellow]Warning:[/yellow] the memory backend starts empty on every command. "
    "Set MASTERY_STORE_BACKEND=sql or redis to inspect stored data."
)


def _run(action: Callable[[TestingService], Awaitable[T]]) -> T:
    settings = get_settings()
    if settings.store_backend == "memory":
        rprint(MEMORY_BACKEND_WARNING)

    async def runner() -> T:
        service = TestingService.from_settings(settings)
        try:
            return await action(service)
        finally:
            await service.close()

    return asyncio.run(runner())


def _mastery_color(score: float) -> str:
    if score > 0.8:
        return "green"
    if score > 0.3:
        return "yellow"
    return "red"


def _mastery_table(title: str, rows: list[EffectiveMastery]) -> Table:
    table = Table(title=title)
    table.add_column("Concept", style="cyan")
    table.add_column("Stored", justify="right")
    table.add_column("Effective", justify="right")
    table.add_column("Days idle", justify="right")
    table.add_column("Interval", justify="right")
    table.add_column("Due", justify="center")
    for m in rows:
        color = _mastery_color(m.effective_mastery)
        table.add_row(
            m.concept_label,
            f"{m.mastery_score:.3f}",
            f"[{color}]{m.effective_mastery:.3f}[/{color}]",
            f"{m.days_since_interaction:.1f}",
            f"{m.interval_days}d",
            "[bold red]yes[/bold red]" if m.is_due_for_review else "no",
        )
    return table


# ========================================
# Mastery Commands
# ========================================


@mastery_app.command("summary")
def mastery_summary(user: str = UserOption) -> None:
    """Show mastery band counts for a learner."""
    summary = _run(lambda s: s.mastery_store.get_mastery_summary(user))

    rprint(f"\n[bold cyan]Mastery summary for {user}[/bold cyan]")
    rprint(f"  Concepts tracked: {summary.total_concepts}")
    rprint(f"  [green]Mastered[/green]: {summary.mastered_concepts}")
    rprint(f"  [yellow]Learning[/yellow]: {summary.learning_concepts}")
    rprint(f"  [red]Weak[/red]: {summary.weak_concepts}")
    rprint(f"  Average effective mastery: {summary.average_mastery:.3f}")
    rprint(f"  Due for review: {summary.concepts_due_for_review}\n")


@mastery_app.command("weakest")
def mastery_weakest(
    user: str = UserOption,
    limit: int = typer.Option(10, "--limit", "-n", min=1),
) -> None:
    """List the weakest concepts after decay."""
    rows = _run(lambda s: s.mastery_store.get_weakest_concepts(user, limit))
    if not rows:
        rprint("[dim]No concepts tracked yet.[/dim]")
        return
    console.print(_mastery_table(f"Weakest concepts ({user})", rows))


@mastery_app.command("due")
def mastery_due(
    user: str = UserOption,
    limit: int = typer.Option(10, "--limit", "-n", min=1),
) -> None:
    """List concepts whose review date has passed."""
    rows = _run(lambda s: s.mastery_store.get_concepts_due_for_review(user, limit))
    if not rows:
        rprint("[green]Nothing due for review.[/green]")
        return
    console.print(_mastery_table(f"Due for review ({user})", rows))


@mastery_app.command("show")
def mastery_show(concept_id: str, user: str = UserOption) -> None:
    """Show one concept's mastery record."""
    mastery = _run(lambda s: s.mastery_store.get_effective_mastery(user, concept_id))
    if mastery is None:
        rprint(f"[yellow]Concept {concept_id} is not tracked for {user}.[/yellow]")
        raise typer.Exit(1)
    console.print(_mastery_table(mastery.concept_label, [mastery]))
    rprint(
        f"  Ease {mastery.ease_factor:.2f} | streak +{mastery.streak_correct}/-{mastery.streak_wrong} | "
        f"{mastery.correct_attempts}/{mastery.total_attempts} correct | "
        f"next review {mastery.next_review_date:%Y-%m-%d %H:%M}"
    )


@mastery_app.command("delete")
def mastery_delete(
    concept_id: str,
    user: str = UserOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove a concept's mastery record and index entries."""
    if not yes and not typer.confirm(f"Delete mastery for {concept_id} ({user})?"):
        raise typer.Abort()
    _run(lambda s: s.mastery_store.delete_mastery(user, concept_id))
    rprint(f"[green]✓[/green] Deleted {concept_id}")


# ========================================
# Session Commands
# ========================================


@session_app.command("show")
def session_show(user: str = UserOption) -> None:
    """Show progress of the open test session."""
    snapshot = _run(lambda s: s.snapshot(user))
    if snapshot is None:
        rprint("[dim]No active test session.[/dim]")
        return

    session, progress = snapshot.session, snapshot.progress
    rprint(f"\n[bold cyan]Session {session.session_id}[/bold cyan] ({session.status.value})")
    rprint(f"  Question {min(progress.current, progress.total)}/{progress.total} | score {progress.score}%")
    rprint(
        f"  [green]{progress.correct_count} correct[/green], "
        f"[yellow]{progress.partial_count} partial[/yellow], "
        f"[red]{progress.incorrect_count} incorrect[/red]"
    )
    if snapshot.current_question:
        q = snapshot.current_question
        rprint(f"  Current: {q.concept_label} ({q.difficulty.value}, {q.question_type.value})")
    rprint(f"  Suggested next difficulty: {snapshot.suggested_difficulty.value}\n")


@session_app.command("history")
def session_history(
    user: str = UserOption,
    limit: int = typer.Option(20, "--limit", "-n", min=1),
) -> None:
    """List archived sessions, most recent first."""
    entries = _run(lambda s: s.sessions.get_test_session_history(user, limit))
    if not entries:
        rprint("[dim]No archived sessions.[/dim]")
        return

    table = Table(title=f"Test sessions ({user})")
    table.add_column("Session", style="cyan")
    table.add_column("Started")
    table.add_column("Status")
    table.add_column("Answered", justify="right")
    table.add_column("Score", justify="right")
    for entry in entries:
        table.add_row(
            entry.session_id,
            f"{entry.started_at:%Y-%m-%d %H:%M}",
            entry.status.value,
            str(entry.questions_answered),
            f"{entry.score}%",
        )
    console.print(table)


@session_app.command("abandon")
def session_abandon(user: str = UserOption) -> None:
    """Abandon the open test session (archived, no summary)."""
    _run(lambda s: s.abandon(user))
    rprint("[green]✓[/green] No open session remains")


# ========================================
# API Server
# ========================================


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    """Run the REST API with uvicorn."""
    import uvicorn

    from mastery_engine.api import create_app

    settings = get_settings()
    uvicorn.run(create_app(settings=settings), host=host or settings.api_host, port=port or settings.api_port)


def main() -> None:
    """Entry point for the CLI."""
    configure_logging(get_settings(), level="WARNING")
    app()


if __name__ == "__main__":
    main()
