"""
Typer CLI for the quiz assessment engine.

Commands:
    quiz-engine db init                  - Initialize database tables
    quiz-engine quiz list                - List quizzes
    quiz-engine quiz publish ID          - Publish a quiz
    quiz-engine quiz stats ID            - Show quiz statistics
    quiz-engine quiz export ID           - Export a quiz snapshot to JSON
    quiz-engine quiz import FILE         - Import a quiz snapshot
    quiz-engine questions import-csv     - Bulk import questions from CSV
    quiz-engine questions export-csv     - Export questions to CSV
    quiz-engine info                     - Show configuration

Usage:
    quiz-engine --help
    quiz-engine quiz list --status Published
    quiz-engine quiz export 3 -o safety_quiz.json
    quiz-engine questions import-csv 3 questions.csv
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from src.assessment.analytics import AnalyticsAggregator
from src.assessment.authoring import QuizAuthoring
from src.assessment.csv_io import export_questions_to_csv, import_questions_from_csv
from src.assessment.enums import QuizStatus
from src.assessment.errors import AssessmentError
from src.assessment.transfer import QuizTransfer
from src.db.database import init_db, session_scope
from src.db.repository import QuizRepository
from src.logging_setup import configure_logging

console = Console()

app = typer.Typer(
    help="quiz-engine CLI: quiz authoring, transfer and statistics",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    configure_logging(level="DEBUG" if verbose else "WARNING", to_file=False)


def _fail(exc: AssessmentError) -> None:
    rprint(f"[red]✗[/red] {exc}")
    raise typer.Exit(code=1)


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# QUIZ COMMANDS
# ========================================

quiz_app = typer.Typer(help="Quiz management")
app.add_typer(quiz_app, name="quiz")


@quiz_app.command("list")
def quiz_list(
    status: Optional[QuizStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
    include_archived: bool = typer.Option(False, "--archived", help="Include archived quizzes"),
) -> None:
    """List quizzes."""
    with session_scope() as session:
        quizzes = QuizAuthoring(QuizRepository(session)).list_quizzes(
            status=status,
            category=category,
            include_archived=include_archived,
        )

        table = Table(title=f"Quizzes ({len(quizzes)})")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("Status")
        table.add_column("Questions", justify="right")
        table.add_column("Pass %", justify="right")
        table.add_column("Avg Score", justify="right")

        for quiz in quizzes:
            table.add_row(
                str(quiz.id),
                quiz.title,
                quiz.status.value,
                str(quiz.question_count),
                str(quiz.passing_score),
                f"{quiz.average_score:.0f}" if quiz.average_score is not None else "-",
            )
        console.print(table)


@quiz_app.command("publish")
def quiz_publish(quiz_id: int = typer.Argument(..., help="Quiz ID")) -> None:
    """Publish a quiz so users can take it."""
    try:
        with session_scope() as session:
            quiz = QuizAuthoring(QuizRepository(session)).publish_quiz(quiz_id)
            rprint(f"[green]✓[/green] Published [bold]{quiz.title}[/bold] ({quiz.question_count} questions)")
    except AssessmentError as exc:
        _fail(exc)


@quiz_app.command("stats")
def quiz_stats(quiz_id: int = typer.Argument(..., help="Quiz ID")) -> None:
    """Show attempt statistics and per-question analytics."""
    try:
        with session_scope() as session:
            stats = AnalyticsAggregator(QuizRepository(session)).quiz_statistics(quiz_id)
    except AssessmentError as exc:
        _fail(exc)

    summary = Table(title=f"Quiz {quiz_id} Statistics")
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", style="green", justify="right")
    summary.add_row("Attempts", str(stats.total_attempts))
    summary.add_row("Unique users", str(stats.unique_users))
    summary.add_row("Average score", f"{stats.average_score}%")
    summary.add_row("Median score", f"{stats.median_score}%")
    summary.add_row("Pass rate", f"{stats.pass_rate}%")
    summary.add_row("Completion rate", f"{stats.completion_rate}%")
    summary.add_row("Average time", f"{stats.average_time_spent} min")
    console.print(summary)

    distribution = Table(title="Score Distribution")
    distribution.add_column("Range")
    distribution.add_column("Attempts", justify="right")
    for bucket in stats.score_distribution:
        distribution.add_row(bucket["range"], str(bucket["count"]))
    console.print(distribution)

    if stats.question_analytics:
        questions = Table(title="Questions")
        questions.add_column("ID", style="dim")
        questions.add_column("Question", style="cyan", max_width=50)
        questions.add_column("Answered", justify="right")
        questions.add_column("Correct %", justify="right")
        questions.add_column("Difficulty", justify="right")
        for item in stats.question_analytics:
            questions.add_row(
                str(item.question_id),
                item.question_text,
                str(item.times_answered),
                f"{item.correct_rate:.0f}",
                f"{item.difficulty_index:.2f}",
            )
        console.print(questions)


@quiz_app.command("export")
def quiz_export(
    quiz_id: int = typer.Argument(..., help="Quiz ID"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: quiz_<id>.json)"),
) -> None:
    """Export a quiz snapshot to JSON."""
    output = output or Path(f"quiz_{quiz_id}.json")
    try:
        with session_scope() as session:
            snapshot = QuizTransfer(QuizRepository(session)).export_quiz(quiz_id)
    except AssessmentError as exc:
        _fail(exc)

    output.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
    rprint(f"[green]✓[/green] Exported {len(snapshot['questions'])} questions to {output}")


@quiz_app.command("import")
def quiz_import(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Snapshot JSON file"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Override the quiz title"),
    policy_id: Optional[int] = typer.Option(None, "--policy", help="Attach to a policy"),
    draft: bool = typer.Option(False, "--draft", help="Import as Draft regardless of snapshot status"),
) -> None:
    """Import a quiz snapshot as a new quiz."""
    try:
        snapshot = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        rprint(f"[red]✗[/red] {path} is not valid JSON: {exc}")
        raise typer.Exit(code=1)

    try:
        with session_scope() as session:
            quiz = QuizTransfer(QuizRepository(session)).import_quiz(
                snapshot,
                new_title=title,
                policy_id=policy_id,
                as_draft=draft,
            )
            rprint(
                f"[green]✓[/green] Imported quiz {quiz.id} [bold]{quiz.title}[/bold] "
                f"({quiz.question_count} questions, {quiz.status.value})"
            )
    except AssessmentError as exc:
        _fail(exc)


# ========================================
# QUESTION COMMANDS
# ========================================

questions_app = typer.Typer(help="Question import/export")
app.add_typer(questions_app, name="questions")


@questions_app.command("import-csv")
def questions_import_csv(
    quiz_id: int = typer.Argument(..., help="Quiz ID"),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV file with a header row"),
) -> None:
    """Bulk import questions from CSV. Bad rows are reported and skipped."""
    try:
        with session_scope() as session:
            authoring = QuizAuthoring(QuizRepository(session))
            result = import_questions_from_csv(authoring, quiz_id, path.read_text(encoding="utf-8"))
    except AssessmentError as exc:
        _fail(exc)

    rprint(f"[green]✓[/green] Imported {result.imported} questions into quiz {quiz_id}")
    for error in result.errors:
        rprint(f"  [yellow]⚠[/yellow] {error}")
    if result.errors:
        logger.warning(f"{len(result.errors)} rows skipped")


@questions_app.command("export-csv")
def questions_export_csv(
    quiz_id: int = typer.Argument(..., help="Quiz ID"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: stdout)"),
) -> None:
    """Export a quiz's active questions to CSV."""
    try:
        with session_scope() as session:
            questions = QuizAuthoring(QuizRepository(session)).quiz_questions(quiz_id)
            data = export_questions_to_csv(questions)
    except AssessmentError as exc:
        _fail(exc)

    if output is None:
        typer.echo(data, nl=False)
        return
    output.write_text(data, encoding="utf-8")
    rprint(f"[green]✓[/green] Exported questions to {output}")


# ========================================
# INFO
# ========================================


@app.command("info")
def show_info() -> None:
    """Show configuration."""
    settings = get_settings()

    table = Table(title="quiz-engine Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database URL", settings.database_url.split("@")[-1])
    table.add_row("Default passing score", f"{settings.default_passing_score}%")
    table.add_row("Default max attempts", str(settings.default_max_attempts))
    table.add_row("Default time limit", f"{settings.default_time_limit_minutes} min")
    table.add_row("Certificate prefix", settings.certificate_prefix)
    table.add_row("Export format", settings.export_format_version)
    table.add_row("Log Level", settings.log_level)

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
