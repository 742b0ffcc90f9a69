"""
Typer CLI for the triangle tutor.

Commands:
    tutor graph               - Show the concept graph
    tutor status              - Show mastery per level and concept
    tutor next                - Generate the next item for the learner
    tutor answer --choice b   - Answer the current item
    tutor generate CONCEPT    - Generate an item without touching progress
    tutor simulate            - Run a simulated learner on a scratch session
    tutor benchmark           - Run the grading benchmark
    tutor reset               - Start the learner over
    tutor info                - Show configuration

Usage:
    tutor next
    tutor answer --target AC
    tutor generate tri.pyth.solve_missing_side --difficulty 3 --local
    tutor simulate --steps 40 --accuracy 0.8 --seed 7
"""

from __future__ import annotations

import asyncio
import random
import sys
import tempfile
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from src.core.mastery import LearningIntent
from src.curriculum.policies import HIGHLIGHT, MULTIPLE_CHOICE, NUMERIC_INPUT
from src.curriculum.triangles import TRIANGLES_GRADE6
from src.delivery.telemetry import CompositeSink, InMemoryTelemetrySink, build_default_sink
from src.generation.schemas import PresentedItem
from src.grading.benchmark import default_cases, run_grading_benchmark
from src.session.factory import build_tutor_session
from src.session.tutor_session import NoActiveItemError, Submission, SubmissionResult

app = typer.Typer(
    help="triangle-tutor CLI: adaptive Grade 6 triangles practice",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Rendering
# ========================================


def _show_item(item: PresentedItem) -> None:
    spec = item.spec
    lines = [f"[bold]{item.prompt_text}[/bold]", ""]
    points = ", ".join(f"{pid}({x:.2f}, {y:.2f})" for pid, (x, y) in item.diagram["points"].items())
    lines.append(f"[dim]Diagram:[/dim] {points}  right angle at {item.diagram['right_angle_at'] or '-'}")
    for option in spec.response_contract.options or []:
        lines.append(f"  [cyan]{option.id})[/cyan] {option.text}")
    if item.response_mode == NUMERIC_INPUT:
        lines.append("  [cyan]Answer with --number[/cyan]")
    elif item.response_mode == HIGHLIGHT:
        lines.append("  [cyan]Answer with --target (a vertex like B or a side like AC)[/cyan]")
    lines.append("")
    lines.append(f"[dim]Hint:[/dim] {spec.hint}")

    title = f"{item.concept_id}  d{item.difficulty}  {item.intent}"
    if item.fallback_used:
        title += "  [yellow](fallback)[/yellow]"
    console.print(Panel("\n".join(lines), title=title, border_style="cyan"))


def _show_result(result: SubmissionResult) -> None:
    envelope = result.envelope
    style = {"correct": "green", "incorrect": "red", "ambiguous": "yellow"}.get(envelope.correctness.value, "magenta")
    rprint(f"\n[bold {style}]{envelope.correctness.value.upper()}[/bold {style}] via {envelope.strategy_family.value}")
    rprint(f"  [dim]{envelope.evidence_summary}[/dim]")
    if envelope.ambiguity_codes:
        rprint(f"  Codes: {', '.join(envelope.ambiguity_codes)}")
    if result.record is not None:
        rec = result.record
        rprint(
            f"  {result.concept_id}: phase={rec.phase.value} difficulty={rec.current_difficulty} "
            f"correct={rec.correct_count} incorrect={rec.incorrect_count}"
        )
    if result.topic_completed:
        rprint("\n[bold green]✓ Topic complete![/bold green]")


# ========================================
# Commands
# ========================================


@app.command("graph")
def show_graph() -> None:
    """Show the concept graph."""
    table = Table(title=TRIANGLES_GRADE6.topic, show_header=True)
    table.add_column("Level", justify="right", style="cyan")
    table.add_column("Concept", style="green")
    table.add_column("Title")
    for level in TRIANGLES_GRADE6.levels:
        for i, cid in enumerate(level.concept_ids):
            table.add_row(str(level.index) if i == 0 else "", cid, TRIANGLES_GRADE6.concept(cid).title)
        table.add_section()
    console.print(table)


@app.command("status")
def show_status() -> None:
    """Show mastery per level and concept."""
    tutor, _ = build_tutor_session(use_item_service=False)
    status = tutor.status()

    table = Table(title="Mastery", show_header=True)
    table.add_column("Concept", style="cyan")
    table.add_column("Phase")
    table.add_column("Difficulty", justify="right")
    table.add_column("Correct", justify="right", style="green")
    table.add_column("Incorrect", justify="right", style="red")
    for level in status["levels"]:
        lock = "" if level["unlocked"] else " [dim](locked)[/dim]"
        table.add_row(f"[bold]L{level['index']} {level['title']}{lock}[/bold]", "", "", "", f"{level['mastered_fraction']:.0%}")
        for cid, rec in level["concepts"].items():
            table.add_row(
                f"  {cid}",
                rec["phase"],
                str(rec["current_difficulty"]),
                str(rec["correct_count"]),
                str(rec["incorrect_count"]),
            )
    console.print(table)
    if status["topic_completed"]:
        rprint("[bold green]✓ Topic complete[/bold green]")


@app.command("next")
def next_item(
    local: bool = typer.Option(False, "--local", help="Use the local generator even if an item service is configured"),
) -> None:
    """Generate the next item for the learner."""

    async def run() -> PresentedItem | None:
        tutor, components = build_tutor_session(use_item_service=not local)
        try:
            return await tutor.next_item()
        finally:
            await components.close()

    item = asyncio.run(run())
    if item is None:
        rprint("[bold green]✓ Topic complete! Nothing left to practice.[/bold green]")
        return
    _show_item(item)


@app.command("answer")
def answer(
    choice: str | None = typer.Option(None, "--choice", help="Option id for multiple choice"),
    number: str | None = typer.Option(None, "--number", help="Value for numeric input"),
    expression: str | None = typer.Option(None, "--expression", help="Typed equation"),
    text: str | None = typer.Option(None, "--text", help="Free-text explanation"),
    target: str | None = typer.Option(None, "--target", help="Tapped vertex or side, e.g. B or AC"),
) -> None:
    """Answer the current item."""
    submission = Submission(choice_id=choice, numeric_value=number, expression=expression, text=text, target=target)

    async def run() -> SubmissionResult:
        tutor, components = build_tutor_session()
        try:
            return await tutor.submit(submission)
        finally:
            await components.close()

    try:
        result = asyncio.run(run())
    except NoActiveItemError:
        rprint("[yellow]⚠[/yellow] No active item. Run [cyan]tutor next[/cyan] first.")
        raise typer.Exit(1)
    _show_result(result)


@app.command("generate")
def generate(
    concept_id: str = typer.Argument(..., help="Concept id, e.g. tri.structure.hypotenuse"),
    difficulty: int = typer.Option(1, "--difficulty", "-d", min=1, max=4),
    intent: LearningIntent = typer.Option(LearningIntent.PRACTICE, "--intent"),
    local: bool = typer.Option(False, "--local", help="Use the local generator and rater"),
) -> None:
    """Generate an item without touching the learner's progress."""
    if not TRIANGLES_GRADE6.contains(concept_id):
        rprint(f"[red]Unknown concept:[/red] {concept_id}")
        raise typer.Exit(1)

    memory = InMemoryTelemetrySink()
    settings = get_settings()

    async def run() -> PresentedItem:
        tutor, components = build_tutor_session(
            telemetry=CompositeSink(memory, build_default_sink(settings.telemetry_dir)),
            use_item_service=not local,
        )
        try:
            return await tutor.orchestrator.generate_item(concept_id, difficulty, intent)
        finally:
            await components.close()

    item = asyncio.run(run())
    _show_item(item)

    table = Table(title="Attempts", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Accepted")
    table.add_column("Reason", style="dim")
    table.add_column("Rated", justify="right")
    for entry in memory.entries:
        table.add_row(
            str(entry.attempt),
            "[green]yes[/green]" if entry.accepted else "[red]no[/red]",
            entry.reason,
            str(entry.rated_overall) if entry.rated_overall is not None else "-",
        )
    console.print(table)


def _simulated_submission(item: PresentedItem, correct: bool) -> Submission:
    answer = item.answer_value
    if item.response_mode == MULTIPLE_CHOICE:
        ids = [o.id for o in item.spec.response_contract.options or []]
        wrong = next((i for i in ids if i != answer), answer)
        return Submission(choice_id=answer if correct else wrong)
    if item.response_mode == NUMERIC_INPUT:
        return Submission(numeric_value=answer if correct else str(float(answer) + 1))
    wrong = {"A": "B", "B": "C", "C": "A", "AB": "BC", "BC": "AC", "AC": "AB"}.get(answer, "AB")
    return Submission(target=answer if correct else wrong)


@app.command("simulate")
def simulate(
    steps: int = typer.Option(40, "--steps", help="Maximum items to answer"),
    accuracy: float = typer.Option(0.8, "--accuracy", min=0.0, max=1.0, help="Chance the learner answers correctly"),
    seed: int = typer.Option(0, "--seed"),
) -> None:
    """Run a simulated learner through a scratch session (local pipeline only)."""
    rng = random.Random(seed)
    settings = get_settings()

    async def run() -> tuple[int, dict]:
        with tempfile.TemporaryDirectory() as tmp:
            scratch = settings.model_copy(update={"session_path": Path(tmp) / "session.json", "telemetry_dir": None})
            tutor, components = build_tutor_session(scratch, telemetry=InMemoryTelemetrySink(), use_item_service=False)
            answered = 0
            for _ in range(steps):
                item = await tutor.next_item()
                if item is None:
                    break
                result = await tutor.submit(_simulated_submission(item, rng.random() < accuracy))
                answered += 1
                outcome = result.outcome.value if result.outcome else "error"
                rprint(f"  {answered:>3}. {item.concept_id:<45} d{item.difficulty} {outcome}")
            await components.close()
            return answered, tutor.status()

    answered, status = asyncio.run(run())
    rprint(f"\nAnswered {answered} items. Unlocked levels: {[lvl['index'] for lvl in status['levels'] if lvl['unlocked']]}")
    if status["topic_completed"]:
        rprint("[bold green]✓ Topic complete![/bold green]")


@app.command("benchmark")
def benchmark() -> None:
    """Run the grading benchmark."""
    settings = get_settings()
    metrics = asyncio.run(run_grading_benchmark(default_cases(settings.visual_ambiguity_threshold)))
    data = metrics.to_dict()

    table = Table(title="Grading Benchmark", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("total_cases", str(metrics.total_cases))
    table.add_row("overall_accuracy", f"{metrics.overall_accuracy:.2f}")
    table.add_row("ambiguity_false_positives", str(metrics.ambiguity_false_positives))
    table.add_row("ambiguity_false_negatives", str(metrics.ambiguity_false_negatives))
    table.add_section()
    for key, bucket in data["accuracy_by_concept_objective"].items():
        table.add_row(key, f"{bucket['passed']}/{bucket['total']}")
    console.print(table)
    if metrics.regression_alerts:
        rprint(f"[red]Regressions:[/red] {', '.join(metrics.regression_alerts)}")
    else:
        rprint("\n[bold green]✓ No strategy regressions[/bold green]")


@app.command("reset")
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Start the learner over."""
    if not yes and not typer.confirm("Delete all progress?"):
        raise typer.Exit(0)
    tutor, _ = build_tutor_session(use_item_service=False)
    asyncio.run(tutor.reset())
    rprint("[bold green]✓ Progress reset[/bold green]")


@app.command("info")
def show_info() -> None:
    """Show configuration."""
    settings = get_settings()

    table = Table(title="triangle-tutor Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Grade", str(settings.grade))
    table.add_row("Difficulty ceiling", str(settings.difficulty_ceiling))
    table.add_row("Max retries", str(settings.max_retries))
    table.add_row("Difficulty band", str(settings.use_difficulty_band))
    table.add_row("Item service", settings.item_service_url or "Not set (local)")
    table.add_row("Session path", str(settings.session_path))
    table.add_row("Telemetry dir", str(settings.telemetry_dir or "-"))
    table.add_row("Log Level", settings.log_level)
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    logger.remove()
    logger.add(sys.stderr, level=get_settings().log_level)
    app()


if __name__ == "__main__":
    main()
