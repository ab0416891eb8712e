# ABOUTME: Provides a CLI to preview generated problems and simulate an adaptive practice session.
# ABOUTME: Prints option sets, derivation traces, and level transitions with Rich tables.

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from src.common.config import EngineConfig, load_engine_config
from src.common.errors import EngineError, public_message
from src.common.random_source import RandomSource
from src.engine.options import OptionSetBuilder
from src.engine.service import ExerciseService
from src.families import FAMILIES, get_family

console = Console()
app = typer.Typer(help="Preview generated problems and simulate adaptive practice sessions.")


def _trace_table(trace) -> Table:
    table = Table(title="Derivation")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Value")
    for i, step in enumerate(trace, start=1):
        table.add_row(str(i), step.operation, str(step.value))
    return table


@app.command()
def preview(
    family: str = typer.Option("carried-addition", "--family", help=f"One of: {', '.join(sorted(FAMILIES))}."),
    level: int = typer.Option(1, "--level", min=1, max=3, help="Difficulty level."),
    seed: int = typer.Option(7, "--seed", help="Random seed for generation."),
) -> None:
    """
    Generate one instance and show what the student sees plus the worked solution.
    """
    try:
        problem_family = get_family(family)
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0])) from exc

    rng = RandomSource(seed)
    instance = problem_family.generate(rng, level)
    solution = problem_family.solve(instance)
    distractors = problem_family.distractors(instance, solution.answer, rng)
    options = OptionSetBuilder(problem_family).build(solution.answer, distractors, rng)

    console.rule(f"[bold blue]{problem_family.title}[/bold blue] (level {instance.level})")
    console.print(f"[bold]Prompt:[/] {instance.display_payload['prompt']}")
    if instance.is_fallback:
        console.print("[yellow]Fallback instance[/yellow]")

    option_table = Table(title="Options")
    option_table.add_column("Choice")
    option_table.add_column("Value")
    option_table.add_column("Correct")
    for label, option in zip("abcdefgh", options):
        option_table.add_row(label, str(option.value), "yes" if option.is_correct else "")
    console.print(option_table)
    console.print(_trace_table(solution.trace))


@app.command()
def simulate(
    topic: str = typer.Option("carried-addition", "--topic", help="Topic id to practise."),
    accuracy: float = typer.Option(0.8, "--accuracy", min=0.0, max=1.0, help="Chance the synthetic student answers correctly."),
    attempts: int = typer.Option(40, "--attempts", min=1, help="Number of problems to answer."),
    seed: int = typer.Option(11, "--seed", help="Seed for the engine and the synthetic student."),
    config: Optional[Path] = typer.Option(None, "--config", help="Engine YAML config path."),
    student_id: str = typer.Option("demo-student", "--student-id", help="Student identifier."),
) -> None:
    """
    Drive the engine with a synthetic student and report each level change.
    """
    logging.basicConfig(level=logging.WARNING)
    engine_config = load_engine_config(config) if config else EngineConfig(seed=seed)
    service = ExerciseService(engine_config, rng=RandomSource(seed))
    student = RandomSource(seed + 1)

    table = Table(title=f"Session on {topic}")
    table.add_column("#", justify="right")
    table.add_column("Level", justify="right")
    table.add_column("Correct")
    table.add_column("New level", justify="right")

    correct_total = 0
    try:
        for i in range(1, attempts + 1):
            try:
                started = service.start_instance(topic, student_id)
                wants_correct = student.coin(accuracy)
                pick = next(o for o in started.options if o.is_correct == wants_correct)
                result = service.submit(started.instance.instance_id, pick.value, elapsed_seconds=student.randint(5, 60))
            except EngineError as exc:
                console.print(f"[red]{public_message(exc)}[/red]")
                raise typer.Exit(code=1)
            correct_total += int(result.is_correct)
            marker = f"[bold]{result.new_level}[/bold]" if result.new_level != started.instance.level else str(result.new_level)
            table.add_row(str(i), str(started.instance.level), "yes" if result.is_correct else "no", marker)
        service.classifier.drain()
        holdout = service.get_classifier_accuracy(topic)
    finally:
        service.close()

    console.print(table)
    console.print(f"[bold]Correct:[/] {correct_total}/{attempts}")
    console.print(f"[bold]Training examples:[/] {len(service.classifier.training_store(topic))}")
    console.print(f"[bold]Classifier holdout accuracy:[/] {'n/a' if holdout is None else f'{holdout:.2f}'}")


if __name__ == "__main__":
    app()
