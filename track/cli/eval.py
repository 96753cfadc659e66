"""Commands for evaluating recorded runs against mock scenarios.

Typical loop::

    track eval clear ./scenarios/basic-workflow
    TRACK_MOCK_DIR=./scenarios/basic-workflow track issue get DEMO-1
    track eval run ./scenarios/basic-workflow --min-score 70
"""
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from track.cli import render
from track.cli.common import console, emit_json, get_state, handle_errors, success
from track.mock import MOCK_DIR_ENV, get_mock_dir
from track.mock.call_log import call_log_path, clear_call_log, read_call_log
from track.mock.evaluator import EvaluationResult, Evaluator
from track.mock.scenario import MANIFEST_FILENAME, SCENARIO_FILENAME, Scenario, find_scenarios


eval_app = typer.Typer(name="eval", help="Evaluate runs against mock scenarios.", no_args_is_help=True)

DEFAULT_SCENARIOS_PATH = Path("./fixtures/scenarios")

ScenarioArg = Annotated[Path, typer.Argument(help="Scenario directory (holds scenario.toml).")]
MinScore = Annotated[int, typer.Option("--min-score", min=0, max=100, help="Minimum score percentage to pass.")]
ScenariosPath = Annotated[Path, typer.Option("--path", help="Directory holding scenario directories.")]


def passes(result: EvaluationResult, min_score: int, strict: bool) -> bool:
    if strict and not result.success:
        return False
    return round(result.score * 100) >= min_score


@eval_app.command("run")
def run(
    ctx: typer.Context,
    scenario: ScenarioArg,
    min_score: MinScore = 0,
    strict: Annotated[bool, typer.Option("--strict", help="Fail unless every criterion holds.")] = False,
) -> None:
    """Score the scenario's call log; exit 1 when below --min-score."""
    state = get_state(ctx)
    with handle_errors(state):
        result = Evaluator.from_dir(scenario).evaluate_dir(scenario)

    if state.json:
        emit_json(result)
    else:
        render.evaluation(result)
    if not passes(result, min_score, strict):
        raise typer.Exit(1)


@eval_app.command("run-all")
def run_all(
    ctx: typer.Context,
    path: ScenariosPath = DEFAULT_SCENARIOS_PATH,
    min_score: MinScore = 70,
    fail_fast: Annotated[bool, typer.Option("--fail-fast", help="Stop at the first failing scenario.")] = False,
) -> None:
    """Score every scenario under --path."""
    state = get_state(ctx)
    results: list[EvaluationResult] = []
    failed = 0
    with handle_errors(state):
        for directory in find_scenarios(path):
            result = Evaluator.from_dir(directory).evaluate_dir(directory)
            results.append(result)
            if not passes(result, min_score, strict=False):
                failed += 1
                if fail_fast:
                    break

    if state.json:
        emit_json(results)
    else:
        for result in results:
            render.evaluation(result)
        console.print(f"\n{len(results) - failed}/{len(results)} scenarios passed")
    if failed:
        raise typer.Exit(1)


@eval_app.command("show")
def show(ctx: typer.Context, scenario: ScenarioArg) -> None:
    """Show the scenario's prompt and what it expects."""
    state = get_state(ctx)
    with handle_errors(state):
        loaded = Scenario.load_from_dir(scenario)

    if state.json:
        emit_json(loaded.model_dump(mode="json"))
    else:
        render.scenario_detail(loaded)


@eval_app.command("clear")
def clear(ctx: typer.Context, scenario: ScenarioArg) -> None:
    """Empty the scenario's call log before a new run."""
    state = get_state(ctx)
    with handle_errors(state):
        clear_call_log(scenario)

    if state.json:
        emit_json({"cleared": str(call_log_path(scenario))})
    else:
        success(f"Cleared {call_log_path(scenario)}")


@eval_app.command("clear-all")
def clear_all(ctx: typer.Context, path: ScenariosPath = DEFAULT_SCENARIOS_PATH) -> None:
    state = get_state(ctx)
    cleared = []
    with handle_errors(state):
        for directory in find_scenarios(path):
            clear_call_log(directory)
            cleared.append(directory.name)

    if state.json:
        emit_json({"cleared": cleared})
    else:
        success(f"Cleared {len(cleared)} call logs")


@eval_app.command("list")
def list_scenarios(ctx: typer.Context, path: ScenariosPath = DEFAULT_SCENARIOS_PATH) -> None:
    """List scenarios under --path."""
    state = get_state(ctx)
    with handle_errors(state):
        scenarios = [(d, Scenario.load_from_dir(d)) for d in find_scenarios(path)]

    if state.json:
        emit_json(
            [
                {
                    "path": str(directory),
                    "name": loaded.name,
                    "description": loaded.scenario.description,
                    "difficulty": loaded.scenario.difficulty,
                    "backend": loaded.scenario.backend,
                    "tags": loaded.scenario.tags,
                }
                for directory, loaded in scenarios
            ]
        )
        return
    if not scenarios:
        console.print(f"[yellow]No scenarios found in {path}[/yellow]")
        return
    table = Table(title="Scenarios")
    table.add_column("Name", style="cyan")
    table.add_column("Difficulty")
    table.add_column("Backend", style="green")
    table.add_column("Description")
    for _, loaded in scenarios:
        table.add_row(
            escape(loaded.name),
            escape(loaded.scenario.difficulty),
            escape(loaded.scenario.backend),
            escape(loaded.scenario.description),
        )
    console.print(table)


@eval_app.command("status")
def status(ctx: typer.Context) -> None:
    """Report whether mock mode is on and what the active scenario holds."""
    state = get_state(ctx)
    mock_dir = get_mock_dir()
    info: dict[str, object] = {"mock_enabled": mock_dir is not None, "mock_dir": str(mock_dir) if mock_dir else None}
    if mock_dir is not None:
        with handle_errors(state):
            info["scenario_file"] = (mock_dir / SCENARIO_FILENAME).is_file()
            info["manifest_file"] = (mock_dir / MANIFEST_FILENAME).is_file()
            info["logged_calls"] = len(read_call_log(mock_dir)) if mock_dir.is_dir() else 0

    if state.json:
        emit_json(info)
        return
    if mock_dir is None:
        console.print(f"Mock mode: [yellow]off[/yellow] (set {MOCK_DIR_ENV} to a scenario directory)")
        return
    console.print(f"Mock mode: [green]on[/green] ({mock_dir})", highlight=False)
    for label, key in (("scenario.toml", "scenario_file"), ("manifest.toml", "manifest_file")):
        mark = "[green]✓[/green]" if info[key] else "[red]✗[/red]"
        console.print(f"  {mark} {label}")
    console.print(f"  Logged calls: {info['logged_calls']}")
