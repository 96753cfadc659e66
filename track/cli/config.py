"""CLI commands for configuration and local preferences."""
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from track.cli.common import console, emit_json, get_state, handle_errors, success
from track.config import config_path, normalize_backend, set_config_value
from track.core.exceptions import ProjectNotFoundError
from track.core.types import Project
from track.prefs import clear_prefs, load_prefs, prefs_path, save_prefs


config_app = typer.Typer(name="config", help="Configuration and default project.", no_args_is_help=True)


def _mask(secret: str | None) -> str:
    if not secret:
        return "-"
    return f"{secret[:4]}…" if len(secret) > 8 else "****"


def match_project(projects: list[Project], identifier: str) -> Project:
    """Find a project by ID, short name (case-insensitive), or name.

    Raises:
        ProjectNotFoundError: If nothing matches.
    """
    lowered = identifier.lower()
    for project in projects:
        if project.id == identifier:
            return project
    for project in projects:
        if project.short_name.lower() == lowered:
            return project
    for project in projects:
        if project.name.lower() == lowered:
            return project
    raise ProjectNotFoundError(identifier)


@config_app.command("show")
def show_config(ctx: typer.Context) -> None:
    """Show the effective configuration and the default project."""
    state = get_state(ctx)
    with handle_errors(state):
        config = state.config
        prefs = load_prefs()

    if state.json:
        data = config.model_dump(mode="json", exclude={"token"})
        data["token_set"] = bool(config.token)
        data["default_project_id"] = prefs.default_project_id
        data["default_project_name"] = prefs.default_project_name
        emit_json(data)
        return

    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Backend", config.backend)
    table.add_row("URL", escape(config.url or "-"))
    table.add_row("Token", _mask(config.token))
    if config.email:
        table.add_row("Email", escape(config.email))
    if config.owner or config.repo:
        table.add_row("Repository", escape(f"{config.owner}/{config.repo}"))
    if config.project_id:
        table.add_row("Project ID", escape(config.project_id))
    table.add_row("Config file", str(config.path or "(none)"))
    if config.mock_dir:
        table.add_row("Mock scenario", str(config.mock_dir))
    if prefs.default_project_id:
        table.add_row(
            "Default project",
            escape(f"{prefs.default_project_name or ''} ({prefs.default_project_id})".strip()),
        )
    elif config.default_project:
        table.add_row("Default project", escape(config.default_project))
    console.print(table)


@config_app.command("project")
def set_default_project(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project ID, short name, or name.")],
) -> None:
    """Remember a default project for commands in this directory."""
    state = get_state(ctx)
    with handle_errors(state):
        chosen = match_project(state.tracker.list_projects(), project)
        prefs = load_prefs()
        prefs.set_default_project(chosen.id, chosen.short_name or chosen.name)
        path = save_prefs(prefs)

    if state.json:
        emit_json(prefs)
    else:
        success(f"Default project set to {chosen.short_name or chosen.name} ({chosen.id}) in {path.name}")


@config_app.command("clear")
def clear(ctx: typer.Context) -> None:
    """Forget the default project."""
    state = get_state(ctx)
    with handle_errors(state):
        removed = clear_prefs()

    if state.json:
        emit_json({"cleared": removed})
    elif removed:
        success("Cleared local preferences")
    else:
        console.print("[yellow]No local preferences to clear.[/yellow]")


@config_app.command("path")
def show_paths(ctx: typer.Context) -> None:
    """Print where the config and preference files live."""
    state = get_state(ctx)
    config_file = config_path(state.config_path)
    prefs_file = prefs_path()
    if state.json:
        emit_json({"config": str(config_file), "prefs": str(prefs_file)})
    else:
        console.print(f"Config: {config_file}", highlight=False, soft_wrap=True)
        console.print(f"Preferences: {prefs_file}", highlight=False, soft_wrap=True)


@config_app.command("set")
def set_value(
    ctx: typer.Context,
    key: Annotated[str, typer.Argument(help="Key, dotted for backend tables (e.g. github.token).")],
    value: Annotated[str, typer.Argument(help="Value to store.")],
) -> None:
    """Write a value to the config file."""
    state = get_state(ctx)
    path = config_path(state.config_path)
    with handle_errors(state):
        set_config_value(path, key, value)

    if state.json:
        emit_json({"key": key, "path": str(path)})
    else:
        success(f"Set {key} in {path}")


@config_app.command("backend")
def set_backend(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="youtrack, github, gitlab, jira (or yt, gh, gl, j).")],
) -> None:
    """Select the default backend in the config file."""
    state = get_state(ctx)
    path = config_path(state.config_path)
    with handle_errors(state):
        backend = normalize_backend(name)
        set_config_value(path, "backend", backend)

    if state.json:
        emit_json({"backend": backend, "path": str(path)})
    else:
        success(f"Default backend set to {backend}")
