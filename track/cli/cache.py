"""Local metadata cache and the ``context`` overview built from it."""
from datetime import UTC, datetime
from typing import Annotated

import typer
from rich.markup import escape

from track.cache import (
    IssueSummary,
    TrackerCache,
    build_cache,
    cache_path,
    load_cache,
    parse_duration,
    save_cache,
    unresolved_query,
)
from track.cli import render
from track.cli.common import AppState, console, emit_json, err_console, get_state, handle_errors, success
from track.core.exceptions import TrackError


cache_app = typer.Typer(
    name="cache",
    help="Keep projects, fields and tags in ./.tracker-cache.json.",
    no_args_is_help=True,
)


def _refresh(state: AppState) -> TrackerCache:
    config = state.config
    cache = build_cache(state.tracker, config.backend, config.url, state.default_project())
    save_cache(cache)
    return cache


@cache_app.command("refresh")
def refresh_cache(
    ctx: typer.Context,
    if_stale: Annotated[
        str | None, typer.Option("--if-stale", help="Only refresh when older than this, e.g. 30m, 1h, 1d.")
    ] = None,
) -> None:
    """Fetch metadata from the tracker and rewrite the cache."""
    state = get_state(ctx)
    with handle_errors(state):
        if if_stale is not None:
            max_age = parse_duration(if_stale)
            current = load_cache()
            if not current.is_stale(max_age):
                if state.json:
                    emit_json({"refreshed": False, "updated_at": current.updated_at})
                else:
                    console.print(f"Cache is fresh (updated {render.when(current.updated_at)})", highlight=False)
                return
        cache = _refresh(state)

    if state.json:
        emit_json(
            {
                "refreshed": True,
                "path": str(cache_path()),
                "updated_at": cache.updated_at,
                "projects": len(cache.projects),
                "tags": len(cache.tags),
            }
        )
    else:
        success(f"Cache refreshed: {len(cache.projects)} projects, {len(cache.tags)} tags")


@cache_app.command("status")
def cache_status(ctx: typer.Context) -> None:
    """Show where the cache is and how old it is."""
    state = get_state(ctx)
    with handle_errors(state):
        path = cache_path()
        cache = load_cache(path)
    age = cache.age()

    if state.json:
        emit_json(
            {
                "path": str(path),
                "exists": path.exists(),
                "updated_at": cache.updated_at,
                "age_seconds": int(age.total_seconds()) if age is not None else None,
                "projects": len(cache.projects),
                "tags": len(cache.tags),
            }
        )
    elif not path.exists():
        console.print(f"[yellow]No cache at {path}.[/yellow] Run 'track cache refresh'.", highlight=False)
    else:
        console.print(f"Path: {path}", highlight=False)
        console.print(f"Updated: {render.when(cache.updated_at)}", highlight=False)
        if age is not None:
            console.print(f"Age: {int(age.total_seconds() // 60)} minutes", highlight=False)
        console.print(f"Projects: {len(cache.projects)}  Tags: {len(cache.tags)}", highlight=False)


@cache_app.command("show")
def show_cache(ctx: typer.Context) -> None:
    """Print the cached metadata."""
    state = get_state(ctx)
    with handle_errors(state):
        cache = load_cache()

    if state.json:
        emit_json(cache)
    elif cache.is_empty():
        console.print("[yellow]Cache is empty.[/yellow] Run 'track cache refresh' to populate it.")
    else:
        render.tracker_context(cache)


@cache_app.command("path")
def show_cache_path() -> None:
    """Print the cache file location."""
    typer.echo(str(cache_path()))


def context(
    ctx: typer.Context,
    project: Annotated[str | None, typer.Option("--project", "-p", help="Only this project (ID or short name).")] = None,
    refresh: Annotated[bool, typer.Option("--refresh", help="Rebuild the cache first.")] = False,
    include_issues: Annotated[
        bool, typer.Option("--include-issues", help="Add open issues of the project or default project.")
    ] = False,
    issue_limit: Annotated[int, typer.Option("--issue-limit", min=1, help="Open issues to include.")] = 10,
) -> None:
    """Everything an assistant needs to know about this tracker, in one call.

    Reads the cache and builds it first when it is missing or empty.
    """
    state = get_state(ctx)
    issues: list[IssueSummary] | None = None
    with handle_errors(state):
        cache = load_cache()
        if refresh or cache.is_empty():
            cache = _refresh(state)
        default_project = state.default_project()
        if project:
            cache = cache.for_project(project)
        target = project or default_project
        if include_issues and target:
            try:
                found = state.tracker.search_issues(
                    unresolved_query(state.config.backend, target), limit=issue_limit, skip=0
                )
            except TrackError as e:
                err_console.print(
                    f"[yellow]Warning:[/yellow] could not fetch issues: {escape(str(e))}", highlight=False
                )
            else:
                issues = [IssueSummary.from_issue(issue) for issue in found.items]

    if state.json:
        payload = {
            "generated_at": datetime.now(UTC),
            "default_project": default_project,
            **cache.model_dump(mode="json", exclude={"updated_at"}),
            "cached_at": cache.updated_at,
        }
        if issues is not None:
            payload["issues"] = issues
        emit_json(payload)
    else:
        render.tracker_context(cache, default_project, issues)
