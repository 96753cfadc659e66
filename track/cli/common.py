"""Shared state, error handling and output helpers for the command groups."""
import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape

from track.config import TrackConfig, load_config
from track.core.exceptions import TrackError
from track.prefs import load_prefs
from track.trackers.base import IssueTracker, KnowledgeBase
from track.trackers.factory import create_knowledge_base, create_tracker


console = Console()
err_console = Console(stderr=True)


class OutputFormat(StrEnum):
    TEXT = "text"
    JSON = "json"


class AppState:
    """Global options, with configuration and tracker built on first use."""

    def __init__(
        self,
        output: OutputFormat = OutputFormat.TEXT,
        config_path: Path | None = None,
        backend: str | None = None,
        url: str | None = None,
        token: str | None = None,
    ) -> None:
        self.output = output
        self.config_path = config_path
        self.backend = backend
        self.url = url
        self.token = token
        self._config: TrackConfig | None = None
        self._tracker: IssueTracker | None = None
        self._knowledge_base: KnowledgeBase | None = None

    @property
    def json(self) -> bool:
        return self.output == OutputFormat.JSON

    @property
    def config(self) -> TrackConfig:
        if self._config is None:
            self._config = load_config(self.config_path, self.backend, self.url, self.token)
        return self._config

    @property
    def tracker(self) -> IssueTracker:
        if self._tracker is None:
            self._tracker = create_tracker(self.config)
        return self._tracker

    @property
    def knowledge_base(self) -> KnowledgeBase:
        if self._knowledge_base is None:
            self._knowledge_base = create_knowledge_base(self.config, self.tracker)
        return self._knowledge_base

    def default_project(self) -> str | None:
        """The local default from ``track config project``, else ``default_project`` from config."""
        return load_prefs().default_project_id or self.config.default_project

    def project_or_default(self, project: str | None) -> str:
        """The given project, else the default project.

        Raises:
            typer.BadParameter: If none is available.
        """
        project = project or self.default_project()
        if project:
            return project
        raise typer.BadParameter(
            "No project given. Pass -p/--project or set one with 'track config project <ID>'."
        )


def get_state(ctx: typer.Context) -> AppState:
    state = ctx.find_root().obj
    if not isinstance(state, AppState):
        state = AppState()
        ctx.find_root().obj = state
    return state


def print_error(error: TrackError, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps({"error": error.to_dict()}), err=True)
    else:
        err_console.print(f"[red]Error:[/red] {escape(str(error))}", highlight=False, soft_wrap=True)


@contextmanager
def handle_errors(state: AppState) -> Iterator[None]:
    """Turn TrackError into a one-line message and the matching exit code.

    Raises:
        typer.Exit: With the error's exit code.
    """
    try:
        yield
    except TrackError as e:
        logger.debug("Command failed", kind=e.kind, cause=repr(e.__cause__) if e.__cause__ else None)
        print_error(e, state.json)
        raise typer.Exit(code=e.exit_code) from None


def to_jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


def emit_json(value: Any) -> None:
    typer.echo(json.dumps(to_jsonable(value), indent=2, ensure_ascii=False))


def success(message: str) -> None:
    console.print(f"[green]✓[/green] {escape(message)}", highlight=False, soft_wrap=True)
