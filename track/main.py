import sys
from pathlib import Path
from typing import Annotated

import click
import typer
from loguru import logger

from track import __version__
from track.cli.article import article_app
from track.cli.cache import cache_app, context
from track.cli.common import AppState, OutputFormat, err_console
from track.cli.config import config_app
from track.cli.eval import eval_app
from track.cli.field import bundle_app, field_app
from track.cli.issue import issue_app
from track.cli.project import project_app
from track.cli.tag import tag_app
from track.core.exceptions import EXIT_INTERRUPTED, EXIT_USER_ERROR, TrackError
from track.logging import configure_logging, resolve_level
from track.mock import get_mock_dir, log_cli_command

# Newer typer releases raise exceptions from their own bundled click.
_CLICK_ERRORS = tuple(
    {click.ClickException, *(cls for cls in typer.BadParameter.__mro__ if cls.__name__ == "ClickException")}
)
_ABORTS = (click.Abort, typer.Abort, KeyboardInterrupt)


app = typer.Typer(
    name="track",
    help="One CLI for YouTrack, Jira, GitHub and GitLab issues.",
    no_args_is_help=True,
)
app.add_typer(issue_app, name="issue")
app.add_typer(project_app, name="project")
app.add_typer(tag_app, name="tag")
app.add_typer(field_app, name="field")
app.add_typer(bundle_app, name="bundle")
app.add_typer(article_app, name="article")
app.add_typer(config_app, name="config")
app.add_typer(cache_app, name="cache")
app.add_typer(eval_app, name="eval")
app.command("context")(context)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"track {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format.")] = OutputFormat.TEXT,
    backend: Annotated[
        str | None, typer.Option("--backend", "-b", help="youtrack, jira, github, gitlab (or yt, j, gh, gl).")
    ] = None,
    config: Annotated[Path | None, typer.Option("--config", help="Config file (default ./.track.toml).")] = None,
    url: Annotated[str | None, typer.Option("--url", help="Backend URL, overriding the config file.")] = None,
    token: Annotated[str | None, typer.Option("--token", help="API token, overriding the config file.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log requests and decisions to stderr.")] = False,
    version: Annotated[
        bool, typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version.")
    ] = False,
) -> None:
    """
    track: a unified issue tracker CLI.
    """
    configure_logging(resolve_level(verbose))
    ctx.obj = AppState(output=output, config_path=config, backend=backend, url=url, token=token)


def run(argv: list[str]) -> int:
    """Run the command line and return the process exit code."""
    try:
        rv = app(args=argv, prog_name="track", standalone_mode=False)
    except _CLICK_ERRORS as e:
        e.show()
        return EXIT_USER_ERROR
    except _ABORTS:
        err_console.print("[yellow]Interrupted[/yellow]")
        return EXIT_INTERRUPTED
    return rv if isinstance(rv, int) else 0


def main() -> None:
    """Console script entry point."""
    argv = sys.argv[1:]
    code = run(argv)
    mock_dir = get_mock_dir()
    if mock_dir is not None and mock_dir.is_dir():
        try:
            log_cli_command(mock_dir, argv, code)
        except TrackError as e:
            logger.warning("Could not record command in call log", error=str(e))
    sys.exit(code)


if __name__ == "__main__":
    main()
