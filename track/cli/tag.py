"""Tag (label) commands."""
from typing import Annotated

import typer

from track.cli import render
from track.cli.common import emit_json, get_state, handle_errors, success
from track.core.types import CreateTag


tag_app = typer.Typer(name="tag", help="List and manage tags.", no_args_is_help=True)


@tag_app.command("list")
def list_tags(ctx: typer.Context) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        tags = state.tracker.list_tags()

    if state.json:
        emit_json(tags)
    else:
        render.tag_table(tags)


@tag_app.command("create")
def create_tag(
    ctx: typer.Context,
    name: Annotated[str, typer.Option("--name", "-n", help="Tag name.")],
    color: Annotated[str | None, typer.Option("--color", "-c", help="Hex color, with or without '#'.")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
) -> None:
    """Create a tag. Colors are stored as six lowercase hex digits."""
    state = get_state(ctx)
    with handle_errors(state):
        tag = state.tracker.create_tag(CreateTag(name=name, color=color, description=description))

    if state.json:
        emit_json(tag)
    else:
        success(f"Created tag {tag.name}")


@tag_app.command("update")
def update_tag(
    ctx: typer.Context,
    current_name: Annotated[str, typer.Argument(help="Existing tag name.")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New name.")] = None,
    color: Annotated[str | None, typer.Option("--color", "-c")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
) -> None:
    """Rename or recolor a tag."""
    state = get_state(ctx)
    with handle_errors(state):
        tag = state.tracker.update_tag(
            current_name, CreateTag(name=name or current_name, color=color, description=description)
        )

    if state.json:
        emit_json(tag)
    else:
        success(f"Updated tag {tag.name}")


@tag_app.command("delete")
def delete_tag(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Tag name.")],
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        state.tracker.delete_tag(name)

    if state.json:
        emit_json({"deleted": name})
    else:
        success(f"Deleted tag {name}")
