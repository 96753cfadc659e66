"""Issue commands: read, search, write, comment and link."""
from typing import Annotated

import typer

from track.cli import render
from track.cli.common import console, emit_json, get_state, handle_errors, success
from track.core.exceptions import InvalidInputError
from track.core.pagination import fetch_all_pages
from track.core.types import (
    CreateIssue,
    CustomFieldUpdate,
    LinkDirection,
    SingleEnumUpdate,
    SingleUserUpdate,
    StateUpdate,
    UpdateIssue,
)


issue_app = typer.Typer(name="issue", help="Read and change issues.", no_args_is_help=True)

SEARCH_PAGE_SIZE = 100


def parse_field_options(values: list[str] | None) -> list[CustomFieldUpdate]:
    """Turn ``NAME=VALUE`` options into custom field updates.

    ``State``/``Status`` become state updates and ``Assignee`` a user update;
    anything else is an enum update.

    Raises:
        InvalidInputError: If an option has no ``=``.
    """
    updates: list[CustomFieldUpdate] = []
    for raw in values or []:
        name, sep, value = raw.partition("=")
        name, value = name.strip(), value.strip()
        if not sep or not name:
            raise InvalidInputError("field", f"expected NAME=VALUE, got '{raw}'")
        lowered = name.lower()
        if lowered in ("state", "status"):
            updates.append(StateUpdate(name=name, value=value))
        elif lowered == "assignee":
            updates.append(SingleUserUpdate(name=name, login=value))
        else:
            updates.append(SingleEnumUpdate(name=name, value=value))
    return updates


@issue_app.command("get")
def get_issue(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID or key, e.g. PROJ-17.")],
    full: Annotated[bool, typer.Option("--full", help="Also show links and comments.")] = False,
) -> None:
    """Show one issue."""
    state = get_state(ctx)
    with handle_errors(state):
        issue = state.tracker.get_issue(issue_id)
        links = state.tracker.get_issue_links(issue_id) if full else []
        comments = state.tracker.get_comments(issue_id) if full else []

    if state.json:
        if full:
            emit_json({**issue.model_dump(mode="json"), "links": links, "comments": comments})
        else:
            emit_json(issue)
        return
    render.issue_detail(issue)
    if full:
        console.print("\n[bold]Links[/bold]")
        render.link_list(links)
        console.print("\n[bold]Comments[/bold]")
        render.comment_list(comments)


@issue_app.command("search")
def search_issues(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Query in the backend's own language.")] = "",
    limit: Annotated[int, typer.Option("--limit", "-l", min=1, help="Page size.")] = 20,
    skip: Annotated[int, typer.Option("--skip", min=0, help="Results to skip.")] = 0,
    all_pages: Annotated[bool, typer.Option("--all", help="Fetch every page (capped by TRACK_MAX_RESULTS).")] = False,
) -> None:
    """Search issues; the query is passed to the backend untranslated."""
    state = get_state(ctx)
    with handle_errors(state):
        tracker = state.tracker
        if all_pages:
            issues = fetch_all_pages(
                lambda offset, size: tracker.search_issues(query, size, offset).items,
                SEARCH_PAGE_SIZE,
                state.config.max_results,
            )
            total = len(issues)
        else:
            result = tracker.search_issues(query, limit, skip)
            issues, total = result.items, result.total

    if state.json:
        emit_json(issues)
    else:
        render.issue_table(issues, total)


@issue_app.command("count")
def count_issues(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Query in the backend's own language.")] = "",
) -> None:
    """Count matching issues without fetching them."""
    state = get_state(ctx)
    with handle_errors(state):
        count = state.tracker.get_issue_count(query)

    if state.json:
        emit_json({"count": count})
    elif count is None:
        console.print("[yellow]Count not available for this backend.[/yellow]")
    else:
        console.print(str(count))


@issue_app.command("create")
def create_issue(
    ctx: typer.Context,
    summary: Annotated[str, typer.Option("--summary", "-s", help="Issue title.")],
    project: Annotated[str | None, typer.Option("--project", "-p", help="Project ID or short name.")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    issue_state: Annotated[str | None, typer.Option("--state", help="Initial state, e.g. open.")] = None,
    assignee: Annotated[str | None, typer.Option("--assignee", "-a", help="Assignee login.")] = None,
    tags: Annotated[list[str] | None, typer.Option("--tag", "-t", help="Tag; repeat or comma-separate.")] = None,
    parent: Annotated[str | None, typer.Option("--parent", help="Parent issue for a subtask.")] = None,
    fields: Annotated[list[str] | None, typer.Option("--field", "-f", help="Custom field as NAME=VALUE.")] = None,
) -> None:
    """Create an issue and print its key."""
    state = get_state(ctx)
    with handle_errors(state):
        project_ref = state.project_or_default(project)
        project_id = state.tracker.resolve_project_id(project_ref)
        intent = CreateIssue(
            project_id=project_id,
            summary=summary,
            description=description,
            state=issue_state,
            assignees=[assignee] if assignee else None,
            tags=[t for tag in tags or [] for t in tag.split(",")],
            parent=parent,
            custom_fields=parse_field_options(fields),
        )
        issue = state.tracker.create_issue(intent)

    if state.json:
        emit_json(issue)
    else:
        success(f"Created {issue.key}")


@issue_app.command("update")
def update_issue(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID or key.")],
    summary: Annotated[str | None, typer.Option("--summary", "-s")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    issue_state: Annotated[str | None, typer.Option("--state", help="New state, e.g. closed.")] = None,
    assignee: Annotated[str | None, typer.Option("--assignee", "-a")] = None,
    tags: Annotated[list[str] | None, typer.Option("--tag", "-t", help="Replace tags; repeat or comma-separate.")] = None,
    fields: Annotated[list[str] | None, typer.Option("--field", "-f", help="Custom field as NAME=VALUE.")] = None,
) -> None:
    """Change the given fields of an issue; everything else is left alone."""
    state = get_state(ctx)
    with handle_errors(state):
        update = UpdateIssue(
            summary=summary,
            description=description,
            state=issue_state,
            assignees=[assignee] if assignee else None,
            tags=[t for tag in tags for t in tag.split(",")] if tags else None,
            custom_fields=parse_field_options(fields),
        )
        if update.is_empty():
            raise InvalidInputError("update", "nothing to change")
        issue = state.tracker.update_issue(issue_id, update)

    if state.json:
        emit_json(issue)
    else:
        success(f"Updated {issue.key}")


@issue_app.command("delete")
def delete_issue(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID or key.")],
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        state.tracker.delete_issue(issue_id)

    if state.json:
        emit_json({"deleted": issue_id})
    else:
        success(f"Deleted {issue_id}")


@issue_app.command("comment")
def add_comment(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID or key.")],
    message: Annotated[str, typer.Option("--message", "-m", help="Comment text.")],
) -> None:
    """Add a comment to an issue."""
    state = get_state(ctx)
    with handle_errors(state):
        comment = state.tracker.add_comment(issue_id, message)

    if state.json:
        emit_json(comment)
    else:
        success(f"Commented on {issue_id}")


@issue_app.command("comments")
def list_comments(
    ctx: typer.Context,
    issue_id: Annotated[str, typer.Argument(help="Issue ID or key.")],
    limit: Annotated[int | None, typer.Option("--limit", "-l", min=1, help="Show at most this many.")] = None,
) -> None:
    """List the comments on an issue, oldest first."""
    state = get_state(ctx)
    with handle_errors(state):
        comments = state.tracker.get_comments(issue_id)
    if limit is not None:
        comments = comments[:limit]

    if state.json:
        emit_json(comments)
    else:
        render.comment_list(comments)


@issue_app.command("link")
def link_issues(
    ctx: typer.Context,
    source: Annotated[str, typer.Argument(help="Source issue.")],
    target: Annotated[str, typer.Argument(help="Target issue.")],
    link_type: Annotated[str, typer.Option("--type", help="Link type name, e.g. relates, depends.")] = "relates",
    direction: Annotated[LinkDirection, typer.Option("--direction", case_sensitive=False)] = LinkDirection.OUTWARD,
) -> None:
    """Link two issues."""
    state = get_state(ctx)
    with handle_errors(state):
        state.tracker.link_issues(source, target, link_type, direction.value)

    if state.json:
        emit_json({"source": source, "target": target, "type": link_type, "direction": direction.value})
    else:
        success(f"Linked {source} -> {target} ({link_type})")


@issue_app.command("links")
def list_links(
    ctx: typer.Context,
    issue_id: Annotated[str | None, typer.Argument(help="Issue ID or key.")] = None,
    types: Annotated[bool, typer.Option("--types", help="List the available link types instead.")] = False,
) -> None:
    """Show the links of an issue."""
    state = get_state(ctx)
    with handle_errors(state):
        if types:
            link_types = state.tracker.list_link_types()
        elif not issue_id:
            raise InvalidInputError("issue_id", "give an issue or pass --types")
        else:
            links = state.tracker.get_issue_links(issue_id)

    if types:
        if state.json:
            emit_json(link_types)
        else:
            render.link_type_table(link_types)
    elif state.json:
        emit_json(links)
    else:
        render.link_list(links)


@issue_app.command("subtask")
def link_subtask(
    ctx: typer.Context,
    child: Annotated[str, typer.Argument(help="Child issue.")],
    parent: Annotated[str, typer.Argument(help="Parent issue.")],
) -> None:
    """Make CHILD a subtask of PARENT."""
    state = get_state(ctx)
    with handle_errors(state):
        state.tracker.link_subtask(child, parent)

    if state.json:
        emit_json({"child": child, "parent": parent})
    else:
        success(f"{child} is now a subtask of {parent}")
