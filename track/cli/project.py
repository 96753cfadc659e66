"""Project commands."""
from typing import Annotated

import typer

from track.cli import render
from track.cli.common import emit_json, get_state, handle_errors, success
from track.core.types import AttachFieldToProject, BundleType, CreateProject, CustomFieldType


project_app = typer.Typer(name="project", help="List and manage projects.", no_args_is_help=True)


@project_app.command("list")
def list_projects(ctx: typer.Context) -> None:
    """List every visible project."""
    state = get_state(ctx)
    with handle_errors(state):
        projects = state.tracker.list_projects()

    if state.json:
        emit_json(projects)
    else:
        render.project_table(projects)


@project_app.command("get")
def get_project(
    ctx: typer.Context,
    project: Annotated[str, typer.Argument(help="Project ID or short name.")],
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        result = state.tracker.get_project(state.tracker.resolve_project_id(project))

    if state.json:
        emit_json(result)
    else:
        render.project_detail(result)


@project_app.command("create")
def create_project(
    ctx: typer.Context,
    name: Annotated[str, typer.Option("--name", "-n", help="Display name.")],
    short_name: Annotated[str, typer.Option("--short-name", "-s", help="Short name or key, e.g. PROJ.")],
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
) -> None:
    """Create a project (YouTrack, GitLab)."""
    state = get_state(ctx)
    with handle_errors(state):
        project = state.tracker.create_project(
            CreateProject(name=name, short_name=short_name, description=description)
        )

    if state.json:
        emit_json(project)
    else:
        success(f"Created project {project.short_name or project.name} ({project.id})")


@project_app.command("fields")
def project_fields(
    ctx: typer.Context,
    project: Annotated[str | None, typer.Argument(help="Project ID or short name; defaults to the configured one.")] = None,
) -> None:
    """Show the custom fields available in a project."""
    state = get_state(ctx)
    with handle_errors(state):
        project_id = state.tracker.resolve_project_id(state.project_or_default(project))
        fields = state.tracker.get_project_custom_fields(project_id)

    if state.json:
        emit_json(fields)
    else:
        render.project_field_table(fields)


@project_app.command("users")
def project_users(
    ctx: typer.Context,
    project: Annotated[str | None, typer.Argument(help="Project ID or short name; defaults to the configured one.")] = None,
) -> None:
    """List users who can be assigned in a project."""
    state = get_state(ctx)
    with handle_errors(state):
        project_id = state.tracker.resolve_project_id(state.project_or_default(project))
        users = state.tracker.list_project_users(project_id)

    if state.json:
        emit_json(users)
    else:
        render.user_table(users)


@project_app.command("attach-field")
def attach_field(
    ctx: typer.Context,
    field_id: Annotated[str, typer.Argument(help="Custom field definition ID.")],
    project: Annotated[str | None, typer.Option("--project", "-p", help="Project ID or short name.")] = None,
    field_type: Annotated[CustomFieldType | None, typer.Option("--type", help="Field type; enum when omitted.")] = None,
    bundle_id: Annotated[str | None, typer.Option("--bundle", help="Bundle supplying the values.")] = None,
    bundle_type: Annotated[BundleType | None, typer.Option("--bundle-type", help="Bundle type; enum when omitted.")] = None,
    required: Annotated[bool, typer.Option("--required", help="Disallow empty values.")] = False,
    empty_text: Annotated[str | None, typer.Option("--empty-text", help="Text shown when unset.")] = None,
) -> None:
    """Attach a custom field definition to a project."""
    state = get_state(ctx)
    with handle_errors(state):
        project_id = state.tracker.resolve_project_id(state.project_or_default(project))
        field = state.tracker.attach_field_to_project(
            project_id,
            AttachFieldToProject(
                field_id=field_id,
                field_type=field_type,
                bundle_id=bundle_id,
                bundle_type=bundle_type,
                can_be_empty=not required,
                empty_field_text=empty_text,
            ),
        )

    if state.json:
        emit_json(field)
    else:
        success(f"Attached {field.name or field_id} to {project_id}")
