"""Custom field and bundle administration commands."""
from typing import Annotated

import typer

from track.cli import render
from track.cli.common import emit_json, get_state, handle_errors, success
from track.core.types import BundleType, CreateBundle, CreateBundleValue, CreateCustomField, CustomFieldType


field_app = typer.Typer(name="field", help="Custom field definitions.", no_args_is_help=True)
bundle_app = typer.Typer(name="bundle", help="Value bundles for custom fields.", no_args_is_help=True)


@field_app.command("list")
def list_fields(ctx: typer.Context) -> None:
    """List custom field definitions across all projects."""
    state = get_state(ctx)
    with handle_errors(state):
        fields = state.tracker.list_custom_field_definitions()

    if state.json:
        emit_json(fields)
    else:
        render.field_definition_table(fields)


@field_app.command("create")
def create_field(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Field name.")],
    field_type: Annotated[CustomFieldType, typer.Option("--type", "-t", help="Field type.")] = CustomFieldType.SINGLE_ENUM,
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        field = state.tracker.create_custom_field(CreateCustomField(name=name, field_type=field_type))

    if state.json:
        emit_json(field)
    else:
        success(f"Created field {field.name} ({field.id})")


@bundle_app.command("list")
def list_bundles(
    ctx: typer.Context,
    bundle_type: Annotated[BundleType, typer.Option("--type", "-t", help="Bundle type.")] = BundleType.ENUM,
) -> None:
    state = get_state(ctx)
    with handle_errors(state):
        bundles = state.tracker.list_bundles(bundle_type)

    if state.json:
        emit_json(bundles)
    else:
        render.bundle_table(bundles)


@bundle_app.command("create")
def create_bundle(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Bundle name.")],
    bundle_type: Annotated[BundleType, typer.Option("--type", "-t", help="Bundle type.")] = BundleType.ENUM,
    values: Annotated[list[str] | None, typer.Option("--value", "-v", help="Initial value; repeatable.")] = None,
) -> None:
    """Create a bundle, optionally with initial values."""
    state = get_state(ctx)
    with handle_errors(state):
        bundle = state.tracker.create_bundle(
            CreateBundle(
                name=name,
                bundle_type=bundle_type,
                values=[CreateBundleValue(name=value) for value in values or []],
            )
        )

    if state.json:
        emit_json(bundle)
    else:
        success(f"Created bundle {bundle.name} ({bundle.id})")


@bundle_app.command("add-value")
def add_value(
    ctx: typer.Context,
    bundle_id: Annotated[str, typer.Argument(help="Bundle ID.")],
    value: Annotated[str, typer.Argument(help="Value name.")],
    bundle_type: Annotated[BundleType, typer.Option("--type", "-t", help="Bundle type.")] = BundleType.ENUM,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    resolved: Annotated[bool | None, typer.Option("--resolved/--unresolved", help="State bundles only.")] = None,
) -> None:
    """Add a value to an existing bundle."""
    state = get_state(ctx)
    with handle_errors(state):
        added = state.tracker.add_bundle_values(
            bundle_id,
            bundle_type,
            [CreateBundleValue(name=value, description=description, is_resolved=resolved)],
        )

    if state.json:
        emit_json(added)
    else:
        success(f"Added {', '.join(v.name for v in added) or value} to {bundle_id}")
