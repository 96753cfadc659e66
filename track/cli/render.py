"""Human-readable rendering with rich."""
from datetime import datetime

from rich.markup import escape
from rich.table import Table

from track.cache import IssueSummary, TrackerCache
from track.cli.common import console
from track.core.types import (
    Article,
    ArticleAttachment,
    BundleDefinition,
    Comment,
    CustomFieldDefinition,
    Issue,
    IssueLink,
    IssueLinkType,
    Project,
    ProjectCustomField,
    SingleEnumField,
    SingleUserField,
    StateField,
    StateKind,
    Tag,
    TextField,
    UnknownField,
    User,
)
from track.core.utils import display_color
from track.mock.evaluator import EvaluationResult
from track.mock.scenario import Scenario


STATE_STYLES = {StateKind.OPEN: "green", StateKind.CLOSED: "magenta", StateKind.OTHER: "yellow"}


def when(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _state(issue: Issue) -> str:
    if issue.state is None:
        return "-"
    style = STATE_STYLES[issue.state.kind]
    return f"[{style}]{escape(issue.state.name)}[/{style}]"


def _field_value(field: object) -> str:
    if isinstance(field, SingleUserField):
        return field.display_name or field.login or "-"
    if isinstance(field, (SingleEnumField, StateField, TextField, UnknownField)):
        return field.value or "-"
    return "-"


def issue_detail(issue: Issue) -> None:
    console.print(f"[bold cyan]{escape(issue.key)}[/bold cyan] {escape(issue.summary)}", highlight=False)
    console.print(f"  State: {_state(issue)}", highlight=False)
    if issue.project:
        project = issue.project.short_name or issue.project.name or issue.project.id
        console.print(f"  Project: {escape(project)}", highlight=False)
    if issue.assignees:
        console.print(f"  Assignees: {escape(', '.join(u.handle for u in issue.assignees))}", highlight=False)
    if issue.reporter:
        console.print(f"  Reporter: {escape(issue.reporter.handle)}", highlight=False)
    if issue.tags:
        console.print(f"  Tags: {escape(', '.join(issue.tags))}", highlight=False)
    if issue.milestone:
        console.print(f"  Milestone: {escape(issue.milestone)}", highlight=False)
    if issue.parent:
        console.print(f"  Parent: {escape(issue.parent.id_readable or issue.parent.id)}", highlight=False)
    console.print(f"  Created: {when(issue.created)}  Updated: {when(issue.updated)}", highlight=False)
    if issue.closed_at:
        console.print(f"  Closed: {when(issue.closed_at)}", highlight=False)
    shown = {"state", "status", "assignee"}
    for field in issue.custom_fields:
        if field.name.lower() not in shown:
            console.print(f"  {escape(field.name)}: {escape(_field_value(field))}", highlight=False)
    if issue.description:
        console.print()
        console.print(escape(issue.description), highlight=False)


def issue_table(issues: list[Issue], total: int | None = None) -> None:
    if not issues:
        console.print("[yellow]No issues found.[/yellow]")
        return
    table = Table()
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Summary")
    table.add_column("State")
    table.add_column("Assignee", style="blue")
    for issue in issues:
        table.add_row(
            escape(issue.key),
            escape(issue.summary),
            _state(issue),
            escape(", ".join(u.handle for u in issue.assignees)) or "-",
        )
    console.print(table)
    if total is not None and total > len(issues):
        console.print(f"[dim]Showing {len(issues)} of {total}[/dim]")


def project_table(projects: list[Project]) -> None:
    if not projects:
        console.print("[yellow]No projects found.[/yellow]")
        return
    table = Table(title="Projects")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Short name", style="green")
    table.add_column("Name")
    for project in projects:
        table.add_row(escape(project.id), escape(project.short_name), escape(project.name))
    console.print(table)


def project_detail(project: Project) -> None:
    console.print(f"[bold cyan]{escape(project.short_name)}[/bold cyan] {escape(project.name)}", highlight=False)
    console.print(f"  ID: {escape(project.id)}", highlight=False)
    if project.owner:
        console.print(f"  Owner: {escape(project.owner)}", highlight=False)
    if project.description:
        console.print(f"  {escape(project.description)}", highlight=False)


def project_field_table(fields: list[ProjectCustomField]) -> None:
    if not fields:
        console.print("[yellow]No custom fields.[/yellow]")
        return
    table = Table(title="Custom fields")
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Required")
    table.add_column("Values")
    for field in fields:
        values = field.values or [
            f"{v.name}{' (resolved)' if v.is_resolved else ''}" for v in field.state_values
        ]
        table.add_row(
            escape(field.name),
            escape(field.field_type),
            "yes" if field.required else "no",
            escape(", ".join(values)),
        )
    console.print(table)


def user_table(users: list[User]) -> None:
    if not users:
        console.print("[yellow]No users found.[/yellow]")
        return
    table = Table(title="Users")
    table.add_column("Login", style="cyan")
    table.add_column("Name")
    table.add_column("Email", style="blue")
    for user in users:
        table.add_row(escape(user.login or user.id), escape(user.display_name or ""), escape(user.email or ""))
    console.print(table)


def tag_table(tags: list[Tag]) -> None:
    if not tags:
        console.print("[yellow]No tags found.[/yellow]")
        return
    table = Table(title="Tags")
    table.add_column("Name", style="cyan")
    table.add_column("Color")
    table.add_column("Description")
    for tag in tags:
        table.add_row(escape(tag.name), display_color(tag.color), escape(tag.description or ""))
    console.print(table)


def link_type_table(link_types: list[IssueLinkType]) -> None:
    table = Table(title="Link types")
    table.add_column("Name", style="cyan")
    table.add_column("Outward")
    table.add_column("Inward")
    for link_type in link_types:
        table.add_row(
            escape(link_type.name),
            escape(link_type.source_to_target or ""),
            escape(link_type.target_to_source or ""),
        )
    console.print(table)


def link_list(links: list[IssueLink]) -> None:
    shown = [link for link in links if link.issues]
    if not shown:
        console.print("[yellow]No links.[/yellow]")
        return
    for link in shown:
        label = link.link_type.source_to_target or link.link_type.name
        if link.direction == "INWARD" and link.link_type.target_to_source:
            label = link.link_type.target_to_source
        console.print(f"[bold]{escape(label)}[/bold]", highlight=False)
        for linked in link.issues:
            console.print(
                f"  [cyan]{escape(linked.id_readable or linked.id)}[/cyan] {escape(linked.summary or '')}",
                highlight=False,
            )


def comment_list(comments: list[Comment]) -> None:
    if not comments:
        console.print("[yellow]No comments.[/yellow]")
        return
    for comment in comments:
        author = comment.author.handle if comment.author else "unknown"
        console.print(f"[blue]{escape(author)}[/blue] [dim]{when(comment.created)}[/dim]", highlight=False)
        console.print(f"  {escape(comment.text)}", highlight=False)


def field_definition_table(fields: list[CustomFieldDefinition]) -> None:
    if not fields:
        console.print("[yellow]No custom field definitions.[/yellow]")
        return
    table = Table(title="Custom field definitions")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Type", style="green")
    table.add_column("Projects")
    for field in fields:
        table.add_row(escape(field.id), escape(field.name), escape(field.field_type), str(field.instances))
    console.print(table)


def bundle_table(bundles: list[BundleDefinition]) -> None:
    if not bundles:
        console.print("[yellow]No bundles found.[/yellow]")
        return
    table = Table(title="Bundles")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Type", style="green")
    table.add_column("Values")
    for bundle in bundles:
        values = ", ".join(v.name for v in bundle.values)
        table.add_row(escape(bundle.id), escape(bundle.name), escape(bundle.bundle_type), escape(values))
    console.print(table)


def article_table(articles: list[Article]) -> None:
    if not articles:
        console.print("[yellow]No articles found.[/yellow]")
        return
    table = Table()
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Children")
    for article in articles:
        table.add_row(
            escape(article.id_readable or article.id),
            escape(article.summary),
            "yes" if article.has_children else "",
        )
    console.print(table)


def article_detail(article: Article) -> None:
    console.print(
        f"[bold cyan]{escape(article.id_readable or article.id)}[/bold cyan] {escape(article.summary)}",
        highlight=False,
    )
    if article.project:
        console.print(f"  Project: {escape(article.project.short_name or article.project.id)}", highlight=False)
    if article.parent:
        console.print(f"  Parent: {escape(article.parent.id_readable or article.parent.id)}", highlight=False)
    if article.tags:
        console.print(f"  Tags: {escape(', '.join(article.tags))}", highlight=False)
    console.print(f"  Updated: {when(article.updated)}", highlight=False)
    if article.content:
        console.print()
        console.print(escape(article.content), highlight=False)


def attachment_table(attachments: list[ArticleAttachment]) -> None:
    if not attachments:
        console.print("[yellow]No attachments.[/yellow]")
        return
    table = Table(title="Attachments")
    table.add_column("Name", style="cyan")
    table.add_column("Size")
    table.add_column("Type")
    for attachment in attachments:
        table.add_row(escape(attachment.name), str(attachment.size), escape(attachment.mime_type or ""))
    console.print(table)


def scenario_detail(scenario: Scenario) -> None:
    meta = scenario.scenario
    console.print(f"[bold cyan]{escape(meta.name)}[/bold cyan] [dim]({meta.difficulty}, backend: {meta.backend})[/dim]")
    if meta.description:
        console.print(f"  {escape(meta.description)}", highlight=False)
    if meta.tags:
        console.print(f"  Tags: {escape(', '.join(meta.tags))}", highlight=False)
    console.print()
    console.print("[bold]Prompt:[/bold]")
    console.print(escape(scenario.setup.prompt), highlight=False)
    expected = scenario.expected_outcome
    if expected.required_calls:
        console.print(f"\nRequired calls: {', '.join(expected.required_calls)}", highlight=False)
    if expected.forbidden_calls:
        console.print(f"Forbidden calls: {', '.join(expected.forbidden_calls)}", highlight=False)
    if expected.ordered_calls:
        console.print(f"Ordered calls: {' -> '.join(expected.ordered_calls)}", highlight=False)
    for name in expected.outcomes:
        console.print(f"Outcome: {escape(name)}", highlight=False)


def evaluation(result: EvaluationResult) -> None:
    status = "[green]PASS[/green]" if result.success else "[red]FAIL[/red]"
    console.print(f"{status} [bold]{escape(result.scenario_name)}[/bold]")
    console.print(
        f"  Score: {result.score:.2f} ({result.points}/{result.max_points})  "
        f"Calls: {result.total_calls}  Efficiency: {result.efficiency}",
        highlight=False,
    )
    if result.missing:
        console.print(f"  Missing: {', '.join(result.missing)}", highlight=False)
    if result.forbidden_present:
        console.print(f"  Forbidden present: {', '.join(result.forbidden_present)}", highlight=False)
    if not result.order_ok:
        console.print("  Call order: [red]not respected[/red]")
    for outcome in result.outcomes:
        mark = "[green]✓[/green]" if outcome.achieved else "[red]✗[/red]"
        console.print(f"  {mark} {escape(outcome.name)}: {escape(outcome.actual)}", highlight=False)
    for adjustment in result.penalties + result.bonuses:
        console.print(f"  [dim]{adjustment.points:+d} {escape(adjustment.reason)}[/dim]", highlight=False)
    for suggestion in result.suggestions:
        console.print(f"  [yellow]→[/yellow] {escape(suggestion)}", highlight=False)


def _values_hint(values: list[str]) -> str:
    if not values:
        return ""
    if len(values) <= 5:
        return f" [{', '.join(values)}]"
    return f" [{', '.join(values[:3])}, ... ({len(values)} values)]"


def tracker_context(
    cache: TrackerCache,
    default_project: str | None = None,
    issues: list[IssueSummary] | None = None,
) -> None:
    """Compact overview of the cached metadata for ``track context`` and ``track cache show``."""
    if cache.updated_at:
        console.print(f"[dim]Cached:[/dim] {when(cache.updated_at)}", highlight=False)
    if cache.backend:
        url = f" ({escape(cache.backend.base_url)})" if cache.backend.base_url else ""
        console.print(f"[dim]Backend:[/dim] [cyan]{escape(cache.backend.backend)}[/cyan]{url}", highlight=False)
    if default_project:
        console.print(f"[dim]Default project:[/dim] [bold cyan]{escape(default_project)}[/bold cyan]")

    console.print("\n[bold]Projects:[/bold]")
    for project in cache.projects:
        console.print(f"  [bold cyan]{escape(project.short_name)}[/bold cyan] - {escape(project.name)}", highlight=False)

    fields = [entry for entry in cache.project_fields if entry.fields]
    if fields:
        console.print("\n[bold]Custom fields:[/bold]")
    for entry in fields:
        console.print(f"  [cyan]{escape(entry.project_short_name)}[/cyan]:", highlight=False)
        for field in entry.fields:
            required = " [bold red]*required[/bold red]" if field.required else ""
            console.print(
                f"    {escape(field.name)} [dim]({escape(field.field_type)})[/dim]{required}"
                f"[dim]{escape(_values_hint(field.values))}[/dim]",
                highlight=False,
            )

    users = [entry for entry in cache.project_users if entry.users]
    if users:
        console.print("\n[bold]Assignable users:[/bold]")
    for entry in users:
        names = [u.display_name or u.login for u in entry.users[:5]]
        more = f", ... ({len(entry.users)} total)" if len(entry.users) > 5 else ""
        console.print(
            f"  [cyan]{escape(entry.project_short_name)}[/cyan]: [dim]{escape(', '.join(names) + more)}[/dim]",
            highlight=False,
        )

    if cache.tags:
        console.print("\n[bold]Tags:[/bold]")
        console.print(f"  {escape(', '.join(tag.name for tag in cache.tags))}", highlight=False)
    if cache.link_types:
        console.print("\n[bold]Link types:[/bold]")
        console.print(f"  {escape(', '.join(lt.name for lt in cache.link_types))}", highlight=False)

    if issues is not None:
        console.print("\n[bold]Open issues:[/bold]")
        if not issues:
            console.print("  [dim]none[/dim]")
        for issue in issues:
            state = f" [dim]({escape(issue.state)})[/dim]" if issue.state else ""
            console.print(f"  [cyan]{escape(issue.id_readable)}[/cyan] {escape(issue.summary)}{state}", highlight=False)
