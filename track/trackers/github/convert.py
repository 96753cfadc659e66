"""Conversion between GitHub REST payloads and the neutral model."""
from typing import Any

from track.core.types import (
    Comment,
    CreateIssue,
    CreateTag,
    Issue,
    IssueState,
    LinkedIssue,
    Project,
    ProjectCustomField,
    ProjectRef,
    SingleEnumField,
    SingleUserField,
    StateField,
    StateValueInfo,
    Tag,
    UpdateIssue,
    UserRef,
)
from track.core.utils import is_closed_word, is_open_word


DEFAULT_LABEL_COLOR = "ededed"


def user_from_github(data: dict[str, Any] | None) -> UserRef | None:
    if not data:
        return None
    return UserRef(id=str(data.get("id", "")), login=data.get("login"), display_name=data.get("login"))


def issue_from_github(data: dict[str, Any], owner: str, repo: str) -> Issue:
    """Convert a GitHub issue (or pull request) payload.

    The issue number doubles as the opaque ID since every call is already
    scoped to one repository.
    """
    number = data.get("number")
    full_name = f"{owner}/{repo}"
    state_word = data.get("state") or "open"
    labels = [label.get("name", "") for label in data.get("labels") or [] if isinstance(label, dict)]
    assignees = [user_from_github(u) for u in data.get("assignees") or []]
    if not assignees and data.get("assignee"):
        assignees = [user_from_github(data["assignee"])]
    milestone = (data.get("milestone") or {}).get("title")

    custom_fields: list[Any] = [
        StateField(name="Status", value=state_word, is_resolved=state_word == "closed"),
        SingleUserField(
            name="Assignee",
            login=assignees[0].login if assignees else None,
            display_name=assignees[0].login if assignees else None,
        ),
    ]
    if milestone:
        custom_fields.append(SingleEnumField(name="Milestone", value=milestone))

    return Issue(
        id=str(number) if number is not None else "",
        id_readable=f"{full_name}#{number}",
        summary=data.get("title") or "",
        description=data.get("body") or None,
        project=ProjectRef(id=full_name, name=repo, short_name=full_name),
        state=IssueState.parse(state_word),
        tags=labels,
        assignees=[a for a in assignees if a is not None],
        reporter=user_from_github(data.get("user")),
        milestone=milestone,
        custom_fields=custom_fields,
        created=data.get("created_at"),
        updated=data.get("updated_at"),
        closed_at=data.get("closed_at"),
        is_pull_request="pull_request" in data,
    )


def linked_from_github(data: dict[str, Any], owner: str, repo: str) -> LinkedIssue:
    return LinkedIssue(
        id=str(data.get("number", "")),
        id_readable=f"{owner}/{repo}#{data.get('number')}",
        summary=data.get("title"),
    )


def project_from_repo(data: dict[str, Any]) -> Project:
    return Project(
        id=str(data.get("id", "")),
        name=data.get("name") or "",
        short_name=data.get("full_name") or "",
        description=data.get("description"),
        owner=(data.get("owner") or {}).get("login"),
    )


def tag_from_label(data: dict[str, Any]) -> Tag:
    return Tag(
        id=str(data.get("id") or data.get("name", "")),
        name=data.get("name", ""),
        color=data.get("color"),
        description=data.get("description"),
    )


def comment_from_github(data: dict[str, Any]) -> Comment:
    return Comment(
        id=str(data.get("id", "")),
        text=data.get("body") or "",
        author=user_from_github(data.get("user")),
        created=data.get("created_at"),
        updated=data.get("updated_at"),
    )


def github_state(word: str) -> tuple[str, str | None]:
    """Map a neutral state word to GitHub's ``state`` and ``state_reason``."""
    lowered = word.strip().lower()
    if lowered in ("not_planned", "not planned", "wontfix", "won't fix"):
        return "closed", "not_planned"
    if is_closed_word(lowered):
        return "closed", "completed"
    if is_open_word(lowered):
        return "open", "reopened"
    return lowered, None


def create_payload(intent: CreateIssue) -> dict[str, Any]:
    payload: dict[str, Any] = {"title": intent.summary}
    if intent.description is not None:
        payload["body"] = intent.description
    if intent.tags:
        payload["labels"] = intent.tags
    assignees = intent.requested_assignees()
    if assignees:
        payload["assignees"] = assignees
    return payload


def update_payload(intent: UpdateIssue) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if intent.summary is not None:
        payload["title"] = intent.summary
    if intent.description is not None:
        payload["body"] = intent.description
    if intent.tags is not None:
        payload["labels"] = intent.tags
    assignees = intent.requested_assignees()
    if assignees is not None:
        payload["assignees"] = assignees
    state = intent.requested_state()
    if state:
        payload["state"], reason = github_state(state)
        if reason:
            payload["state_reason"] = reason
    return payload


def label_payload(tag: CreateTag) -> dict[str, Any]:
    payload: dict[str, Any] = {"name": tag.name, "color": tag.color or DEFAULT_LABEL_COLOR}
    if tag.description is not None:
        payload["description"] = tag.description
    return payload


def label_update_payload(tag: CreateTag) -> dict[str, Any]:
    payload: dict[str, Any] = {"new_name": tag.name}
    if tag.color:
        payload["color"] = tag.color
    if tag.description is not None:
        payload["description"] = tag.description
    return payload


def standard_fields() -> list[ProjectCustomField]:
    """GitHub has no custom fields; expose its fixed issue attributes as if it did."""
    return [
        ProjectCustomField(
            id="status",
            name="Status",
            field_type="state[1]",
            required=True,
            values=["open", "closed"],
            state_values=[
                StateValueInfo(name="open", is_resolved=False, ordinal=0),
                StateValueInfo(name="closed", is_resolved=True, ordinal=1),
            ],
        ),
        ProjectCustomField(id="assignee", name="Assignee", field_type="user[1]"),
        ProjectCustomField(id="labels", name="Labels", field_type="enum[*]"),
        ProjectCustomField(id="milestone", name="Milestone", field_type="enum[1]"),
    ]
