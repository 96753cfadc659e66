"""Conversion between GitLab REST payloads and the neutral model."""
from typing import Any

from track.core.types import (
    Comment,
    CreateIssue,
    CreateTag,
    Issue,
    IssueLink,
    IssueLinkType,
    IssueState,
    LinkDirection,
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
from track.core.utils import is_closed_word, is_open_word, join_labels


DEFAULT_LABEL_COLOR = "ededed"

LINK_TYPES = {
    "relates_to": IssueLinkType(
        id="relates_to",
        name="Relates",
        source_to_target="relates to",
        target_to_source="relates to",
        directed=False,
    ),
    "blocks": IssueLinkType(
        id="blocks",
        name="Blocks",
        source_to_target="blocks",
        target_to_source="is blocked by",
        directed=True,
    ),
    "is_blocked_by": IssueLinkType(
        id="is_blocked_by",
        name="Is Blocked By",
        source_to_target="is blocked by",
        target_to_source="blocks",
        directed=True,
    ),
}

LINK_DIRECTIONS = {
    "relates_to": LinkDirection.BOTH,
    "blocks": LinkDirection.OUTWARD,
    "is_blocked_by": LinkDirection.INWARD,
}

# Same link seen from the other issue.
INVERSE_LINK_TYPES = {"blocks": "is_blocked_by", "is_blocked_by": "blocks", "relates_to": "relates_to"}


def user_from_gitlab(data: dict[str, Any] | None) -> UserRef | None:
    if not data:
        return None
    return UserRef(id=str(data.get("id", "")), login=data.get("username"), display_name=data.get("name"))


def issue_from_gitlab(data: dict[str, Any], project_id: str) -> Issue:
    """Convert a GitLab issue.

    ``id`` keeps the global id while the readable id is the per-project
    ``#iid`` every other call addresses the issue by.
    """
    state_word = data.get("state") or "opened"
    closed = state_word == "closed"
    assignees = [user_from_gitlab(u) for u in data.get("assignees") or []]
    if not assignees and data.get("assignee"):
        assignees = [user_from_gitlab(data["assignee"])]
    assignees = [a for a in assignees if a is not None]
    milestone = (data.get("milestone") or {}).get("title")

    custom_fields: list[Any] = [
        StateField(name="Status", value="Closed" if closed else "Open", is_resolved=closed),
        SingleUserField(
            name="Assignee",
            login=assignees[0].login if assignees else None,
            display_name=assignees[0].display_name if assignees else None,
        ),
    ]
    if milestone:
        custom_fields.append(SingleEnumField(name="Milestone", value=milestone))

    return Issue(
        id=str(data.get("id", "")),
        id_readable=f"#{data.get('iid')}",
        summary=data.get("title") or "",
        description=data.get("description") or None,
        project=ProjectRef(id=str(data.get("project_id") or project_id)),
        state=IssueState.parse(state_word),
        tags=data.get("labels") or [],
        assignees=assignees,
        reporter=user_from_gitlab(data.get("author")),
        milestone=milestone,
        custom_fields=custom_fields,
        created=data.get("created_at"),
        updated=data.get("updated_at"),
        closed_at=data.get("closed_at"),
    )


def project_from_gitlab(data: dict[str, Any]) -> Project:
    return Project(
        id=str(data.get("id", "")),
        name=data.get("name") or "",
        short_name=data.get("path_with_namespace") or data.get("path") or "",
        description=data.get("description"),
        owner=(data.get("namespace") or {}).get("full_path"),
    )


def tag_from_label(data: dict[str, Any]) -> Tag:
    return Tag(
        id=str(data.get("id", "")),
        name=data.get("name", ""),
        color=data.get("color"),
        description=data.get("description"),
        issues_count=data.get("open_issues_count"),
    )


def comment_from_note(data: dict[str, Any]) -> Comment:
    return Comment(
        id=str(data.get("id", "")),
        text=data.get("body") or "",
        author=user_from_gitlab(data.get("author")),
        created=data.get("created_at"),
        updated=data.get("updated_at"),
        is_system=bool(data.get("system")),
    )


def link_from_gitlab(data: dict[str, Any]) -> IssueLink:
    """Convert one entry of ``/issues/:iid/links``, a linked issue carrying link metadata."""
    link_type = data.get("link_type") if data.get("link_type") in LINK_TYPES else "relates_to"
    return IssueLink(
        id=str(data.get("issue_link_id", "")),
        direction=LINK_DIRECTIONS[link_type],
        link_type=LINK_TYPES[link_type],
        issues=[
            LinkedIssue(
                id=str(data.get("id", "")),
                id_readable=f"#{data.get('iid')}",
                summary=data.get("title"),
            )
        ],
    )


def gitlab_link_type(name: str) -> str:
    """Map a free-form link type name onto one of GitLab's three link types."""
    lowered = name.strip().lower()
    if lowered in ("blocks", "depend", "depends", "dependency"):
        return "blocks"
    if lowered in ("is_blocked_by", "blocked", "blocked_by", "required"):
        return "is_blocked_by"
    return "relates_to"


def state_event(word: str | None) -> str | None:
    if not word:
        return None
    if is_closed_word(word):
        return "close"
    if is_open_word(word):
        return "reopen"
    return None


def search_params(query: str) -> dict[str, str]:
    """Turn a query into ``/issues`` filter parameters.

    GitLab has no query language. A query shaped like URL parameters
    (``state=opened&labels=bug``) is forwarded as filters; anything else is
    free text for ``search``.
    """
    query = query.strip()
    if not query:
        return {}
    head = query.split(None, 1)[0]
    if "=" not in head:
        return {"search": query}
    params = {}
    for pair in query.split("&"):
        key, _, value = pair.partition("=")
        if key and value:
            params[key] = value
    return params


def create_payload(intent: CreateIssue, assignee_ids: list[int] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"title": intent.summary}
    if intent.description is not None:
        payload["description"] = intent.description
    if intent.tags:
        payload["labels"] = join_labels(intent.tags)
    if assignee_ids:
        payload["assignee_ids"] = assignee_ids
    return payload


def update_payload(intent: UpdateIssue, assignee_ids: list[int] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if intent.summary is not None:
        payload["title"] = intent.summary
    if intent.description is not None:
        payload["description"] = intent.description
    if intent.tags is not None:
        payload["labels"] = join_labels(intent.tags)
    if assignee_ids is not None:
        payload["assignee_ids"] = assignee_ids
    event = state_event(intent.requested_state())
    if event:
        payload["state_event"] = event
    return payload


def label_payload(tag: CreateTag) -> dict[str, Any]:
    payload: dict[str, Any] = {"name": tag.name, "color": f"#{tag.color or DEFAULT_LABEL_COLOR}"}
    if tag.description is not None:
        payload["description"] = tag.description
    return payload


def label_update_payload(tag: CreateTag) -> dict[str, Any]:
    payload: dict[str, Any] = {"new_name": tag.name}
    if tag.color:
        payload["color"] = f"#{tag.color}"
    if tag.description is not None:
        payload["description"] = tag.description
    return payload


def standard_fields() -> list[ProjectCustomField]:
    return [
        ProjectCustomField(
            id="status",
            name="Status",
            field_type="state[1]",
            required=True,
            values=["Open", "Closed"],
            state_values=[
                StateValueInfo(name="Open", is_resolved=False, ordinal=0),
                StateValueInfo(name="Closed", is_resolved=True, ordinal=1),
            ],
        ),
        ProjectCustomField(id="assignee", name="Assignee", field_type="user[1]"),
        ProjectCustomField(id="labels", name="Labels", field_type="enum[*]"),
        ProjectCustomField(id="milestone", name="Milestone", field_type="enum[1]"),
    ]
