"""Conversion between Jira Cloud REST v3 payloads and the neutral model.

Jira stores descriptions and comment bodies as Atlassian Document Format
(ADF) trees. Outgoing plain text is lifted into a minimal document; incoming
trees are flattened back to text, and comments keep the original tree in
``Comment.rich``.
"""
import re
from typing import Any

from track.core.types import (
    Comment,
    CreateIssue,
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
    SingleEnumUpdate,
    SingleUserField,
    StateField,
    StateKind,
    Tag,
    UpdateIssue,
    UserRef,
)


ISSUE_FIELDS = [
    "summary",
    "description",
    "status",
    "priority",
    "issuetype",
    "project",
    "assignee",
    "reporter",
    "labels",
    "created",
    "updated",
    "resolutiondate",
    "parent",
    "issuelinks",
]

DEFAULT_ISSUE_TYPE = "Task"

BLOCK_NODES = frozenset({"paragraph", "heading", "blockquote", "codeBlock", "listItem", "rule"})

STATUS_CATEGORY_KINDS = {"done": StateKind.CLOSED, "new": StateKind.OPEN}

OFFSET_WITHOUT_COLON = re.compile(r"([+-]\d{2})(\d{2})$")


def jira_datetime(value: str | None) -> str | None:
    """Jira writes offsets as '+0000'; give them the colon ISO 8601 parsers expect."""
    if not value:
        return None
    return OFFSET_WITHOUT_COLON.sub(r"\1:\2", value)


def text_to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text in an ADF document, one paragraph per blank-line separated block."""
    paragraphs = []
    for block in text.split("\n\n"):
        content = [{"type": "text", "text": block}] if block else []
        paragraphs.append({"type": "paragraph", "content": content})
    return {"type": "doc", "version": 1, "content": paragraphs}


def adf_to_text(node: Any) -> str:
    """Flatten an ADF tree to plain text.

    Text runs are concatenated; block nodes are separated by blank lines
    and hard breaks become newlines. Plain strings pass through, since
    older payloads carry wiki markup instead of ADF.
    """
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if not isinstance(node, dict):
        return ""
    node_type = node.get("type")
    if node_type == "text":
        return node.get("text", "")
    if node_type == "hardBreak":
        return "\n"
    children = node.get("content") or []
    blocks = any(isinstance(child, dict) and child.get("type") in BLOCK_NODES for child in children)
    if node_type == "doc" or blocks:
        return "\n\n".join(adf_to_text(child) for child in children).strip("\n")
    return "".join(adf_to_text(child) for child in children)


def error_message(body: Any) -> str | None:
    """Join Jira's ``errorMessages`` and per-field ``errors`` with '; '."""
    if not isinstance(body, dict):
        return None
    messages = [m for m in body.get("errorMessages") or [] if isinstance(m, str)]
    errors = body.get("errors")
    if isinstance(errors, dict):
        messages.extend(f"{field}: {msg}" for field, msg in errors.items() if isinstance(msg, str))
    return "; ".join(messages) or body.get("message")


def user_from_jira(data: dict[str, Any] | None) -> UserRef | None:
    if not data:
        return None
    return UserRef(
        id=data.get("accountId", ""),
        login=data.get("accountId"),
        display_name=data.get("displayName"),
        email=data.get("emailAddress"),
    )


def state_from_status(status: dict[str, Any] | None) -> IssueState | None:
    if not status:
        return None
    category = (status.get("statusCategory") or {}).get("key")
    name = status.get("name") or ""
    kind = STATUS_CATEGORY_KINDS.get(category) if category else IssueState.classify(name)
    return IssueState(kind=kind or StateKind.OTHER, name=name)


def project_ref_from_jira(data: dict[str, Any] | None) -> ProjectRef | None:
    if not data:
        return None
    return ProjectRef(id=str(data.get("id", "")), name=data.get("name"), short_name=data.get("key"))


def _linked(data: dict[str, Any]) -> LinkedIssue:
    return LinkedIssue(
        id=str(data.get("id", "")),
        id_readable=data.get("key"),
        summary=(data.get("fields") or {}).get("summary"),
    )


def link_from_jira(data: dict[str, Any]) -> IssueLink:
    """Convert an entry of ``fields.issuelinks``; only one side is set per entry."""
    link_type = data.get("type") or {}
    outward, inward = data.get("outwardIssue"), data.get("inwardIssue")
    if outward and not inward:
        direction = LinkDirection.OUTWARD
    elif inward and not outward:
        direction = LinkDirection.INWARD
    else:
        direction = LinkDirection.BOTH
    return IssueLink(
        id=str(data.get("id", "")),
        direction=direction,
        link_type=link_type_from_jira(link_type),
        issues=[_linked(side) for side in (outward, inward) if side],
    )


def link_type_from_jira(data: dict[str, Any]) -> IssueLinkType:
    return IssueLinkType(
        id=str(data.get("id", "")),
        name=data.get("name", ""),
        source_to_target=data.get("outward"),
        target_to_source=data.get("inward"),
        directed=data.get("outward") != data.get("inward"),
    )


def issue_from_jira(data: dict[str, Any]) -> Issue:
    fields = data.get("fields") or {}
    state = state_from_status(fields.get("status"))
    assignee = user_from_jira(fields.get("assignee"))
    priority = (fields.get("priority") or {}).get("name")
    issue_type = (fields.get("issuetype") or {}).get("name")

    custom_fields: list[Any] = [
        StateField(
            name="Status",
            value=state.name if state else None,
            is_resolved=bool(state and state.is_closed),
        ),
        SingleUserField(
            name="Assignee",
            login=assignee.login if assignee else None,
            display_name=assignee.display_name if assignee else None,
        ),
    ]
    if priority:
        custom_fields.append(SingleEnumField(name="Priority", value=priority))
    if issue_type:
        custom_fields.append(SingleEnumField(name="Type", value=issue_type))

    parent = fields.get("parent")
    return Issue(
        id=str(data.get("id", "")),
        id_readable=data.get("key", ""),
        summary=fields.get("summary") or "",
        description=adf_to_text(fields.get("description")) or None,
        project=project_ref_from_jira(fields.get("project")),
        state=state,
        tags=fields.get("labels") or [],
        assignees=[assignee] if assignee else [],
        reporter=user_from_jira(fields.get("reporter")),
        custom_fields=custom_fields,
        created=jira_datetime(fields.get("created")),
        updated=jira_datetime(fields.get("updated")),
        closed_at=jira_datetime(fields.get("resolutiondate")),
        parent=_linked(parent) if parent else None,
    )


def project_from_jira(data: dict[str, Any]) -> Project:
    return Project(
        id=str(data.get("id", "")),
        name=data.get("name") or "",
        short_name=data.get("key") or "",
        description=data.get("description"),
        owner=(data.get("lead") or {}).get("displayName"),
    )


def comment_from_jira(data: dict[str, Any]) -> Comment:
    body = data.get("body")
    return Comment(
        id=str(data.get("id", "")),
        text=adf_to_text(body),
        author=user_from_jira(data.get("author")),
        created=jira_datetime(data.get("created")),
        updated=jira_datetime(data.get("updated")),
        rich=body if isinstance(body, dict) else None,
    )


def jira_link_type(name: str) -> str:
    """Map a free-form link type name onto Jira's default link type names."""
    lowered = name.strip().lower()
    if lowered in ("relates", "related", "relates_to"):
        return "Relates"
    if lowered in ("depends", "dependency", "required", "blocks"):
        return "Blocks"
    if lowered in ("duplicates", "duplicate", "duplicated-by"):
        return "Duplicate"
    if lowered in ("subtask", "parent"):
        return "Subtask"
    return name


def _enum_update(updates: list[Any], *names: str) -> str | None:
    for update in updates:
        if isinstance(update, SingleEnumUpdate) and update.name.lower() in names:
            return update.value
    return None


def create_payload(intent: CreateIssue) -> dict[str, Any]:
    project_key = "id" if intent.project_id.isdigit() else "key"
    others = intent.other_custom_fields()
    fields: dict[str, Any] = {
        "project": {project_key: intent.project_id},
        "summary": intent.summary,
        "issuetype": {"name": _enum_update(others, "type", "issuetype") or DEFAULT_ISSUE_TYPE},
    }
    if intent.description is not None:
        fields["description"] = text_to_adf(intent.description)
    if intent.tags:
        fields["labels"] = intent.tags
    priority = _enum_update(others, "priority")
    if priority:
        fields["priority"] = {"name": priority}
    assignees = intent.requested_assignees()
    if assignees:
        fields["assignee"] = {"accountId": assignees[0]}
    if intent.parent:
        fields["parent"] = {"key": intent.parent}
    return {"fields": fields}


def update_payload(intent: UpdateIssue) -> dict[str, Any]:
    """Field changes for PUT /issue; the state travels separately as a transition."""
    fields: dict[str, Any] = {}
    if intent.summary is not None:
        fields["summary"] = intent.summary
    if intent.description is not None:
        fields["description"] = text_to_adf(intent.description)
    if intent.tags is not None:
        fields["labels"] = intent.tags
    others = intent.other_custom_fields()
    priority = _enum_update(others, "priority")
    if priority:
        fields["priority"] = {"name": priority}
    assignees = intent.requested_assignees()
    if assignees is not None:
        fields["assignee"] = {"accountId": assignees[0]} if assignees else None
    return {"fields": fields} if fields else {}


def pick_transition(transitions: list[dict[str, Any]], state: str) -> dict[str, Any] | None:
    """Choose the transition that moves an issue into ``state``.

    A transition whose target status name matches wins. Otherwise a neutral
    'closed' picks the first transition into the done category and 'open'
    the first into the new or in-progress categories.
    """
    wanted = state.strip().lower()
    for transition in transitions:
        if (transition.get("to") or {}).get("name", "").lower() == wanted:
            return transition
    kind = IssueState.classify(state)
    if kind == StateKind.OTHER:
        return None
    categories = ("done",) if kind == StateKind.CLOSED else ("new", "indeterminate")
    for transition in transitions:
        category = ((transition.get("to") or {}).get("statusCategory") or {}).get("key")
        if category in categories:
            return transition
    return None


def tags_from_labels(labels: list[str]) -> list[Tag]:
    return [Tag(id=label, name=label) for label in labels]


def standard_fields() -> list[ProjectCustomField]:
    return [
        ProjectCustomField(id="priority", name="Priority", field_type="enum[1]"),
        ProjectCustomField(id="assignee", name="Assignee", field_type="user[1]"),
        ProjectCustomField(id="status", name="Status", field_type="state[1]", required=True),
        ProjectCustomField(id="issuetype", name="Type", field_type="enum[1]", required=True),
        ProjectCustomField(id="labels", name="Labels", field_type="enum[*]"),
    ]
