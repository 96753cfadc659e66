"""Conversion between YouTrack REST payloads and the neutral model.

YouTrack timestamps are epoch milliseconds and custom field values are
discriminated by ``$type``. Every read below names its ``fields=``
projection, since YouTrack only returns the attributes asked for.
"""
from datetime import datetime, timezone
from typing import Any

from track.core.types import (
    Article,
    ArticleAttachment,
    ArticleRef,
    AttachFieldToProject,
    BundleDefinition,
    BundleType,
    BundleValueDefinition,
    Comment,
    CreateArticle,
    CreateBundleValue,
    CreateIssue,
    CreateTag,
    CustomFieldDefinition,
    CustomFieldType,
    CustomFieldUpdate,
    Issue,
    IssueLink,
    IssueLinkType,
    IssueState,
    LinkedIssue,
    Project,
    ProjectCustomField,
    ProjectRef,
    SingleEnumField,
    SingleUserField,
    SingleUserUpdate,
    StateField,
    StateKind,
    StateUpdate,
    StateValueInfo,
    Tag,
    TextField,
    UnknownField,
    UpdateArticle,
    UpdateIssue,
    UserRef,
)


ISSUE_FIELDS = (
    "id,idReadable,summary,description,project(id,name,shortName),"
    "customFields(name,$type,value(name,login,fullName,isResolved,text)),"
    "tags(id,name),reporter(login,fullName),created,updated,resolved,"
    "parent(issues(id,idReadable,summary))"
)
PROJECT_FIELDS = "id,name,shortName,description,leader(login)"
PROJECT_CUSTOM_FIELD_FIELDS = (
    "id,canBeEmpty,emptyFieldText,field(id,name,fieldType(id,presentation)),"
    "bundle(id,values(name,isResolved,ordinal))"
)
TAG_FIELDS = "id,name,color(id,background,foreground),issues(id)"
LINK_TYPE_FIELDS = "id,name,sourceToTarget,targetToSource,directed"
LINK_FIELDS = (
    "id,direction,linkType(id,name,sourceToTarget,targetToSource,directed),"
    "issues(id,idReadable,summary)"
)
COMMENT_FIELDS = "id,text,author(login,fullName),created,updated"
USER_FIELDS = "id,login,fullName,email"
ARTICLE_FIELDS = (
    "id,idReadable,summary,content,project(id,name,shortName),"
    "parentArticle(id,idReadable,summary),hasChildren,tags(id,name),"
    "created,updated,reporter(login,fullName)"
)
ATTACHMENT_FIELDS = "id,name,size,mimeType,url,created,author(login,fullName)"
CUSTOM_FIELD_FIELDS = "id,name,fieldType(id,presentation),instances(id)"
BUNDLE_VALUE_FIELDS = "id,name,description,isResolved,ordinal"
BUNDLE_FIELDS = f"id,name,$type,values({BUNDLE_VALUE_FIELDS})"

FIELD_TYPE_IDS = {
    CustomFieldType.SINGLE_ENUM: "enum[1]",
    CustomFieldType.MULTI_ENUM: "enum[*]",
    CustomFieldType.STATE: "state[1]",
    CustomFieldType.TEXT: "text",
    CustomFieldType.STRING: "string",
    CustomFieldType.DATE: "date",
    CustomFieldType.INTEGER: "integer",
    CustomFieldType.FLOAT: "float",
    CustomFieldType.PERIOD: "period",
    CustomFieldType.USER: "user[1]",
}

PROJECT_FIELD_TYPES = {
    CustomFieldType.SINGLE_ENUM: "EnumProjectCustomField",
    CustomFieldType.MULTI_ENUM: "EnumProjectCustomField",
    CustomFieldType.STATE: "StateProjectCustomField",
    CustomFieldType.TEXT: "TextProjectCustomField",
    CustomFieldType.STRING: "SimpleProjectCustomField",
    CustomFieldType.DATE: "SimpleProjectCustomField",
    CustomFieldType.INTEGER: "SimpleProjectCustomField",
    CustomFieldType.FLOAT: "SimpleProjectCustomField",
    CustomFieldType.PERIOD: "PeriodProjectCustomField",
    CustomFieldType.USER: "UserProjectCustomField",
}

BUNDLE_TYPES = {
    BundleType.ENUM: "EnumBundle",
    BundleType.STATE: "StateBundle",
    BundleType.OWNED_FIELD: "OwnedBundle",
    BundleType.VERSION: "VersionBundle",
    BundleType.BUILD: "BuildBundle",
}

ISSUE_FIELD_TYPES = {
    "single_enum": "SingleEnumIssueCustomField",
    "state": "StateIssueCustomField",
    "single_user": "SingleUserIssueCustomField",
}


def from_millis(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def user_from_youtrack(data: dict[str, Any] | None) -> UserRef | None:
    if not data:
        return None
    return UserRef(
        id=data.get("id", ""),
        login=data.get("login"),
        display_name=data.get("fullName") or data.get("name"),
        email=data.get("email"),
    )


def project_ref_from_youtrack(data: dict[str, Any] | None) -> ProjectRef | None:
    if not data:
        return None
    return ProjectRef(id=data.get("id", ""), name=data.get("name"), short_name=data.get("shortName"))


def custom_field_from_youtrack(data: dict[str, Any]) -> Any:
    field_type = data.get("$type")
    name = data.get("name") or "Unknown"
    value = data.get("value")
    if field_type == "SingleEnumIssueCustomField":
        return SingleEnumField(name=name, value=(value or {}).get("name"))
    if field_type == "StateIssueCustomField":
        return StateField(
            name=name,
            value=(value or {}).get("name"),
            is_resolved=bool((value or {}).get("isResolved")),
        )
    if field_type == "SingleUserIssueCustomField":
        return SingleUserField(
            name=name,
            login=(value or {}).get("login"),
            display_name=(value or {}).get("fullName") or (value or {}).get("name"),
        )
    if field_type == "TextIssueCustomField":
        return TextField(name=name, value=(value or {}).get("text"))
    if isinstance(value, dict):
        value = value.get("name") or value.get("text") or value.get("login")
    return UnknownField(name=name, value=None if value is None else str(value))


def _state_of(custom_fields: list[Any], resolved: int | None) -> IssueState | None:
    for field in custom_fields:
        if isinstance(field, StateField) and field.value:
            if field.is_resolved:
                kind = StateKind.CLOSED
            elif IssueState.classify(field.value) == StateKind.OPEN:
                kind = StateKind.OPEN
            else:
                kind = StateKind.OTHER
            return IssueState(kind=kind, name=field.value)
    if resolved is not None:
        return IssueState(kind=StateKind.CLOSED, name="Resolved")
    return None


def issue_from_youtrack(data: dict[str, Any]) -> Issue:
    """Convert a YouTrack issue.

    The state comes from the first state-typed custom field: resolved
    values map to closed, everything else to open or other by name.
    """
    custom_fields = [custom_field_from_youtrack(f) for f in data.get("customFields") or []]
    assignees = [
        UserRef(login=f.login, display_name=f.display_name)
        for f in custom_fields
        if isinstance(f, SingleUserField) and f.name.lower() == "assignee" and f.login
    ]
    parent_issues = (data.get("parent") or {}).get("issues") or []
    return Issue(
        id=data.get("id", ""),
        id_readable=data.get("idReadable", ""),
        summary=data.get("summary") or "",
        description=data.get("description"),
        project=project_ref_from_youtrack(data.get("project")),
        state=_state_of(custom_fields, data.get("resolved")),
        tags=data.get("tags") or [],
        assignees=assignees,
        reporter=user_from_youtrack(data.get("reporter")),
        custom_fields=custom_fields,
        created=from_millis(data.get("created")),
        updated=from_millis(data.get("updated")),
        closed_at=from_millis(data.get("resolved")),
        parent=linked_from_youtrack(parent_issues[0]) if parent_issues else None,
    )


def linked_from_youtrack(data: dict[str, Any]) -> LinkedIssue:
    return LinkedIssue(id=data.get("id", ""), id_readable=data.get("idReadable"), summary=data.get("summary"))


def project_from_youtrack(data: dict[str, Any]) -> Project:
    return Project(
        id=data.get("id", ""),
        name=data.get("name") or "",
        short_name=data.get("shortName") or "",
        description=data.get("description"),
        owner=(data.get("leader") or {}).get("login"),
    )


def project_field_from_youtrack(data: dict[str, Any]) -> ProjectCustomField:
    field = data.get("field") or {}
    bundle = data.get("bundle") or {}
    values = bundle.get("values") or []
    field_type = field.get("fieldType") or {}
    state_values = [
        StateValueInfo(
            name=v.get("name", ""),
            is_resolved=bool(v.get("isResolved")),
            ordinal=v.get("ordinal"),
        )
        for v in values
        if "isResolved" in v
    ]
    return ProjectCustomField(
        id=data.get("id", ""),
        name=field.get("name", ""),
        field_type=field_type.get("presentation") or field_type.get("id") or "unknown",
        required=not data.get("canBeEmpty", True),
        empty_text=data.get("emptyFieldText"),
        bundle_id=bundle.get("id"),
        values=[v.get("name", "") for v in values],
        state_values=state_values,
    )


def tag_from_youtrack(data: dict[str, Any]) -> Tag:
    issues = data.get("issues")
    return Tag(
        id=data.get("id"),
        name=data.get("name", ""),
        color=data.get("color"),
        issues_count=len(issues) if isinstance(issues, list) else None,
    )


def link_type_from_youtrack(data: dict[str, Any]) -> IssueLinkType:
    return IssueLinkType(
        id=data.get("id", ""),
        name=data.get("name", ""),
        source_to_target=data.get("sourceToTarget"),
        target_to_source=data.get("targetToSource"),
        directed=bool(data.get("directed")),
    )


def link_from_youtrack(data: dict[str, Any]) -> IssueLink:
    return IssueLink(
        id=data.get("id", ""),
        direction=data.get("direction"),
        link_type=link_type_from_youtrack(data.get("linkType") or {}),
        issues=[linked_from_youtrack(i) for i in data.get("issues") or []],
    )


def comment_from_youtrack(data: dict[str, Any]) -> Comment:
    return Comment(
        id=data.get("id", ""),
        text=data.get("text") or "",
        author=user_from_youtrack(data.get("author")),
        created=from_millis(data.get("created")),
        updated=from_millis(data.get("updated")),
    )


def tag_payload(tag: CreateTag) -> dict[str, Any]:
    payload: dict[str, Any] = {"name": tag.name}
    if tag.color:
        payload["color"] = {"background": f"#{tag.color}"}
    return payload


def custom_field_update(update: CustomFieldUpdate) -> dict[str, Any]:
    field_type = ISSUE_FIELD_TYPES[update.type]
    if isinstance(update, SingleUserUpdate):
        value: dict[str, Any] = {"login": update.login}
    else:
        value = {"name": update.value}
    return {"$type": field_type, "name": update.name, "value": value}


def _intent_fields(intent: CreateIssue | UpdateIssue) -> list[dict[str, Any]]:
    updates: list[Any] = list(intent.other_custom_fields())
    state = intent.requested_state()
    if state:
        updates.append(StateUpdate(name="State", value=state))
    assignees = intent.requested_assignees()
    if assignees:
        updates.append(SingleUserUpdate(name="Assignee", login=assignees[0]))
    return [custom_field_update(u) for u in updates]


def create_payload(intent: CreateIssue) -> dict[str, Any]:
    payload: dict[str, Any] = {"project": {"id": intent.project_id}, "summary": intent.summary}
    if intent.description is not None:
        payload["description"] = intent.description
    fields = _intent_fields(intent)
    if fields:
        payload["customFields"] = fields
    if intent.tags:
        payload["tags"] = [{"$type": "IssueTag", "name": name} for name in intent.tags]
    return payload


def update_payload(intent: UpdateIssue) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if intent.summary is not None:
        payload["summary"] = intent.summary
    if intent.description is not None:
        payload["description"] = intent.description
    fields = _intent_fields(intent)
    if fields:
        payload["customFields"] = fields
    if intent.tags is not None:
        payload["tags"] = [{"$type": "IssueTag", "name": name} for name in intent.tags]
    return payload


def custom_field_definition(data: dict[str, Any]) -> CustomFieldDefinition:
    field_type = data.get("fieldType") or {}
    instances = data.get("instances")
    return CustomFieldDefinition(
        id=data.get("id", ""),
        name=data.get("name", ""),
        field_type=field_type.get("presentation") or field_type.get("id") or "unknown",
        instances=len(instances) if isinstance(instances, list) else int(instances or 0),
    )


def bundle_value_definition(data: dict[str, Any]) -> BundleValueDefinition:
    return BundleValueDefinition(
        id=data.get("id", ""),
        name=data.get("name", ""),
        description=data.get("description"),
        is_resolved=data.get("isResolved"),
        ordinal=data.get("ordinal"),
    )


def bundle_definition(data: dict[str, Any]) -> BundleDefinition:
    return BundleDefinition(
        id=data.get("id", ""),
        name=data.get("name", ""),
        bundle_type=data.get("$type", ""),
        values=[bundle_value_definition(v) for v in data.get("values") or []],
    )


def bundle_value_payload(value: CreateBundleValue) -> dict[str, Any]:
    payload: dict[str, Any] = {"name": value.name}
    if value.description is not None:
        payload["description"] = value.description
    if value.is_resolved is not None:
        payload["isResolved"] = value.is_resolved
    if value.ordinal is not None:
        payload["ordinal"] = value.ordinal
    return payload


def attach_payload(attachment: AttachFieldToProject) -> dict[str, Any]:
    """Request body binding a field to a project.

    A missing field type means an enum field; a bundle given without its
    type is taken to be an enum bundle.
    """
    field_type = attachment.field_type or CustomFieldType.SINGLE_ENUM
    payload: dict[str, Any] = {
        "$type": PROJECT_FIELD_TYPES[field_type],
        "field": {"id": attachment.field_id},
        "canBeEmpty": attachment.can_be_empty,
    }
    if attachment.bundle_id:
        bundle_type = attachment.bundle_type or BundleType.ENUM
        payload["bundle"] = {"$type": BUNDLE_TYPES[bundle_type], "id": attachment.bundle_id}
    if attachment.empty_field_text is not None:
        payload["emptyFieldText"] = attachment.empty_field_text
    return payload


def article_from_youtrack(data: dict[str, Any]) -> Article:
    parent = data.get("parentArticle")
    parent_ref = None
    if parent:
        parent_ref = ArticleRef(
            id=parent.get("id", ""),
            id_readable=parent.get("idReadable"),
            summary=parent.get("summary"),
        )
    return Article(
        id=data.get("id", ""),
        id_readable=data.get("idReadable", ""),
        summary=data.get("summary") or "",
        content=data.get("content"),
        project=project_ref_from_youtrack(data.get("project")),
        parent=parent_ref,
        has_children=bool(data.get("hasChildren")),
        tags=data.get("tags") or [],
        created=from_millis(data.get("created")),
        updated=from_millis(data.get("updated")),
        reporter=user_from_youtrack(data.get("reporter")),
    )


def attachment_from_youtrack(data: dict[str, Any]) -> ArticleAttachment:
    return ArticleAttachment(
        id=data.get("id", ""),
        name=data.get("name", ""),
        size=data.get("size") or 0,
        mime_type=data.get("mimeType"),
        url=data.get("url"),
        created=from_millis(data.get("created")),
        author=user_from_youtrack(data.get("author")),
    )


def article_payload(article: CreateArticle) -> dict[str, Any]:
    payload: dict[str, Any] = {"project": {"id": article.project_id}, "summary": article.summary}
    if article.content is not None:
        payload["content"] = article.content
    if article.parent_id:
        payload["parentArticle"] = {"id": article.parent_id}
    if article.tags:
        payload["tags"] = [{"name": name} for name in article.tags]
    return payload


def article_update_payload(update: UpdateArticle) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    if update.summary is not None:
        payload["summary"] = update.summary
    if update.content is not None:
        payload["content"] = update.content
    if update.tags is not None:
        payload["tags"] = [{"name": name} for name in update.tags]
    return payload
