"""Backend-neutral domain model.

Contains the entities every backend converts into (Issue, Project, Tag, links,
comments, custom fields, articles), the partial-update intents callers hand to
a backend, and the enumerations shared by the custom-field administration
operations. Reads are total: any missing optional field decodes to its
"absent" value. Intents are validated on construction.
"""
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Generic, Literal, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from track.core.utils import canonical_color, is_closed_word, is_open_word, normalize_color, split_labels


T = TypeVar("T")


def tag_names(value: Any) -> list[str]:
    """Reduce tag payloads (strings, ``{"name": ...}`` objects or a comma string) to names."""
    if value is None:
        return []
    if isinstance(value, str):
        return split_labels(value)
    return split_labels(v["name"] if isinstance(v, dict) else str(v) for v in value)


class StateKind(StrEnum):
    """Neutral issue state kinds."""

    OPEN = "open"
    CLOSED = "closed"
    OTHER = "other"


class IssueState(BaseModel):
    """Tagged issue state: ``open``, ``closed`` or ``other(name)``.

    Attributes:
        kind: Neutral classification of the state.
        name: The backend's own label for it (e.g. 'In Progress', 'opened').
    """

    model_config = ConfigDict(frozen=True)

    kind: StateKind
    name: str

    @model_validator(mode="before")
    @classmethod
    def _from_word(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"kind": cls.classify(data), "name": data}
        return data

    @staticmethod
    def classify(word: str) -> StateKind:
        if is_open_word(word):
            return StateKind.OPEN
        if is_closed_word(word):
            return StateKind.CLOSED
        return StateKind.OTHER

    @classmethod
    def parse(cls, word: str) -> "IssueState":
        return cls(kind=cls.classify(word), name=word)

    @property
    def is_closed(self) -> bool:
        return self.kind == StateKind.CLOSED

    def __str__(self) -> str:
        return self.name


class UserRef(BaseModel):
    """Minimal user identity. Privacy-restricted fields may be absent."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    login: str | None = Field(default=None, validation_alias=AliasChoices("login", "username", "account_id"))
    display_name: str | None = Field(default=None, validation_alias=AliasChoices("display_name", "name"))
    email: str | None = None

    @property
    def handle(self) -> str:
        return self.login or self.display_name or self.id


User = UserRef


class ProjectRef(BaseModel):
    id: str = ""
    name: str | None = None
    short_name: str | None = None


class LinkedIssue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    id_readable: str | None = Field(default=None, validation_alias=AliasChoices("id_readable", "key"))
    summary: str | None = Field(default=None, validation_alias=AliasChoices("summary", "title"))


class SingleEnumField(BaseModel):
    type: Literal["single_enum"] = "single_enum"
    name: str
    value: str | None = None


class StateField(BaseModel):
    type: Literal["state"] = "state"
    name: str
    value: str | None = None
    is_resolved: bool = False


class SingleUserField(BaseModel):
    type: Literal["single_user"] = "single_user"
    name: str
    login: str | None = None
    display_name: str | None = None


class TextField(BaseModel):
    type: Literal["text"] = "text"
    name: str
    value: str | None = None


class UnknownField(BaseModel):
    """A field type the neutral model does not interpret; its value is kept as text."""

    type: Literal["unknown"] = "unknown"
    name: str = "Unknown"
    value: str | None = None


CustomField = Annotated[
    SingleEnumField | StateField | SingleUserField | TextField | UnknownField,
    Field(discriminator="type"),
]


class Issue(BaseModel):
    """An issue as seen through the neutral surface.

    Attributes:
        id: Backend-stable opaque identifier.
        id_readable: Human key such as 'PROJ-17', 'owner/repo#42' or '#17'.
        summary: Title line.
        description: Body text.
        project: Owning project.
        state: Tagged state, absent when the backend reports none.
        tags: Label names, an unordered set.
        assignees: Assigned users in backend order.
        reporter: Author of the issue.
        milestone: Milestone or iteration name.
        custom_fields: Typed field values.
        created: Creation time.
        updated: Last modification time.
        closed_at: Close time, present only while the state is closed.
        parent: Parent issue for subtasks.
        is_pull_request: Set by backends that share a namespace with pull requests.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    id_readable: str = Field(default="", validation_alias=AliasChoices("id_readable", "key"))
    summary: str = Field(default="", validation_alias=AliasChoices("summary", "title"))
    description: str | None = None
    project: ProjectRef | None = None
    state: IssueState | None = None
    tags: list[str] = Field(default_factory=list)
    assignees: list[UserRef] = Field(default_factory=list)
    reporter: UserRef | None = None
    milestone: str | None = None
    custom_fields: list[CustomField] = Field(default_factory=list)
    created: datetime | None = None
    updated: datetime | None = None
    closed_at: datetime | None = None
    parent: LinkedIssue | None = None
    is_pull_request: bool = False

    @field_validator("tags", mode="before")
    @classmethod
    def _tag_names(cls, value: Any) -> list[str]:
        return tag_names(value)

    @model_validator(mode="after")
    def _closed_at_follows_state(self) -> "Issue":
        if self.state is None or not self.state.is_closed:
            self.closed_at = None
        elif self.closed_at is None:
            self.closed_at = self.updated
        return self

    @property
    def key(self) -> str:
        return self.id_readable or self.id


class SearchResult(BaseModel, Generic[T]):
    """One page of results plus the backend's total, when it reports one."""

    items: list[T] = Field(default_factory=list)
    total: int | None = None


class Project(BaseModel):
    id: str = ""
    name: str = ""
    short_name: str = ""
    description: str | None = None
    owner: str | None = None


class CreateProject(BaseModel):
    name: str
    short_name: str
    description: str | None = None


class StateValueInfo(BaseModel):
    name: str
    is_resolved: bool = False
    ordinal: int | None = None


class ProjectCustomField(BaseModel):
    """A custom field bound to a project.

    Attributes:
        id: Binding identifier.
        name: Field name.
        field_type: Backend presentation of the type ('enum[1]', 'state[1]', ...).
        required: Inverse of the backend's can-be-empty flag.
        empty_text: Placeholder shown when the field is empty.
        bundle_id: Value bundle backing the field, if any.
        values: Allowed values for enum-like fields.
        state_values: Allowed values with resolution flags for state fields.
    """

    id: str = ""
    name: str = ""
    field_type: str = "unknown"
    required: bool = False
    empty_text: str | None = None
    bundle_id: str | None = None
    values: list[str] = Field(default_factory=list)
    state_values: list[StateValueInfo] = Field(default_factory=list)


class Tag(BaseModel):
    """A tag or label. ``color`` is six lowercase hex digits without '#'."""

    id: str | None = None
    name: str
    color: str | None = None
    description: str | None = None
    issues_count: int | None = None

    @field_validator("color", mode="before")
    @classmethod
    def _normalize_color(cls, value: Any) -> str | None:
        if isinstance(value, dict):
            value = value.get("background")
        return normalize_color(value)


class CreateTag(BaseModel):
    """Intent to create or rewrite a tag. Colors are validated strictly."""

    name: str
    color: str | None = None
    description: str | None = None

    @field_validator("color", mode="before")
    @classmethod
    def _canonical_color(cls, value: Any) -> str | None:
        if value is None or value == "":
            return None
        return canonical_color(str(value))


class LinkDirection(StrEnum):
    OUTWARD = "OUTWARD"
    INWARD = "INWARD"
    BOTH = "BOTH"


class IssueLinkType(BaseModel):
    id: str = ""
    name: str = ""
    source_to_target: str | None = None
    target_to_source: str | None = None
    directed: bool = False


class IssueLink(BaseModel):
    """One link slot of an issue: a type, a direction and the issues on the other end."""

    id: str = ""
    direction: str | None = None
    link_type: IssueLinkType = Field(default_factory=IssueLinkType)
    issues: list[LinkedIssue] = Field(default_factory=list)


class Comment(BaseModel):
    """A comment with a plain-text body.

    ``rich`` carries the backend's document tree verbatim for backends that
    store one; it is kept out of serialized output.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    text: str = Field(default="", validation_alias=AliasChoices("text", "body"))
    author: UserRef | None = None
    created: datetime | None = None
    updated: datetime | None = None
    is_system: bool = False
    rich: dict[str, Any] | None = Field(default=None, exclude=True)


class SingleEnumUpdate(BaseModel):
    type: Literal["single_enum"] = "single_enum"
    name: str
    value: str


class StateUpdate(BaseModel):
    type: Literal["state"] = "state"
    name: str
    value: str


class SingleUserUpdate(BaseModel):
    type: Literal["single_user"] = "single_user"
    name: str
    login: str


CustomFieldUpdate = Annotated[
    SingleEnumUpdate | StateUpdate | SingleUserUpdate,
    Field(discriminator="type"),
]


class _IssueIntent(BaseModel):
    """Shared readers for create/update intents.

    State and assignee may arrive either as first-class fields or as custom
    field updates named 'State'/'Status' and 'Assignee'; the first-class
    field wins.
    """

    state: str | None = None
    assignees: list[str] | None = None
    custom_fields: list[CustomFieldUpdate] = Field(default_factory=list)

    @field_validator("assignees", mode="before")
    @classmethod
    def _single_assignee(cls, value: Any) -> Any:
        return [value] if isinstance(value, str) else value

    def requested_state(self) -> str | None:
        if self.state:
            return self.state
        for update in self.custom_fields:
            if isinstance(update, StateUpdate) and update.name.lower() in ("state", "status"):
                return update.value
        return None

    def requested_assignees(self) -> list[str] | None:
        if self.assignees is not None:
            return self.assignees
        logins = [
            update.login
            for update in self.custom_fields
            if isinstance(update, SingleUserUpdate) and update.name.lower() == "assignee"
        ]
        return logins or None

    def other_custom_fields(self) -> list[CustomFieldUpdate]:
        """Custom field updates that are not the state or assignee shorthands."""
        return [
            update
            for update in self.custom_fields
            if not (isinstance(update, StateUpdate) and update.name.lower() in ("state", "status"))
            and not (isinstance(update, SingleUserUpdate) and update.name.lower() == "assignee")
        ]


class CreateIssue(_IssueIntent):
    """Intent to create an issue. ``project_id`` must already be resolved."""

    project_id: str
    summary: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    parent: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _label_set(cls, value: Any) -> list[str]:
        return split_labels(value)


class UpdateIssue(_IssueIntent):
    """Partial update: None (or an empty custom field list) leaves a field unchanged."""

    summary: str | None = None
    description: str | None = None
    tags: list[str] | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _label_set(cls, value: Any) -> list[str] | None:
        return None if value is None else split_labels(value)

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True, exclude_defaults=True)


class CustomFieldType(StrEnum):
    """Field-type enumerants accepted by the custom-field administration operations."""

    SINGLE_ENUM = "enum"
    MULTI_ENUM = "multi-enum"
    STATE = "state"
    TEXT = "text"
    STRING = "string"
    DATE = "date"
    INTEGER = "integer"
    FLOAT = "float"
    PERIOD = "period"
    USER = "user"


class BundleType(StrEnum):
    ENUM = "enum"
    STATE = "state"
    OWNED_FIELD = "ownedField"
    VERSION = "version"
    BUILD = "build"


class CustomFieldDefinition(BaseModel):
    id: str = ""
    name: str = ""
    field_type: str = "unknown"
    instances: int = 0


class BundleValueDefinition(BaseModel):
    id: str = ""
    name: str = ""
    description: str | None = None
    is_resolved: bool | None = None
    ordinal: int | None = None


class BundleDefinition(BaseModel):
    id: str = ""
    name: str = ""
    bundle_type: str = ""
    values: list[BundleValueDefinition] = Field(default_factory=list)


class CreateCustomField(BaseModel):
    name: str
    field_type: CustomFieldType


class CreateBundleValue(BaseModel):
    name: str
    description: str | None = None
    is_resolved: bool | None = None
    ordinal: int | None = None


class CreateBundle(BaseModel):
    name: str
    bundle_type: BundleType
    values: list[CreateBundleValue] = Field(default_factory=list)


class AttachFieldToProject(BaseModel):
    """Binding of a field to a project; types default to enum when omitted."""

    field_id: str
    field_type: CustomFieldType | None = None
    bundle_id: str | None = None
    bundle_type: BundleType | None = None
    can_be_empty: bool = True
    empty_field_text: str | None = None


class ArticleRef(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    id_readable: str | None = Field(default=None, validation_alias=AliasChoices("id_readable", "key"))
    summary: str | None = None


class Article(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    id_readable: str = Field(default="", validation_alias=AliasChoices("id_readable", "key"))
    summary: str = Field(default="", validation_alias=AliasChoices("summary", "title"))
    content: str | None = None
    project: ProjectRef | None = None
    parent: ArticleRef | None = None
    has_children: bool = False
    tags: list[str] = Field(default_factory=list)
    created: datetime | None = None
    updated: datetime | None = None
    reporter: UserRef | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _tag_names(cls, value: Any) -> list[str]:
        return tag_names(value)


class CreateArticle(BaseModel):
    project_id: str
    summary: str
    content: str | None = None
    parent_id: str | None = None
    tags: list[str] = Field(default_factory=list)


class UpdateArticle(BaseModel):
    summary: str | None = None
    content: str | None = None
    tags: list[str] | None = None


class ArticleAttachment(BaseModel):
    id: str = ""
    name: str = ""
    size: int = 0
    mime_type: str | None = None
    url: str | None = None
    created: datetime | None = None
    author: UserRef | None = None
