"""Snapshot of tracker metadata kept in ``./.tracker-cache.json``.

Projects, their fields and users, tags and link types change rarely, so
assistants read them from this file instead of asking the tracker on
every run. ``track cache refresh`` rebuilds it; ``track context`` prints it.
"""
import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TypeVar

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from track.core.constants import CACHE_FILENAME
from track.core.exceptions import InvalidInputError, IoError, ParseError, TrackError, UnsupportedError
from track.core.types import Issue, SingleEnumField
from track.trackers.base import IssueTracker


T = TypeVar("T")

DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhdw])\s*$", re.IGNORECASE)
DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


class BackendMetadata(BaseModel):
    backend: str
    base_url: str | None = None
    default_project: str | None = None


class CachedProject(BaseModel):
    id: str
    short_name: str
    name: str
    description: str | None = None


class CachedField(BaseModel):
    name: str
    field_type: str
    required: bool = False
    values: list[str] = Field(default_factory=list)


class ProjectFieldsCache(BaseModel):
    project_short_name: str
    project_id: str
    fields: list[CachedField] = Field(default_factory=list)


class CachedUser(BaseModel):
    login: str
    display_name: str | None = None


class ProjectUsersCache(BaseModel):
    project_short_name: str
    project_id: str
    users: list[CachedUser] = Field(default_factory=list)


class CachedTag(BaseModel):
    id: str | None = None
    name: str


class CachedLinkType(BaseModel):
    name: str
    outward: str | None = None
    inward: str | None = None


class TrackerCache(BaseModel):
    """Everything ``track cache refresh`` collects.

    Attributes:
        updated_at: When the snapshot was taken (UTC).
        backend: Backend, URL and default project the snapshot came from.
        projects: Visible projects.
        project_fields: Custom fields per project.
        project_users: Assignable users per project.
        tags: Tags or labels.
        link_types: Issue link types.
    """

    updated_at: datetime | None = None
    backend: BackendMetadata | None = None
    projects: list[CachedProject] = Field(default_factory=list)
    project_fields: list[ProjectFieldsCache] = Field(default_factory=list)
    project_users: list[ProjectUsersCache] = Field(default_factory=list)
    tags: list[CachedTag] = Field(default_factory=list)
    link_types: list[CachedLinkType] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.projects

    def age(self, now: datetime | None = None) -> timedelta | None:
        if self.updated_at is None:
            return None
        return (now or datetime.now(UTC)) - self.updated_at

    def is_stale(self, max_age: timedelta, now: datetime | None = None) -> bool:
        """A cache that was never written counts as stale."""
        age = self.age(now)
        return age is None or age > max_age

    def for_project(self, project: str) -> "TrackerCache":
        """Copy narrowed to one project, matched by id or case-insensitive short name."""
        wanted = project.lower()

        def matches(project_id: str, short_name: str) -> bool:
            return project_id == project or short_name.lower() == wanted

        return self.model_copy(
            update={
                "projects": [p for p in self.projects if matches(p.id, p.short_name)],
                "project_fields": [f for f in self.project_fields if matches(f.project_id, f.project_short_name)],
                "project_users": [u for u in self.project_users if matches(u.project_id, u.project_short_name)],
            }
        )


class IssueSummary(BaseModel):
    """One open issue as listed by ``track context --include-issues``."""

    id: str
    id_readable: str
    summary: str
    project: str | None = None
    state: str | None = None
    priority: str | None = None
    assignee: str | None = None

    @classmethod
    def from_issue(cls, issue: Issue) -> "IssueSummary":
        priority = next(
            (
                f.value
                for f in issue.custom_fields
                if isinstance(f, SingleEnumField) and f.name.lower() == "priority"
            ),
            None,
        )
        return cls(
            id=issue.id,
            id_readable=issue.id_readable,
            summary=issue.summary,
            project=(issue.project.short_name or issue.project.id) if issue.project else None,
            state=issue.state.name if issue.state else None,
            priority=priority,
            assignee=issue.assignees[0].handle if issue.assignees else None,
        )


def unresolved_query(backend: str, project: str) -> str:
    """Query for the open issues of a project in the backend's own syntax."""
    if backend == "jira":
        return f"project = {project} AND resolution IS EMPTY"
    if backend == "github":
        return "is:open"
    if backend == "gitlab":
        return "state=opened"
    return f"project: {project} #Unresolved"


def parse_duration(text: str) -> timedelta:
    """Parse '30s', '15m', '1h', '2d' or '1w'.

    Raises:
        InvalidInputError: For anything else.
    """
    match = DURATION_PATTERN.match(text)
    if not match:
        raise InvalidInputError("duration", f"'{text}' is not like 30m, 1h or 1d")
    amount, unit = match.groups()
    return timedelta(**{DURATION_UNITS[unit.lower()]: int(amount)})


def cache_path(directory: Path | None = None) -> Path:
    return (directory or Path.cwd()) / CACHE_FILENAME


def load_cache(path: Path | None = None) -> TrackerCache:
    """Read the cache; a missing file yields an empty cache.

    Raises:
        ParseError: If the file is not a valid cache.
        IoError: If the file cannot be read.
    """
    path = path or cache_path()
    if not path.exists():
        return TrackerCache()
    try:
        return TrackerCache.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise ParseError(f"{path}: {e}") from e
    except OSError as e:
        raise IoError(f"cannot read {path}: {e}") from e


def save_cache(cache: TrackerCache, path: Path | None = None) -> Path:
    path = path or cache_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(cache.model_dump_json(indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise IoError(f"cannot write {path}: {e}") from e
    return path


def _optional(what: str, fetch: Callable[[], list[T]]) -> list[T]:
    """Fetch a part of the snapshot that a backend may lack or refuse."""
    try:
        return fetch()
    except UnsupportedError:
        return []
    except TrackError as e:
        logger.warning("Skipping cache section", section=what, error=str(e))
        return []


def build_cache(
    tracker: IssueTracker,
    backend: str,
    base_url: str | None = None,
    default_project: str | None = None,
) -> TrackerCache:
    """Collect a fresh snapshot from the tracker.

    Projects are required; per-project fields and users, tags and link
    types are left empty where the backend cannot provide them.

    Raises:
        TrackError: If the project listing fails.
    """
    projects = tracker.list_projects()
    cache = TrackerCache(
        updated_at=datetime.now(UTC),
        backend=BackendMetadata(backend=backend, base_url=base_url, default_project=default_project),
        projects=[
            CachedProject(id=p.id, short_name=p.short_name, name=p.name, description=p.description)
            for p in projects
        ],
    )
    for project in projects:
        fields = _optional(f"fields of {project.short_name}", lambda: tracker.get_project_custom_fields(project.id))
        cache.project_fields.append(
            ProjectFieldsCache(
                project_short_name=project.short_name,
                project_id=project.id,
                fields=[
                    CachedField(name=f.name, field_type=f.field_type, required=f.required, values=f.values)
                    for f in fields
                ],
            )
        )
        users = _optional(f"users of {project.short_name}", lambda: tracker.list_project_users(project.id))
        cache.project_users.append(
            ProjectUsersCache(
                project_short_name=project.short_name,
                project_id=project.id,
                users=[CachedUser(login=u.handle, display_name=u.display_name) for u in users],
            )
        )
    cache.tags = [CachedTag(id=t.id, name=t.name) for t in _optional("tags", tracker.list_tags)]
    cache.link_types = [
        CachedLinkType(name=lt.name, outward=lt.source_to_target, inward=lt.target_to_source)
        for lt in _optional("link types", tracker.list_link_types)
    ]
    logger.debug("Built tracker cache", projects=len(cache.projects), tags=len(cache.tags))
    return cache
