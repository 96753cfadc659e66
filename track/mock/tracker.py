"""Backend that answers every operation from a scenario directory.

Responses are JSON files in the neutral shape, picked through the
scenario's manifest. Every call is appended to the scenario's call log.
"""
import json
import threading
import time
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError

from track.core.exceptions import (
    ApiError,
    IoError,
    IssueNotFoundError,
    MockMissError,
    NotFoundError,
    ParseError,
    ProjectNotFoundError,
    TrackError,
)
from track.core.types import (
    Article,
    ArticleAttachment,
    AttachFieldToProject,
    BundleDefinition,
    BundleType,
    BundleValueDefinition,
    Comment,
    CreateArticle,
    CreateBundle,
    CreateBundleValue,
    CreateCustomField,
    CreateIssue,
    CreateProject,
    CreateTag,
    CustomFieldDefinition,
    Issue,
    IssueLink,
    IssueLinkType,
    Project,
    ProjectCustomField,
    SearchResult,
    Tag,
    UpdateArticle,
    UpdateIssue,
    User,
)
from track.mock.call_log import CallLogEntry, MatchedMapping, append_entry
from track.mock.manifest import Manifest, Match, request_key
from track.mock.scenario import MANIFEST_FILENAME
from track.trackers.base import IssueTracker, KnowledgeBase


RESPONSES_DIR = "responses"


class MockTracker(IssueTracker, KnowledgeBase):
    """IssueTracker and KnowledgeBase backed by canned responses.

    Args:
        scenario_dir: Directory holding ``manifest.toml`` and ``responses/``.
        log_calls: Append each call to ``call_log.jsonl``.
    """

    name = "mock"

    def __init__(self, scenario_dir: Path, log_calls: bool = True) -> None:
        self.scenario_dir = Path(scenario_dir)
        self.manifest = Manifest.load(self.scenario_dir / MANIFEST_FILENAME)
        self.log_calls = log_calls
        self._counts: dict[str, int] = {}
        self._counts_lock = threading.Lock()

    # Plumbing

    def _load_file(self, filename: str) -> Any:
        path = self.scenario_dir / RESPONSES_DIR / filename
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise IoError(f"cannot read mock response {path}: {e}") from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"mock response {filename}: {e}") from e

    def _record(
        self,
        op: str,
        args: dict[str, Any],
        match: Match | None,
        result_kind: str,
        body: Any = None,
        error: str | None = None,
    ) -> None:
        if not self.log_calls:
            return
        append_entry(
            self.scenario_dir,
            CallLogEntry(
                op=op,
                args=args,
                matched_mapping=MatchedMapping(index=match.index, file=match.file) if match else None,
                result_kind=result_kind,
                status=match.mapping.status if match else None,
                body=body,
                error=error,
            ),
        )

    def _find(self, op: str, args: dict[str, Any], body: Any) -> Match | None:
        serialized = None if body is None else json.dumps(body)
        key = request_key(op, args)
        with self._counts_lock:
            match = self.manifest.find(op, args, serialized, self._counts)
            self._counts[key] = self._counts.get(key, 0) + 1
        return match

    def _respond(self, op: str, args: dict[str, Any], body: Any = None) -> Any:
        """Answer one call from the manifest and log it.

        Returns:
            The decoded response file, or None for an entry without a file.

        Raises:
            MockMissError: If no manifest entry matches.
            ApiError: If the entry simulates a failure status.
        """
        match = self._find(op, args, body)
        if match is None:
            miss = MockMissError(op, args)
            logger.info("Mock miss", op=op, args=args)
            self._record(op, args, None, "miss", body, str(miss))
            raise miss

        logger.debug("Mock match", op=op, index=match.index, file=match.file)
        if match.mapping.delay_ms > 0:
            time.sleep(match.mapping.delay_ms / 1000)

        try:
            data = self._load_file(match.file) if match.file else None
        except TrackError as e:
            self._record(op, args, match, "error", body, str(e))
            raise

        if match.mapping.status >= 400:
            message = data.get("message") if isinstance(data, dict) else None
            error = ApiError(match.mapping.status, message or f"HTTP {match.mapping.status}")
            self._record(op, args, match, "error", body, str(error))
            raise error

        self._record(op, args, match, "ok", body)
        return data

    @staticmethod
    def _parse(adapter: Any, data: Any, op: str) -> Any:
        try:
            return TypeAdapter(adapter).validate_python(data)
        except ValidationError as e:
            raise ParseError(f"mock response for {op}: {e}") from e

    def _call(self, op: str, args: dict[str, Any], adapter: Any, body: Any = None) -> Any:
        return self._parse(adapter, self._respond(op, args, body), op)

    def _lookup(self, op: str, args: dict[str, Any], adapter: Any, not_found: TrackError) -> Any:
        """Single-entity lookups report a miss as the entity's not-found error."""
        try:
            return self._call(op, args, adapter)
        except MockMissError as miss:
            raise not_found from miss

    @staticmethod
    def _body(model: BaseModel) -> dict[str, Any]:
        return model.model_dump(mode="json", exclude_none=True)

    # Issues

    def get_issue(self, issue_id: str) -> Issue:
        return self._lookup("get_issue", {"id": issue_id}, Issue, IssueNotFoundError(issue_id))

    def search_issues(self, query: str, limit: int, skip: int) -> SearchResult[Issue]:
        data = self._respond("search_issues", {"query": query, "limit": limit, "skip": skip})
        if isinstance(data, list):
            return SearchResult[Issue](items=self._parse(list[Issue], data, "search_issues"))
        return self._parse(SearchResult[Issue], data, "search_issues")

    def get_issue_count(self, query: str) -> int | None:
        data = self._respond("get_issue_count", {"query": query})
        if isinstance(data, dict):
            data = data.get("count")
        return self._parse(int | None, data, "get_issue_count")

    def create_issue(self, issue: CreateIssue) -> Issue:
        args = {"project": issue.project_id, "summary": issue.summary}
        return self._call("create_issue", args, Issue, body=self._body(issue))

    def update_issue(self, issue_id: str, update: UpdateIssue) -> Issue:
        return self._call("update_issue", {"id": issue_id}, Issue, body=self._body(update))

    def delete_issue(self, issue_id: str) -> None:
        self._respond("delete_issue", {"id": issue_id})

    # Projects

    def list_projects(self) -> list[Project]:
        return self._call("list_projects", {}, list[Project])

    def get_project(self, project_id: str) -> Project:
        return self._lookup("get_project", {"id": project_id}, Project, ProjectNotFoundError(project_id))

    def create_project(self, project: CreateProject) -> Project:
        args = {"name": project.name, "short_name": project.short_name}
        return self._call("create_project", args, Project, body=self._body(project))

    def resolve_project_id(self, identifier: str) -> str:
        """Use a ``resolve_project_id`` mapping when present, else search list_projects.

        The fallback matches the project id or the exact short name.
        """
        op = "resolve_project_id"
        args = {"identifier": identifier}
        match = self._find(op, args, None)
        if match is not None:
            data = self._load_file(match.file) if match.file else identifier
            if isinstance(data, dict):
                data = data.get("id")
            if not isinstance(data, str) or not data:
                self._record(op, args, match, "error", error="response is not a project id")
                raise ParseError(f"mock response for {op}: expected a project id")
            self._record(op, args, match, "ok")
            return data

        for project in self.list_projects():
            if identifier in (project.id, project.short_name):
                self._record(op, args, None, "ok")
                return project.id
        error = ProjectNotFoundError(identifier)
        self._record(op, args, None, "error", error=str(error))
        raise error

    def get_project_custom_fields(self, project_id: str) -> list[ProjectCustomField]:
        return self._call("get_project_custom_fields", {"project_id": project_id}, list[ProjectCustomField])

    def list_project_users(self, project_id: str) -> list[User]:
        return self._call("list_project_users", {"project_id": project_id}, list[User])

    # Custom field administration

    def list_custom_field_definitions(self) -> list[CustomFieldDefinition]:
        return self._call("list_custom_field_definitions", {}, list[CustomFieldDefinition])

    def create_custom_field(self, field: CreateCustomField) -> CustomFieldDefinition:
        args = {"name": field.name, "field_type": field.field_type.value}
        return self._call("create_custom_field", args, CustomFieldDefinition, body=self._body(field))

    def list_bundles(self, bundle_type: BundleType) -> list[BundleDefinition]:
        return self._call("list_bundles", {"bundle_type": bundle_type.value}, list[BundleDefinition])

    def create_bundle(self, bundle: CreateBundle) -> BundleDefinition:
        args = {"name": bundle.name, "bundle_type": bundle.bundle_type.value}
        return self._call("create_bundle", args, BundleDefinition, body=self._body(bundle))

    def add_bundle_values(
        self, bundle_id: str, bundle_type: BundleType, values: list[CreateBundleValue]
    ) -> list[BundleValueDefinition]:
        args = {"bundle_id": bundle_id, "bundle_type": bundle_type.value, "values": [v.name for v in values]}
        body = [self._body(v) for v in values]
        return self._call("add_bundle_values", args, list[BundleValueDefinition], body=body)

    def attach_field_to_project(self, project_id: str, attachment: AttachFieldToProject) -> ProjectCustomField:
        args = {"project_id": project_id, "field_id": attachment.field_id}
        return self._call("attach_field_to_project", args, ProjectCustomField, body=self._body(attachment))

    # Tags

    def list_tags(self) -> list[Tag]:
        return self._call("list_tags", {}, list[Tag])

    def create_tag(self, tag: CreateTag) -> Tag:
        return self._call("create_tag", {"name": tag.name}, Tag, body=self._body(tag))

    def update_tag(self, current_name: str, tag: CreateTag) -> Tag:
        return self._call("update_tag", {"name": current_name}, Tag, body=self._body(tag))

    def delete_tag(self, name: str) -> None:
        self._respond("delete_tag", {"name": name})

    # Links

    def list_link_types(self) -> list[IssueLinkType]:
        return self._call("list_link_types", {}, list[IssueLinkType])

    def get_issue_links(self, issue_id: str) -> list[IssueLink]:
        return self._call("get_issue_links", {"issue_id": issue_id}, list[IssueLink])

    def link_issues(self, source: str, target: str, link_type: str, direction: str) -> None:
        args = {"source": source, "target": target, "link_type": link_type, "direction": str(direction)}
        self._respond("link_issues", args)

    def link_subtask(self, child: str, parent: str) -> None:
        self._respond("link_subtask", {"child": child, "parent": parent})

    # Comments

    def add_comment(self, issue_id: str, text: str) -> Comment:
        return self._call("add_comment", {"issue_id": issue_id, "text": text}, Comment, body={"text": text})

    def get_comments(self, issue_id: str) -> list[Comment]:
        return self._call("get_comments", {"issue_id": issue_id}, list[Comment])

    # Knowledge base

    def get_article(self, article_id: str) -> Article:
        return self._lookup(
            "get_article", {"id": article_id}, Article, NotFoundError(f"article {article_id}")
        )

    def list_articles(self, project_id: str | None, limit: int, skip: int) -> list[Article]:
        args: dict[str, Any] = {"limit": limit, "skip": skip}
        if project_id is not None:
            args["project_id"] = project_id
        return self._call("list_articles", args, list[Article])

    def search_articles(self, query: str, limit: int, skip: int) -> list[Article]:
        return self._call("search_articles", {"query": query, "limit": limit, "skip": skip}, list[Article])

    def create_article(self, article: CreateArticle) -> Article:
        args = {"project": article.project_id, "summary": article.summary}
        return self._call("create_article", args, Article, body=self._body(article))

    def update_article(self, article_id: str, update: UpdateArticle) -> Article:
        return self._call("update_article", {"id": article_id}, Article, body=self._body(update))

    def delete_article(self, article_id: str) -> None:
        self._respond("delete_article", {"id": article_id})

    def get_child_articles(self, parent_id: str) -> list[Article]:
        return self._call("get_child_articles", {"parent_id": parent_id}, list[Article])

    def move_article(self, article_id: str, new_parent_id: str | None) -> Article:
        args = {"article_id": article_id}
        if new_parent_id is not None:
            args["new_parent_id"] = new_parent_id
        return self._call("move_article", args, Article)

    def list_article_attachments(self, article_id: str) -> list[ArticleAttachment]:
        return self._call("list_article_attachments", {"article_id": article_id}, list[ArticleAttachment])

    def get_article_comments(self, article_id: str) -> list[Comment]:
        return self._call("get_article_comments", {"article_id": article_id}, list[Comment])

    def add_article_comment(self, article_id: str, text: str) -> Comment:
        args = {"article_id": article_id, "text": text}
        return self._call("add_article_comment", args, Comment, body={"text": text})
