"""YouTrack backend: issues, projects, tags, links, custom-field admin and articles."""
import re
from typing import Any

from loguru import logger

from track.core.constants import DEFAULT_MAX_RESULTS, DEFAULT_TIMEOUT
from track.core.exceptions import (
    InvalidInputError,
    IssueNotFoundError,
    NotFoundError,
    ProjectNotFoundError,
)
from track.core.pagination import fetch_all_pages
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
    LinkDirection,
    Project,
    ProjectCustomField,
    SearchResult,
    Tag,
    UpdateArticle,
    UpdateIssue,
    User,
)
from track.trackers.base import IssueTracker, KnowledgeBase
from track.trackers.transport import HttpTransport
from track.trackers.youtrack import convert


PROJECT_ID_PATTERN = re.compile(r"^\d+-\d+$")
PAGE_SIZE = 100


def youtrack_error_message(body: Any) -> str | None:
    """YouTrack reports ``error_description`` (OAuth style) or ``error``."""
    if not isinstance(body, dict):
        return None
    return body.get("error_description") or body.get("error") or body.get("message")


class YoutrackTracker(IssueTracker, KnowledgeBase):
    """Full-featured backend for a YouTrack instance.

    Args:
        url: Instance URL, e.g. https://example.youtrack.cloud.
        token: Permanent token sent as a Bearer token.
    """

    name = "youtrack"

    def __init__(
        self, url: str, token: str, timeout: float = DEFAULT_TIMEOUT, max_results: int = DEFAULT_MAX_RESULTS
    ) -> None:
        self.max_results = max_results
        base = url.rstrip("/")
        if not base.endswith("/api"):
            base = f"{base}/api"
        self.transport = HttpTransport(
            base,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            error_message=youtrack_error_message,
        )

    # Issues

    def get_issue(self, issue_id: str) -> Issue:
        data = self.transport.get(
            f"/issues/{issue_id}",
            params={"fields": convert.ISSUE_FIELDS},
            not_found=IssueNotFoundError(issue_id),
        )
        return convert.issue_from_youtrack(data)

    def search_issues(self, query: str, limit: int, skip: int) -> SearchResult[Issue]:
        data = self.transport.get(
            "/issues",
            params={"query": query, "fields": convert.ISSUE_FIELDS, "$top": limit, "$skip": skip},
        )
        return SearchResult(
            items=[convert.issue_from_youtrack(issue) for issue in data],
            total=self.get_issue_count(query),
        )

    def get_issue_count(self, query: str) -> int | None:
        """Count via issuesGetter; YouTrack answers -1 while the count is still being computed."""
        data = self.transport.post("/issuesGetter/count", params={"fields": "count"}, json={"query": query})
        count = (data or {}).get("count")
        if count is None or count < 0:
            return None
        return count

    def create_issue(self, issue: CreateIssue) -> Issue:
        data = self.transport.post(
            "/issues",
            params={"fields": convert.ISSUE_FIELDS},
            json=convert.create_payload(issue),
            not_found=ProjectNotFoundError(issue.project_id),
        )
        created = convert.issue_from_youtrack(data)
        if issue.parent:
            self.link_subtask(created.id_readable or created.id, issue.parent)
        return created

    def update_issue(self, issue_id: str, update: UpdateIssue) -> Issue:
        data = self.transport.post(
            f"/issues/{issue_id}",
            params={"fields": convert.ISSUE_FIELDS},
            json=convert.update_payload(update),
            not_found=IssueNotFoundError(issue_id),
        )
        return convert.issue_from_youtrack(data)

    def delete_issue(self, issue_id: str) -> None:
        self.transport.delete(f"/issues/{issue_id}", not_found=IssueNotFoundError(issue_id))

    # Projects

    def list_projects(self) -> list[Project]:
        def fetch_page(skip: int, limit: int) -> list[dict[str, Any]]:
            return self.transport.get(
                "/admin/projects",
                params={"fields": convert.PROJECT_FIELDS, "$top": limit, "$skip": skip},
            )

        projects = fetch_all_pages(fetch_page, PAGE_SIZE, self.max_results)
        return [convert.project_from_youtrack(p) for p in projects]

    def get_project(self, project_id: str) -> Project:
        data = self.transport.get(
            f"/admin/projects/{project_id}",
            params={"fields": convert.PROJECT_FIELDS},
            not_found=ProjectNotFoundError(project_id),
        )
        return convert.project_from_youtrack(data)

    def create_project(self, project: CreateProject) -> Project:
        payload: dict[str, Any] = {"name": project.name, "shortName": project.short_name}
        if project.description is not None:
            payload["description"] = project.description
        data = self.transport.post("/admin/projects", params={"fields": convert.PROJECT_FIELDS}, json=payload)
        return convert.project_from_youtrack(data)

    def resolve_project_id(self, identifier: str) -> str:
        """Return opaque ids ('0-2') unchanged, otherwise match a short name exactly."""
        if PROJECT_ID_PATTERN.match(identifier):
            return identifier
        for project in self.list_projects():
            if project.short_name == identifier:
                return project.id
        raise ProjectNotFoundError(identifier)

    def get_project_custom_fields(self, project_id: str) -> list[ProjectCustomField]:
        data = self.transport.get(
            f"/admin/projects/{project_id}/customFields",
            params={"fields": convert.PROJECT_CUSTOM_FIELD_FIELDS},
            not_found=ProjectNotFoundError(project_id),
        )
        return [convert.project_field_from_youtrack(field) for field in data]

    def list_project_users(self, project_id: str) -> list[User]:
        data = self.transport.get(
            f"/admin/projects/{project_id}/team",
            params={"fields": f"users({convert.USER_FIELDS})"},
            not_found=ProjectNotFoundError(project_id),
        )
        users = (data or {}).get("users") or []
        return [user for user in map(convert.user_from_youtrack, users) if user is not None]

    # Custom-field administration

    def list_custom_field_definitions(self) -> list[CustomFieldDefinition]:
        data = self.transport.get(
            "/admin/customFieldSettings/customFields",
            params={"fields": convert.CUSTOM_FIELD_FIELDS, "$top": -1},
        )
        return [convert.custom_field_definition(field) for field in data]

    def create_custom_field(self, field: CreateCustomField) -> CustomFieldDefinition:
        data = self.transport.post(
            "/admin/customFieldSettings/customFields",
            params={"fields": convert.CUSTOM_FIELD_FIELDS},
            json={"name": field.name, "fieldType": {"id": convert.FIELD_TYPE_IDS[field.field_type]}},
        )
        return convert.custom_field_definition(data)

    def list_bundles(self, bundle_type: BundleType) -> list[BundleDefinition]:
        data = self.transport.get(
            f"/admin/customFieldSettings/bundles/{bundle_type.value}",
            params={"fields": convert.BUNDLE_FIELDS, "$top": -1},
        )
        return [convert.bundle_definition(bundle) for bundle in data]

    def create_bundle(self, bundle: CreateBundle) -> BundleDefinition:
        data = self.transport.post(
            f"/admin/customFieldSettings/bundles/{bundle.bundle_type.value}",
            params={"fields": convert.BUNDLE_FIELDS},
            json={"name": bundle.name, "values": [convert.bundle_value_payload(v) for v in bundle.values]},
        )
        return convert.bundle_definition(data)

    def add_bundle_values(
        self, bundle_id: str, bundle_type: BundleType, values: list[CreateBundleValue]
    ) -> list[BundleValueDefinition]:
        """Add values one request at a time; the first failure stops the batch."""
        added = []
        for value in values:
            data = self.transport.post(
                f"/admin/customFieldSettings/bundles/{bundle_type.value}/{bundle_id}/values",
                params={"fields": convert.BUNDLE_VALUE_FIELDS},
                json=convert.bundle_value_payload(value),
                not_found=NotFoundError(f"bundle '{bundle_id}'"),
            )
            added.append(convert.bundle_value_definition(data))
        return added

    def attach_field_to_project(
        self, project_id: str, attachment: AttachFieldToProject
    ) -> ProjectCustomField:
        data = self.transport.post(
            f"/admin/projects/{project_id}/customFields",
            params={"fields": convert.PROJECT_CUSTOM_FIELD_FIELDS},
            json=convert.attach_payload(attachment),
            not_found=ProjectNotFoundError(project_id),
        )
        return convert.project_field_from_youtrack(data)

    # Tags

    def list_tags(self) -> list[Tag]:
        data = self.transport.get("/issueTags", params={"fields": convert.TAG_FIELDS, "$top": -1})
        return [convert.tag_from_youtrack(tag) for tag in data]

    def _tag_id(self, name: str) -> str:
        for tag in self.list_tags():
            if tag.name == name and tag.id:
                return tag.id
        raise NotFoundError(f"tag '{name}'")

    def create_tag(self, tag: CreateTag) -> Tag:
        data = self.transport.post(
            "/issueTags",
            params={"fields": convert.TAG_FIELDS},
            json=convert.tag_payload(tag),
        )
        return convert.tag_from_youtrack(data)

    def update_tag(self, current_name: str, tag: CreateTag) -> Tag:
        tag_id = self._tag_id(current_name)
        data = self.transport.post(
            f"/issueTags/{tag_id}",
            params={"fields": convert.TAG_FIELDS},
            json=convert.tag_payload(tag),
        )
        return convert.tag_from_youtrack(data)

    def delete_tag(self, name: str) -> None:
        self.transport.delete(f"/issueTags/{self._tag_id(name)}")

    # Links

    def list_link_types(self) -> list[IssueLinkType]:
        data = self.transport.get("/issueLinkTypes", params={"fields": convert.LINK_TYPE_FIELDS})
        return [convert.link_type_from_youtrack(t) for t in data]

    def get_issue_links(self, issue_id: str) -> list[IssueLink]:
        data = self.transport.get(
            f"/issues/{issue_id}/links",
            params={"fields": convert.LINK_FIELDS},
            not_found=IssueNotFoundError(issue_id),
        )
        return [convert.link_from_youtrack(link) for link in data]

    def _find_link_id(self, issue_id: str, link_type: str, direction: str) -> str:
        """Find the issue's link slot for a type name and direction.

        Raises:
            InvalidInputError: If the issue has no such slot.
        """
        for link in self.get_issue_links(issue_id):
            same_type = link.link_type.name.lower() == link_type.lower()
            if same_type and (link.direction or "").upper() == direction.upper():
                return link.id
        raise InvalidInputError(
            "link_type", f"no '{link_type}' link with direction {direction} on {issue_id}"
        )

    def link_issues(self, source: str, target: str, link_type: str, direction: str) -> None:
        link_id = self._find_link_id(source, link_type, direction)
        logger.debug("Linking issues", source=source, target=target, link_id=link_id)
        self.transport.post(
            f"/issues/{source}/links/{link_id}/issues",
            params={"fields": "id"},
            json={"idReadable": target},
            not_found=IssueNotFoundError(target),
        )

    def link_subtask(self, child: str, parent: str) -> None:
        """Attach through the child's inward 'Subtask' slot ('subtask of')."""
        self.link_issues(child, parent, "Subtask", LinkDirection.INWARD)

    # Comments

    def add_comment(self, issue_id: str, text: str) -> Comment:
        data = self.transport.post(
            f"/issues/{issue_id}/comments",
            params={"fields": convert.COMMENT_FIELDS},
            json={"text": text},
            not_found=IssueNotFoundError(issue_id),
        )
        return convert.comment_from_youtrack(data)

    def get_comments(self, issue_id: str) -> list[Comment]:
        data = self.transport.get(
            f"/issues/{issue_id}/comments",
            params={"fields": convert.COMMENT_FIELDS, "$top": -1},
            not_found=IssueNotFoundError(issue_id),
        )
        return [convert.comment_from_youtrack(comment) for comment in data]

    # Knowledge base

    def get_article(self, article_id: str) -> Article:
        data = self.transport.get(
            f"/articles/{article_id}",
            params={"fields": convert.ARTICLE_FIELDS},
            not_found=NotFoundError(f"article '{article_id}'"),
        )
        return convert.article_from_youtrack(data)

    def list_articles(self, project_id: str | None, limit: int, skip: int) -> list[Article]:
        if project_id:
            return self.search_articles(f"project: {project_id}", limit, skip)
        data = self.transport.get(
            "/articles",
            params={"fields": convert.ARTICLE_FIELDS, "$top": limit, "$skip": skip},
        )
        return [convert.article_from_youtrack(article) for article in data]

    def search_articles(self, query: str, limit: int, skip: int) -> list[Article]:
        data = self.transport.get(
            "/articles",
            params={"query": query, "fields": convert.ARTICLE_FIELDS, "$top": limit, "$skip": skip},
        )
        return [convert.article_from_youtrack(article) for article in data]

    def create_article(self, article: CreateArticle) -> Article:
        data = self.transport.post(
            "/articles",
            params={"fields": convert.ARTICLE_FIELDS},
            json=convert.article_payload(article),
            not_found=ProjectNotFoundError(article.project_id),
        )
        return convert.article_from_youtrack(data)

    def update_article(self, article_id: str, update: UpdateArticle) -> Article:
        data = self.transport.post(
            f"/articles/{article_id}",
            params={"fields": convert.ARTICLE_FIELDS},
            json=convert.article_update_payload(update),
            not_found=NotFoundError(f"article '{article_id}'"),
        )
        return convert.article_from_youtrack(data)

    def delete_article(self, article_id: str) -> None:
        self.transport.delete(f"/articles/{article_id}", not_found=NotFoundError(f"article '{article_id}'"))

    def get_child_articles(self, parent_id: str) -> list[Article]:
        data = self.transport.get(
            f"/articles/{parent_id}/childArticles",
            params={"fields": convert.ARTICLE_FIELDS, "$top": -1},
            not_found=NotFoundError(f"article '{parent_id}'"),
        )
        return [convert.article_from_youtrack(article) for article in data]

    def move_article(self, article_id: str, new_parent_id: str | None) -> Article:
        """Re-parent an article; ``None`` moves it to the project root."""
        data = self.transport.post(
            f"/articles/{article_id}",
            params={"fields": convert.ARTICLE_FIELDS},
            json={"parentArticle": {"id": new_parent_id} if new_parent_id else None},
            not_found=NotFoundError(f"article '{article_id}'"),
        )
        return convert.article_from_youtrack(data)

    def list_article_attachments(self, article_id: str) -> list[ArticleAttachment]:
        data = self.transport.get(
            f"/articles/{article_id}/attachments",
            params={"fields": convert.ATTACHMENT_FIELDS},
            not_found=NotFoundError(f"article '{article_id}'"),
        )
        return [convert.attachment_from_youtrack(a) for a in data]

    def get_article_comments(self, article_id: str) -> list[Comment]:
        data = self.transport.get(
            f"/articles/{article_id}/comments",
            params={"fields": convert.COMMENT_FIELDS, "$top": -1},
            not_found=NotFoundError(f"article '{article_id}'"),
        )
        return [convert.comment_from_youtrack(comment) for comment in data]

    def add_article_comment(self, article_id: str, text: str) -> Comment:
        data = self.transport.post(
            f"/articles/{article_id}/comments",
            params={"fields": convert.COMMENT_FIELDS},
            json={"text": text},
            not_found=NotFoundError(f"article '{article_id}'"),
        )
        return convert.comment_from_youtrack(data)
