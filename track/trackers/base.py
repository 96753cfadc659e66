# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
from typing import Protocol, runtime_checkable

from track.core.exceptions import UnsupportedError
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


class IssueTracker(Protocol):
    """Protocol interface for issue tracking backends.

    Every backend implements the required operations against its own wire
    API. Optional operations carry a default here: they either return an
    empty collection or raise UnsupportedError, so adapters subclass this
    protocol explicitly and override what their backend can do.

    All operations are synchronous. Failures are raised as subclasses of
    TrackError; adapters never swallow them.
    """

    name: str

    def get_issue(self, issue_id: str) -> Issue:
        """Fetch an issue by its opaque ID or readable key.

        Raises:
            IssueNotFoundError: If the issue does not exist.
        """
        ...

    def search_issues(self, query: str, limit: int, skip: int) -> SearchResult[Issue]:
        """Search with the backend's native query language, passed through untranslated.

        Args:
            query: Backend query (YouTrack query, JQL, GitHub/GitLab search text).
            limit: Page size.
            skip: Number of results to skip.

        Returns:
            The page of issues and the total when the backend reports one.
        """
        ...

    def get_issue_count(self, query: str) -> int | None:
        """Count matches without fetching them; None when the backend cannot."""
        return None

    def create_issue(self, issue: CreateIssue) -> Issue:
        ...

    def update_issue(self, issue_id: str, update: UpdateIssue) -> Issue:
        """Apply a partial update. Fields left as None are not touched."""
        ...

    def delete_issue(self, issue_id: str) -> None:
        raise UnsupportedError("delete_issue")

    def list_projects(self) -> list[Project]:
        """List every visible project; pagination is handled internally."""
        ...

    def get_project(self, project_id: str) -> Project:
        ...

    def create_project(self, project: CreateProject) -> Project:
        raise UnsupportedError("create_project")

    def resolve_project_id(self, identifier: str) -> str:
        """Resolve a short name or opaque ID to the opaque ID.

        Idempotent when given an opaque ID.

        Raises:
            ProjectNotFoundError: If no project matches.
        """
        ...

    def get_project_custom_fields(self, project_id: str) -> list[ProjectCustomField]:
        ...

    def list_project_users(self, project_id: str) -> list[User]:
        return []

    def list_custom_field_definitions(self) -> list[CustomFieldDefinition]:
        raise UnsupportedError("list_custom_field_definitions")

    def create_custom_field(self, field: CreateCustomField) -> CustomFieldDefinition:
        raise UnsupportedError("create_custom_field")

    def list_bundles(self, bundle_type: BundleType) -> list[BundleDefinition]:
        raise UnsupportedError("list_bundles")

    def create_bundle(self, bundle: CreateBundle) -> BundleDefinition:
        raise UnsupportedError("create_bundle")

    def add_bundle_values(
        self, bundle_id: str, bundle_type: BundleType, values: list[CreateBundleValue]
    ) -> list[BundleValueDefinition]:
        raise UnsupportedError("add_bundle_values")

    def attach_field_to_project(
        self, project_id: str, attachment: AttachFieldToProject
    ) -> ProjectCustomField:
        raise UnsupportedError("attach_field_to_project")

    def list_tags(self) -> list[Tag]:
        ...

    def create_tag(self, tag: CreateTag) -> Tag:
        raise UnsupportedError("create_tag")

    def update_tag(self, current_name: str, tag: CreateTag) -> Tag:
        raise UnsupportedError("update_tag")

    def delete_tag(self, name: str) -> None:
        raise UnsupportedError("delete_tag")

    def list_link_types(self) -> list[IssueLinkType]:
        return []

    def get_issue_links(self, issue_id: str) -> list[IssueLink]:
        ...

    def link_issues(self, source: str, target: str, link_type: str, direction: str) -> None:
        """Link two issues with a free-form type name in the given direction."""
        ...

    def link_subtask(self, child: str, parent: str) -> None:
        ...

    def add_comment(self, issue_id: str, text: str) -> Comment:
        ...

    def get_comments(self, issue_id: str) -> list[Comment]:
        ...


@runtime_checkable
class KnowledgeBase(Protocol):
    """Optional protocol for backends with an article store."""

    def resolve_project_id(self, identifier: str) -> str:
        ...

    def get_article(self, article_id: str) -> Article:
        ...

    def list_articles(self, project_id: str | None, limit: int, skip: int) -> list[Article]:
        ...

    def search_articles(self, query: str, limit: int, skip: int) -> list[Article]:
        ...

    def create_article(self, article: CreateArticle) -> Article:
        ...

    def update_article(self, article_id: str, update: UpdateArticle) -> Article:
        ...

    def delete_article(self, article_id: str) -> None:
        ...

    def get_child_articles(self, parent_id: str) -> list[Article]:
        ...

    def move_article(self, article_id: str, new_parent_id: str | None) -> Article:
        ...

    def list_article_attachments(self, article_id: str) -> list[ArticleAttachment]:
        ...

    def get_article_comments(self, article_id: str) -> list[Comment]:
        ...

    def add_article_comment(self, article_id: str, text: str) -> Comment:
        ...
