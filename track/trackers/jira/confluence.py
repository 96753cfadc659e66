"""Confluence Cloud as the knowledge base of a Jira site.

Confluence shares the Jira site's host and credentials and lives under
``/wiki``. Pages are articles and spaces play the part of projects. Most
calls use the v2 REST API; CQL search, labels and moves only exist in v1.
"""
import re
from typing import Any

from loguru import logger

from track.core.constants import DEFAULT_TIMEOUT
from track.core.exceptions import InvalidInputError, NotFoundError, ProjectNotFoundError
from track.core.types import Article, ArticleAttachment, Comment, CreateArticle, UpdateArticle
from track.trackers.base import KnowledgeBase
from track.trackers.jira import confluence_convert as convert
from track.trackers.transport import HttpTransport


V2 = "/api/v2"
V1 = "/rest/api"
PAGE_SIZE = 250
SPACE_ID_PATTERN = re.compile(r"^\d+$")


def wiki_url(url: str) -> str:
    base = url.rstrip("/")
    return base if base.endswith("/wiki") else f"{base}/wiki"


class ConfluenceKnowledgeBase(KnowledgeBase):
    """KnowledgeBase backed by Confluence pages.

    Args:
        url: Jira or Confluence site URL; ``/wiki`` is appended when missing.
        email: Atlassian account email.
        token: API token.
        timeout: HTTP timeout in seconds.
    """

    name = "confluence"

    def __init__(self, url: str, email: str, token: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.transport = HttpTransport(
            wiki_url(url),
            auth=(email, token),
            timeout=timeout,
            error_message=convert.error_message,
        )

    def _not_found(self, page_id: str) -> NotFoundError:
        return NotFoundError(f"article '{page_id}'")

    def _page(self, page_id: str) -> dict[str, Any]:
        return self.transport.get(
            f"{V2}/pages/{page_id}",
            params={"body-format": convert.STORAGE},
            not_found=self._not_found(page_id),
        )

    def resolve_project_id(self, identifier: str) -> str:
        """Return numeric space ids unchanged, otherwise look up a space key."""
        if SPACE_ID_PATTERN.match(identifier):
            return identifier
        data = self.transport.get(f"{V2}/spaces", params={"keys": identifier}) or {}
        for space in data.get("results", []):
            if space.get("key") == identifier:
                return str(space["id"])
        raise ProjectNotFoundError(identifier)

    def get_article(self, article_id: str) -> Article:
        return convert.article_from_page(self._page(article_id))

    def list_articles(self, project_id: str | None, limit: int, skip: int) -> list[Article]:
        """List current pages, following cursors until ``skip + limit`` are in hand."""
        params: dict[str, Any] = {
            "limit": min(skip + limit, PAGE_SIZE),
            "body-format": convert.STORAGE,
            "status": "current",
            "space-id": project_id,
        }
        pages: list[dict[str, Any]] = []
        while len(pages) < skip + limit:
            data = self.transport.get(f"{V2}/pages", params=params) or {}
            pages.extend(data.get("results", []))
            cursor = convert.next_cursor(data)
            if not cursor:
                break
            params["cursor"] = cursor
        return [convert.article_from_page(page) for page in pages[skip : skip + limit]]

    def search_articles(self, query: str, limit: int, skip: int) -> list[Article]:
        escaped = query.replace('"', '\\"')
        data = self.transport.get(
            f"{V1}/search",
            params={
                "cql": f'type=page AND text~"{escaped}"',
                "limit": limit,
                "start": skip,
                "expand": "content.space",
            },
        ) or {}
        hits = (convert.article_from_search_hit(hit) for hit in data.get("results", []))
        return [article for article in hits if article is not None]

    def create_article(self, article: CreateArticle) -> Article:
        payload: dict[str, Any] = {
            "spaceId": article.project_id,
            "title": article.summary,
            "status": "current",
            "body": convert.storage_body(
                convert.markdown_to_storage(article.content) if article.content else "<p></p>"
            ),
        }
        if article.parent_id:
            payload["parentId"] = article.parent_id
        data = self.transport.post(
            f"{V2}/pages",
            json=payload,
            not_found=ProjectNotFoundError(article.project_id),
        )
        created = convert.article_from_page(data)
        if article.tags:
            self._add_labels(created.id, article.tags)
            created.tags = list(article.tags)
        return created

    def _add_labels(self, page_id: str, labels: list[str]) -> None:
        self.transport.post(
            f"{V1}/content/{page_id}/label",
            json=[{"prefix": "global", "name": label} for label in labels],
            not_found=self._not_found(page_id),
        )

    def update_article(self, article_id: str, update: UpdateArticle) -> Article:
        """Replace title and/or body; the page version is bumped by one.

        Confluence requires the full title and body on every update, so the
        current values fill in whatever the update leaves out.
        """
        current = self._page(article_id)
        version = (current.get("version") or {}).get("number", 1)
        body = (
            convert.markdown_to_storage(update.content)
            if update.content is not None
            else convert.body_value(current) or ""
        )
        data = self.transport.put(
            f"{V2}/pages/{article_id}",
            json={
                "id": article_id,
                "status": current.get("status") or "current",
                "title": update.summary if update.summary is not None else current.get("title", ""),
                "body": convert.storage_body(body),
                "version": {"number": version + 1},
            },
            not_found=self._not_found(article_id),
        )
        updated = convert.article_from_page(data)
        if update.tags:
            self._add_labels(article_id, update.tags)
            updated.tags = list(update.tags)
        return updated

    def delete_article(self, article_id: str) -> None:
        self.transport.delete(f"{V2}/pages/{article_id}", not_found=self._not_found(article_id))

    def get_child_articles(self, parent_id: str) -> list[Article]:
        data = self.transport.get(
            f"{V2}/pages/{parent_id}/children",
            params={"limit": PAGE_SIZE},
            not_found=self._not_found(parent_id),
        ) or {}
        return [convert.article_from_page(page) for page in data.get("results", [])]

    def move_article(self, article_id: str, new_parent_id: str | None) -> Article:
        """Append the page under a new parent.

        Raises:
            InvalidInputError: When no parent is given; Confluence pages
                always hang below a parent or the space home page.
        """
        if not new_parent_id:
            raise InvalidInputError("parent", "Confluence pages need a parent page to move under")
        logger.debug("Moving Confluence page", page=article_id, parent=new_parent_id)
        self.transport.put(
            f"{V1}/content/{article_id}/move/append/{new_parent_id}",
            not_found=self._not_found(article_id),
        )
        return self.get_article(article_id)

    def list_article_attachments(self, article_id: str) -> list[ArticleAttachment]:
        data = self.transport.get(
            f"{V2}/pages/{article_id}/attachments",
            params={"limit": PAGE_SIZE},
            not_found=self._not_found(article_id),
        ) or {}
        return [convert.attachment_from_confluence(a) for a in data.get("results", [])]

    def get_article_comments(self, article_id: str) -> list[Comment]:
        data = self.transport.get(
            f"{V2}/pages/{article_id}/footer-comments",
            params={"limit": PAGE_SIZE, "body-format": convert.STORAGE},
            not_found=self._not_found(article_id),
        ) or {}
        return [convert.comment_from_confluence(c) for c in data.get("results", [])]

    def add_article_comment(self, article_id: str, text: str) -> Comment:
        data = self.transport.post(
            f"{V2}/footer-comments",
            json={"pageId": article_id, "body": convert.storage_body(convert.markdown_to_storage(text))},
            not_found=self._not_found(article_id),
        )
        return convert.comment_from_confluence(data)
