"""Mapping between Confluence pages and the neutral article model.

Page bodies travel in Confluence "storage" format (XHTML). Reads reduce it
to plain text; writes turn a small Markdown subset into storage markup.
"""
import html
import re
from typing import Any
from urllib.parse import parse_qs, urlparse

from track.core.types import Article, ArticleAttachment, ArticleRef, Comment, ProjectRef, UserRef


STORAGE = "storage"

HEADING_END = re.compile(r"</h[1-3]>", re.IGNORECASE)
BLOCK_END = re.compile(r"<br\s*/?>|</(?:p|div|li|h[4-6])>", re.IGNORECASE)
TAG = re.compile(r"<[^>]+>")
BLANK_RUNS = re.compile(r"\n{3,}")


def error_message(body: Any) -> str | None:
    """Join ``message`` and every ``errors[].message`` with '; '."""
    if not isinstance(body, dict):
        return None
    messages = [body["message"]] if isinstance(body.get("message"), str) else []
    for error in body.get("errors") or []:
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            messages.append(error["message"])
    return "; ".join(messages) or None


def storage_to_text(storage: str) -> str:
    text = HEADING_END.sub("\n\n", storage)
    text = BLOCK_END.sub("\n", text)
    text = html.unescape(TAG.sub("", text)).replace("\xa0", " ")
    return BLANK_RUNS.sub("\n\n", text).strip()


def markdown_to_storage(markdown: str) -> str:
    """Headings, list items and paragraphs; code fences are dropped."""
    parts = []
    for line in markdown.splitlines():
        line = line.strip()
        if not line or line.startswith("```"):
            continue
        for prefix, tag in (("### ", "h3"), ("## ", "h2"), ("# ", "h1"), ("- ", "li"), ("* ", "li")):
            if line.startswith(prefix):
                parts.append(f"<{tag}>{html.escape(line[len(prefix):])}</{tag}>")
                break
        else:
            parts.append(f"<p>{html.escape(line)}</p>")
    return "".join(parts)


def storage_body(value: str) -> dict[str, str]:
    return {"representation": STORAGE, "value": value}


def body_value(data: dict[str, Any]) -> str | None:
    storage = (data.get("body") or {}).get(STORAGE) or {}
    return storage.get("value")


def next_cursor(data: dict[str, Any]) -> str | None:
    """Cursor for the following page, taken from ``_links.next``."""
    link = (data.get("_links") or {}).get("next")
    if not link:
        return None
    return parse_qs(urlparse(link).query).get("cursor", [None])[0]


def article_from_page(data: dict[str, Any]) -> Article:
    storage = body_value(data)
    parent_id = data.get("parentId")
    version = data.get("version") or {}
    return Article(
        id=str(data.get("id", "")),
        id_readable=str(data.get("id", "")),
        summary=data.get("title") or "",
        content=storage_to_text(storage) if storage is not None else None,
        project=ProjectRef(id=str(data.get("spaceId") or "")),
        parent=ArticleRef(id=parent_id, id_readable=parent_id) if parent_id else None,
        created=data.get("createdAt"),
        updated=version.get("createdAt") or data.get("createdAt"),
        reporter=UserRef(id=data["authorId"], login=data["authorId"]) if data.get("authorId") else None,
    )


def article_from_search_hit(hit: dict[str, Any]) -> Article | None:
    """Search hits carry no body; hits without page content are skipped."""
    content = hit.get("content")
    if not content:
        return None
    space = content.get("space") or {}
    return Article(
        id=str(content.get("id", "")),
        id_readable=str(content.get("id", "")),
        summary=content.get("title") or "",
        project=ProjectRef(
            id=str(space.get("id") or ""),
            name=space.get("name"),
            short_name=space.get("key"),
        ),
    )


def attachment_from_confluence(data: dict[str, Any]) -> ArticleAttachment:
    return ArticleAttachment(
        id=str(data.get("id", "")),
        name=data.get("title") or "",
        size=data.get("fileSize") or 0,
        mime_type=data.get("mediaType"),
        url=(data.get("_links") or {}).get("download"),
        created=data.get("createdAt"),
    )


def comment_from_confluence(data: dict[str, Any]) -> Comment:
    storage = body_value(data)
    author_id = (data.get("version") or {}).get("authorId")
    return Comment(
        id=str(data.get("id", "")),
        text=storage_to_text(storage) if storage else "",
        author=UserRef(id=author_id, login=author_id) if author_id else None,
        created=data.get("createdAt"),
    )
