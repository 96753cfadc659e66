"""GitHub wiki as a knowledge base.

A GitHub wiki is a git repository of Markdown files next to the code
repository (``<repo>.wiki.git``). Pages are read from a local clone under
``~/.cache/track/wikis/<owner>/<repo>``; every write is committed and pushed
to ``master``, the only branch GitHub renders. A page's slug (its path
without ``.md``) is its article id, and directories nest pages under the
page of the same name.
"""
import base64
import os
import subprocess
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from track.core.exceptions import (
    HttpError,
    InvalidInputError,
    IoError,
    NotFoundError,
    ProjectNotFoundError,
    UnsupportedError,
)
from track.core.types import (
    Article,
    ArticleAttachment,
    ArticleRef,
    Comment,
    CreateArticle,
    ProjectRef,
    UpdateArticle,
    UserRef,
)
from track.trackers.base import KnowledgeBase


WIKI_CACHE_DIR = Path.home() / ".cache" / "track" / "wikis"
WIKI_BRANCH = "master"
GIT_TIMEOUT = 60
FRONT_MATTER = "---"
COMMITTER = ("track-cli", "track-cli@users.noreply.github.com")


def validate_slug(slug: str) -> str:
    """Reject slugs that would escape the wiki checkout.

    Raises:
        InvalidInputError: For empty, absolute or ``..`` slugs.
    """
    if not slug or ".." in slug or slug.startswith(("/", "\\")) or "\0" in slug:
        raise InvalidInputError("slug", f"'{slug}' is not a valid wiki page name")
    return slug


def slugify(title: str) -> str:
    return title.strip().lower().replace(" ", "-")


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split a YAML front matter block off a page.

    Text without a well-formed block comes back unchanged with empty metadata.
    """
    lines = text.splitlines()
    if not lines or lines[0] != FRONT_MATTER:
        return {}, text
    try:
        end = lines.index(FRONT_MATTER, 1)
    except ValueError:
        return {}, text
    try:
        meta = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError:
        return {}, text
    if not isinstance(meta, dict):
        return {}, text
    return meta, "\n".join(lines[end + 1 :]).lstrip("\n")


def render_page(title: str, content: str, tags: list[str]) -> str:
    meta: dict[str, Any] = {"title": title}
    if tags:
        meta["tags"] = tags
    header = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True).strip()
    return f"{FRONT_MATTER}\n{header}\n{FRONT_MATTER}\n\n{content}"


class GithubWiki(KnowledgeBase):
    """KnowledgeBase over a repository's wiki.

    Args:
        owner: Repository owner.
        repo: Repository name.
        token: Token used for clone, fetch and push.
        cache_dir: Checkout location; defaults to the per-user wiki cache.
        remote_url: Wiki remote; defaults to ``https://github.com/<owner>/<repo>.wiki.git``.
    """

    name = "github-wiki"

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str,
        cache_dir: Path | None = None,
        remote_url: str | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.token = token
        self.path = cache_dir or WIKI_CACHE_DIR / owner / repo
        self.remote_url = remote_url or f"https://github.com/{owner}/{repo}.wiki.git"
        self._synced = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    # git plumbing

    def _auth_config(self) -> list[str]:
        credentials = base64.b64encode(f"x-access-token:{self.token}".encode()).decode()
        return ["-c", f"http.extraHeader=Authorization: Basic {credentials}"]

    def _git(self, *args: str, remote: bool = False, cwd: Path | None = None) -> str:
        """Run one git command and return its stdout.

        Raises:
            HttpError: If a command talking to the remote fails or times out.
            IoError: If git cannot be run or a local command fails.
        """
        command = ["git", *(self._auth_config() if remote else []), *args]
        try:
            result = subprocess.run(
                command,
                cwd=cwd or self.path,
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except subprocess.TimeoutExpired as e:
            raise HttpError(f"git {args[0]} timed out after {GIT_TIMEOUT}s") from e
        except OSError as e:
            raise IoError(f"cannot run git: {e}") from e
        if result.returncode != 0:
            message = f"git {args[0]} failed: {result.stderr.strip() or result.stdout.strip()}"
            raise HttpError(message) if remote else IoError(message)
        return result.stdout

    def sync(self) -> None:
        """Clone the wiki on first use, otherwise fast-forward it once per instance."""
        if self._synced:
            return
        if (self.path / ".git").is_dir():
            logger.debug("Fetching wiki", path=str(self.path))
            self._git("fetch", "origin", WIKI_BRANCH, remote=True)
            try:
                self._git("merge", "--ff-only", "FETCH_HEAD")
            except IoError as e:
                raise IoError(f"wiki checkout at {self.path} has diverged; delete it and retry") from e
        else:
            logger.info("Cloning wiki", url=self.remote_url, path=str(self.path))
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._git("clone", self.remote_url, str(self.path), remote=True, cwd=self.path.parent)
        self._synced = True

    def _commit_and_push(self, message: str, *paths: Path) -> None:
        name, email = COMMITTER
        relative = [path.relative_to(self.path).as_posix() for path in paths]
        self._git("add", "-A", "--", *relative)
        self._git("-c", f"user.name={name}", "-c", f"user.email={email}", "commit", "-m", message)
        self._git("push", "origin", f"HEAD:refs/heads/{WIKI_BRANCH}", remote=True)
        logger.debug("Pushed wiki change", message=message)

    # pages

    def _slug(self, article_id: str) -> str:
        """Accept both the bare slug and the readable ``owner/repo#slug``."""
        return validate_slug(article_id.removeprefix(f"{self.full_name}#"))

    def _page_path(self, slug: str) -> Path:
        return self.path / f"{validate_slug(slug)}.md"

    def _existing(self, article_id: str) -> Path:
        slug = self._slug(article_id)
        path = self._page_path(slug)
        self.sync()
        if not path.is_file():
            raise NotFoundError(f"article '{slug}'")
        return path

    def _page_files(self) -> list[Path]:
        """Markdown pages, skipping ``_Sidebar``-style specials and the git directory."""
        files = [
            path
            for path in self.path.rglob("*.md")
            if ".git" not in path.relative_to(self.path).parts and not path.name.startswith("_")
        ]
        return sorted(files, key=lambda path: path.relative_to(self.path).as_posix())

    def _history(self, path: Path) -> tuple[str | None, str | None, str | None]:
        """(created, updated, last author) from the commits touching ``path``."""
        log = self._git("log", "--format=%aI%x09%an", "--", path.relative_to(self.path).as_posix())
        entries = [line.split("\t", 1) for line in log.splitlines() if "\t" in line]
        if not entries:
            return None, None, None
        return entries[-1][0], entries[0][0], entries[0][1]

    def _article(self, path: Path, parents: set[str] | None = None) -> Article:
        meta, content = split_front_matter(path.read_text(encoding="utf-8"))
        relative = path.relative_to(self.path).with_suffix("")
        slug = relative.as_posix()
        parent = relative.parent.as_posix() if relative.parent != Path(".") else None
        created, updated, author = self._history(path)
        tags = meta.get("tags") or []
        if parents is None:
            parents = {slug} if (self.path / slug).is_dir() else set()
        return Article(
            id=slug,
            id_readable=f"{self.full_name}#{slug}",
            summary=str(meta.get("title") or path.stem.replace("-", " ")),
            content=content,
            project=ProjectRef(id=self.full_name, name=self.repo, short_name=self.full_name),
            parent=ArticleRef(
                id=parent,
                id_readable=f"{self.full_name}#{parent}",
                summary=parent.replace("-", " "),
            )
            if parent
            else None,
            has_children=slug in parents,
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            created=created,
            updated=updated,
            reporter=UserRef(login=author, display_name=author) if author else None,
        )

    def _all_articles(self) -> list[Article]:
        self.sync()
        files = self._page_files()
        parents = {path.relative_to(self.path).parent.as_posix() for path in files}
        return [self._article(path, parents) for path in files]

    # KnowledgeBase

    def resolve_project_id(self, identifier: str) -> str:
        """The wiki has one project: the repository, as ``owner/repo`` or ``repo``."""
        if identifier in (self.full_name, self.repo):
            return self.full_name
        raise ProjectNotFoundError(identifier)

    def get_article(self, article_id: str) -> Article:
        return self._article(self._existing(article_id))

    def list_articles(self, project_id: str | None, limit: int, skip: int) -> list[Article]:
        if project_id and project_id != self.full_name:
            return []
        return self._all_articles()[skip : skip + limit]

    def search_articles(self, query: str, limit: int, skip: int) -> list[Article]:
        """Case-insensitive substring match on title, body and tags."""
        needle = query.lower()
        matches = [
            article
            for article in self._all_articles()
            if needle in article.summary.lower()
            or needle in (article.content or "").lower()
            or any(needle in tag.lower() for tag in article.tags)
        ]
        return matches[skip : skip + limit]

    def create_article(self, article: CreateArticle) -> Article:
        if article.project_id not in (self.full_name, self.repo, self.owner):
            raise InvalidInputError(
                "project", f"'{article.project_id}' is not this wiki's repository {self.full_name}"
            )
        slug = slugify(article.summary)
        if article.parent_id:
            slug = f"{self._slug(article.parent_id)}/{slug}"
        path = self._page_path(slug)
        self.sync()
        if path.exists():
            raise InvalidInputError("summary", f"wiki page '{slug}' already exists")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_page(article.summary, article.content or "", article.tags), encoding="utf-8")
        self._commit_and_push(f"Create {slug}", path)
        return self._article(path)

    def update_article(self, article_id: str, update: UpdateArticle) -> Article:
        path = self._existing(article_id)
        current = self._article(path)
        path.write_text(
            render_page(
                update.summary if update.summary is not None else current.summary,
                update.content if update.content is not None else current.content or "",
                update.tags if update.tags is not None else current.tags,
            ),
            encoding="utf-8",
        )
        self._commit_and_push(f"Update {self._slug(article_id)}", path)
        return self._article(path)

    def delete_article(self, article_id: str) -> None:
        path = self._existing(article_id)
        path.unlink()
        self._commit_and_push(f"Delete {self._slug(article_id)}", path)

    def get_child_articles(self, parent_id: str) -> list[Article]:
        slug = self._slug(parent_id)
        return [a for a in self._all_articles() if a.parent is not None and a.parent.id == slug]

    def move_article(self, article_id: str, new_parent_id: str | None) -> Article:
        """Move a page under another page, or to the top level when no parent is given."""
        source = self._existing(article_id)
        name = source.stem
        target = self._page_path(f"{self._slug(new_parent_id)}/{name}" if new_parent_id else name)
        if target.exists():
            raise InvalidInputError("parent", f"wiki page '{target.relative_to(self.path)}' already exists")
        target.parent.mkdir(parents=True, exist_ok=True)
        source.rename(target)
        destination = self._slug(new_parent_id) if new_parent_id else "root"
        self._commit_and_push(f"Move {self._slug(article_id)} to {destination}", source, target)
        return self._article(target)

    def list_article_attachments(self, article_id: str) -> list[ArticleAttachment]:
        self._existing(article_id)
        return []

    def get_article_comments(self, article_id: str) -> list[Comment]:
        self._existing(article_id)
        return []

    def add_article_comment(self, article_id: str, text: str) -> Comment:
        raise UnsupportedError("add_article_comment")
