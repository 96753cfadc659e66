"""Tests for the GitHub wiki knowledge base."""
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from track.core.exceptions import (
    HttpError,
    InvalidInputError,
    IoError,
    NotFoundError,
    ProjectNotFoundError,
    UnsupportedError,
)
from track.core.types import CreateArticle, UpdateArticle
from track.trackers.github.wiki import (
    GithubWiki,
    render_page,
    slugify,
    split_front_matter,
    validate_slug,
)


class FakeGit:
    """Stands in for the git binary: records commands and answers ``log``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.history = "2025-04-02T10:00:00+00:00\tAnn\n2025-04-01T09:00:00+00:00\tBob\n"

    def __call__(self, *args: str, remote: bool = False, cwd: Path | None = None) -> str:
        self.calls.append(args)
        return self.history if args[0] == "log" else ""


@pytest.fixture
def checkout(tmp_path: Path) -> Path:
    root = tmp_path / "wiki"
    (root / ".git").mkdir(parents=True)
    (root / ".git" / "notes.md").write_text("not a page")
    (root / "Home.md").write_text("---\ntitle: Home\ntags: [start]\n---\n\nWelcome aboard.")
    (root / "_Sidebar.md").write_text("* [[Home]]")
    (root / "guides").mkdir()
    (root / "guides.md").write_text("Guides index")
    (root / "guides" / "setup.md").write_text("---\ntitle: Setup Guide\n---\nInstall the CLI.")
    return root


@pytest.fixture
def git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def wiki(checkout: Path, git: FakeGit) -> GithubWiki:
    wiki = GithubWiki("acme", "widgets", "ghp_token", cache_dir=checkout)
    wiki._git = git
    return wiki


class TestPageFormat:
    @pytest.mark.parametrize("slug", ["", "../etc/passwd", "a/../b", "/abs", "\\abs", "nul\0"])
    def test_invalid_slugs(self, slug: str) -> None:
        with pytest.raises(InvalidInputError):
            validate_slug(slug)

    def test_slugify(self) -> None:
        assert slugify(" Release Notes ") == "release-notes"

    def test_front_matter_split(self) -> None:
        meta, body = split_front_matter("---\ntitle: Home\ntags:\n  - a\n---\n\nBody")
        assert meta == {"title": "Home", "tags": ["a"]}
        assert body == "Body"

    @pytest.mark.parametrize("text", ["No header", "---\ntitle: open", "---\n: [bad\n---\nx", "---\n- a\n---\nx"])
    def test_without_usable_front_matter(self, text: str) -> None:
        assert split_front_matter(text) == ({}, text)

    def test_render_page(self) -> None:
        assert render_page("Home", "Hi", []) == "---\ntitle: Home\n---\n\nHi"
        assert split_front_matter(render_page("Home", "Hi", ["x"]))[0] == {"title": "Home", "tags": ["x"]}


class TestSync:
    def test_clone_when_missing(self, tmp_path: Path, git: FakeGit) -> None:
        wiki = GithubWiki("acme", "widgets", "ghp_token", cache_dir=tmp_path / "cache" / "widgets")
        wiki._git = git

        wiki.sync()
        wiki.sync()

        target = str(tmp_path / "cache" / "widgets")
        assert git.calls == [("clone", "https://github.com/acme/widgets.wiki.git", target)]

    def test_fast_forward_existing_checkout(self, wiki: GithubWiki, git: FakeGit) -> None:
        wiki.sync()
        assert git.calls == [("fetch", "origin", "master"), ("merge", "--ff-only", "FETCH_HEAD")]

    def test_diverged_checkout(self, wiki: GithubWiki) -> None:
        def refuse_merge(*args: str, **kwargs) -> str:
            if args[0] == "merge":
                raise IoError("git merge failed: Not possible to fast-forward")
            return ""

        wiki._git = refuse_merge
        with pytest.raises(IoError, match="diverged"):
            wiki.sync()

    def test_remote_failure_is_http_error(self, checkout: Path) -> None:
        wiki = GithubWiki("acme", "widgets", "ghp_token", cache_dir=checkout)
        failed = subprocess.CompletedProcess([], 128, stdout="", stderr="fatal: repository not found")
        with patch("subprocess.run", return_value=failed) as run:
            with pytest.raises(HttpError, match="repository not found"):
                wiki.sync()

        command = run.call_args.args[0]
        assert command[:2] == ["git", "-c"]
        assert command[2].startswith("http.extraHeader=Authorization: Basic ")
        assert "ghp_token" not in " ".join(command)
        assert run.call_args.kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"

    def test_missing_git_binary(self, checkout: Path) -> None:
        wiki = GithubWiki("acme", "widgets", "ghp_token", cache_dir=checkout)
        with patch("subprocess.run", side_effect=FileNotFoundError("git")):
            with pytest.raises(IoError, match="cannot run git"):
                wiki.sync()


class TestReading:
    def test_get_article(self, wiki: GithubWiki) -> None:
        article = wiki.get_article("guides/setup")

        assert article.id == "guides/setup"
        assert article.id_readable == "acme/widgets#guides/setup"
        assert article.summary == "Setup Guide"
        assert article.content == "Install the CLI."
        assert article.parent is not None and article.parent.id == "guides"
        assert article.project is not None and article.project.id == "acme/widgets"
        assert article.reporter is not None and article.reporter.login == "Ann"
        assert article.created is not None and article.created.day == 1
        assert article.updated is not None and article.updated.day == 2

    def test_title_falls_back_to_file_name(self, wiki: GithubWiki) -> None:
        article = wiki.get_article("guides")
        assert article.summary == "guides"
        assert article.has_children

    def test_missing_page(self, wiki: GithubWiki) -> None:
        with pytest.raises(NotFoundError, match="article 'nope'"):
            wiki.get_article("nope")

    def test_list_skips_special_files(self, wiki: GithubWiki) -> None:
        articles = wiki.list_articles(None, limit=10, skip=0)

        assert [a.id for a in articles] == ["Home", "guides", "guides/setup"]
        assert [a.has_children for a in articles] == [False, True, False]

    def test_list_other_project_is_empty(self, wiki: GithubWiki) -> None:
        assert wiki.list_articles("acme/other", limit=10, skip=0) == []

    def test_list_window(self, wiki: GithubWiki) -> None:
        assert [a.id for a in wiki.list_articles("acme/widgets", limit=1, skip=1)] == ["guides"]

    @pytest.mark.parametrize("query,expected", [("welcome", ["Home"]), ("START", ["Home"]), ("setup", ["guides/setup"])])
    def test_search(self, wiki: GithubWiki, query: str, expected: list[str]) -> None:
        assert [a.id for a in wiki.search_articles(query, limit=10, skip=0)] == expected

    def test_children(self, wiki: GithubWiki) -> None:
        assert [a.id for a in wiki.get_child_articles("guides")] == ["guides/setup"]

    def test_readable_ids_are_accepted(self, wiki: GithubWiki) -> None:
        """`article tree` walks children by readable id."""
        assert wiki.get_article("acme/widgets#guides/setup").id == "guides/setup"
        assert [a.id for a in wiki.get_child_articles("acme/widgets#guides")] == ["guides/setup"]

    def test_resolve_project(self, wiki: GithubWiki) -> None:
        assert wiki.resolve_project_id("widgets") == "acme/widgets"
        with pytest.raises(ProjectNotFoundError):
            wiki.resolve_project_id("gadgets")


class TestWriting:
    def test_create_commits_and_pushes(self, wiki: GithubWiki, checkout: Path, git: FakeGit) -> None:
        article = wiki.create_article(
            CreateArticle(project_id="acme/widgets", summary="Release Notes", content="v1", parent_id="guides")
        )

        assert article.id == "guides/release-notes"
        assert (checkout / "guides" / "release-notes.md").read_text() == "---\ntitle: Release Notes\n---\n\nv1"
        writes = [call for call in git.calls if call[0] not in ("fetch", "merge", "log")]
        assert writes == [
            ("add", "-A", "--", "guides/release-notes.md"),
            (
                "-c",
                "user.name=track-cli",
                "-c",
                "user.email=track-cli@users.noreply.github.com",
                "commit",
                "-m",
                "Create guides/release-notes",
            ),
            ("push", "origin", "HEAD:refs/heads/master"),
        ]

    def test_create_existing_page(self, wiki: GithubWiki) -> None:
        with pytest.raises(InvalidInputError, match="already exists"):
            wiki.create_article(CreateArticle(project_id="widgets", summary="Guides"))

    def test_create_in_other_repository(self, wiki: GithubWiki) -> None:
        with pytest.raises(InvalidInputError):
            wiki.create_article(CreateArticle(project_id="gadgets", summary="New"))

    def test_update_keeps_unset_fields(self, wiki: GithubWiki, checkout: Path) -> None:
        wiki.update_article("Home", UpdateArticle(content="Hello again."))

        meta, body = split_front_matter((checkout / "Home.md").read_text())
        assert meta == {"title": "Home", "tags": ["start"]}
        assert body == "Hello again."

    def test_delete(self, wiki: GithubWiki, checkout: Path, git: FakeGit) -> None:
        wiki.delete_article("guides/setup")

        assert not (checkout / "guides" / "setup.md").exists()
        assert ("add", "-A", "--", "guides/setup.md") in git.calls

    def test_move_to_root(self, wiki: GithubWiki, checkout: Path, git: FakeGit) -> None:
        article = wiki.move_article("guides/setup", None)

        assert article.id == "setup"
        assert (checkout / "setup.md").exists()
        assert ("add", "-A", "--", "guides/setup.md", "setup.md") in git.calls
        assert any(call[-1] == "Move guides/setup to root" for call in git.calls if "commit" in call)

    def test_move_rejects_escape(self, wiki: GithubWiki) -> None:
        with pytest.raises(InvalidInputError):
            wiki.move_article("Home", "../outside")


class TestUnsupportedParts:
    def test_no_attachments_or_comments(self, wiki: GithubWiki) -> None:
        assert wiki.list_article_attachments("Home") == []
        assert wiki.get_article_comments("Home") == []

    def test_comments_cannot_be_added(self, wiki: GithubWiki) -> None:
        with pytest.raises(UnsupportedError):
            wiki.add_article_comment("Home", "hi")


def test_default_checkout_location() -> None:
    wiki = GithubWiki("acme", "widgets", "t")
    assert wiki.path.parts[-4:] == ("track", "wikis", "acme", "widgets")
