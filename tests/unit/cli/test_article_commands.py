"""Tests for 'track article' commands."""
import json
from pathlib import Path

import pytest

from track.mock.call_log import read_call_log


MANIFEST = """
[[responses]]
op = "get_article"
args = { id = "KB-A-1" }
file = "root.json"

[[responses]]
op = "get_child_articles"
args = { parent_id = "KB-A-1" }
file = "children.json"

[[responses]]
op = "list_articles"
sequence = ["page1.json", "empty.json"]

[[responses]]
op = "resolve_project_id"
args = { identifier = "KB" }
file = "project.json"

[[responses]]
op = "create_article"
file = "created.json"
"""

ROOT = {"id": "9-1", "key": "KB-A-1", "title": "Handbook", "has_children": True, "content": "Start here"}
CHILD = {"id": "9-2", "key": "KB-A-2", "title": "Setup", "has_children": False}


@pytest.fixture
def kb_mock(write_scenario, monkeypatch) -> Path:
    directory = write_scenario(
        MANIFEST,
        {
            "root.json": ROOT,
            "children.json": [CHILD],
            "page1.json": [ROOT, CHILD],
            "empty.json": [],
            "project.json": {"id": "0-9"},
            "created.json": {"id": "9-3", "key": "KB-A-3", "title": "FAQ"},
        },
    )
    monkeypatch.setenv("TRACK_MOCK_DIR", str(directory))
    return directory


class TestArticleCommands:
    def test_get(self, invoke, kb_mock: Path) -> None:
        result = invoke("article", "get", "KB-A-1")

        assert result.exit_code == 0
        assert "KB-A-1 Handbook" in result.stdout
        assert "Start here" in result.stdout

    def test_get_missing(self, invoke, kb_mock: Path) -> None:
        result = invoke("article", "get", "KB-A-404")
        assert result.exit_code == 1
        assert "Not found: article KB-A-404" in result.stderr

    def test_tree(self, invoke, kb_mock: Path) -> None:
        """Children are indented under their parent."""
        result = invoke("article", "tree", "KB-A-1")

        assert result.exit_code == 0
        assert "KB-A-1 Handbook\n  KB-A-2 Setup" in result.stdout

    def test_tree_json(self, invoke, kb_mock: Path) -> None:
        data = json.loads(invoke("-o", "json", "article", "tree", "KB-A-1").stdout)

        assert data["id_readable"] == "KB-A-1"
        assert [c["id_readable"] for c in data["children"]] == ["KB-A-2"]
        assert data["children"][0]["children"] == []

    def test_list_all_pages(self, invoke, kb_mock: Path) -> None:
        """--all keeps asking until a short page comes back."""
        result = invoke("-o", "json", "article", "list", "--all")

        assert len(json.loads(result.stdout)) == 2
        assert [e.op for e in read_call_log(kb_mock)] == ["list_articles"]

    def test_create_resolves_project(self, invoke, kb_mock: Path) -> None:
        result = invoke("article", "create", "-p", "KB", "-s", "FAQ", "-c", "Questions")

        assert result.exit_code == 0
        assert "Created article KB-A-3" in result.stdout
        entries = read_call_log(kb_mock)
        assert entries[-1].args == {"project": "0-9", "summary": "FAQ"}
        assert entries[-1].body["content"] == "Questions"

    def test_update_nothing(self, invoke, kb_mock: Path) -> None:
        result = invoke("article", "update", "KB-A-1")
        assert result.exit_code == 1
        assert "nothing to change" in result.stderr


def test_unsupported_backend(invoke, isolated_env: Path) -> None:
    """Backends without a knowledge base refuse article commands."""
    (isolated_env / ".track.toml").write_text(
        'backend = "gitlab"\n[gitlab]\nurl = "https://gitlab.example.com"\ntoken = "glpat-x"\nproject_id = "42"\n'
    )

    result = invoke("article", "get", "KB-A-1")

    assert result.exit_code == 1
    assert "Unsupported operation: knowledge_base" in result.stderr


def test_jira_articles_come_from_confluence(invoke, isolated_env: Path, mock_http, http_response) -> None:
    (isolated_env / ".track.toml").write_text(
        'backend = "jira"\n[jira]\nurl = "https://acme.atlassian.net"\nemail = "me@acme.test"\ntoken = "t"\n'
    )
    mock_http.return_value = http_response(
        200, {"id": "65601", "title": "Runbook", "spaceId": "98304", "body": {"storage": {"value": "<p>Steps</p>"}}}
    )

    result = invoke("article", "get", "65601")

    assert result.exit_code == 0
    assert "Runbook" in result.stdout
    assert "Steps" in result.stdout
    assert mock_http.call_args.args == ("GET", "https://acme.atlassian.net/wiki/api/v2/pages/65601")


def test_space_key_resolved_by_confluence(invoke, isolated_env: Path, mock_http, http_response) -> None:
    """Project keys given to article commands name Confluence spaces, not Jira projects."""
    (isolated_env / ".track.toml").write_text(
        'backend = "jira"\n[jira]\nurl = "https://acme.atlassian.net"\nemail = "me@acme.test"\ntoken = "t"\n'
    )
    mock_http.side_effect = [
        http_response(200, {"results": [{"id": 98304, "key": "ENG"}]}),
        http_response(200, {"results": []}),
    ]

    result = invoke("-o", "json", "article", "list", "-p", "ENG")

    assert result.exit_code == 0
    spaces, pages = mock_http.call_args_list
    assert spaces.args[1] == "https://acme.atlassian.net/wiki/api/v2/spaces"
    assert pages.kwargs["params"]["space-id"] == "98304"
