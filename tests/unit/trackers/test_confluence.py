"""Tests for Confluence as the Jira knowledge base."""
from unittest.mock import MagicMock

import pytest

from track.core.exceptions import ApiError, InvalidInputError, NotFoundError, ProjectNotFoundError
from track.core.types import CreateArticle, UpdateArticle
from track.trackers.jira import ConfluenceKnowledgeBase
from track.trackers.jira import confluence_convert as convert


BASE = "https://acme.atlassian.net/wiki"

PAGE = {
    "id": "65601",
    "title": "Runbook",
    "spaceId": "98304",
    "parentId": "65500",
    "status": "current",
    "authorId": "abc123",
    "createdAt": "2025-03-01T10:00:00.000Z",
    "version": {"number": 4, "createdAt": "2025-03-05T10:00:00.000Z"},
    "body": {"storage": {"value": "<h1>Deploy</h1><p>Run the &quot;release&quot; job.</p>"}},
}


@pytest.fixture
def kb() -> ConfluenceKnowledgeBase:
    return ConfluenceKnowledgeBase("https://acme.atlassian.net", "me@acme.test", "token")


class TestConvert:
    def test_storage_to_text(self) -> None:
        assert convert.storage_to_text(PAGE["body"]["storage"]["value"]) == 'Deploy\n\nRun the "release" job.'

    def test_markdown_to_storage(self) -> None:
        markdown = "# Title\n\n- one\n```\ncode\n```\nplain <b>"
        assert convert.markdown_to_storage(markdown) == (
            "<h1>Title</h1><li>one</li><p>code</p><p>plain &lt;b&gt;</p>"
        )

    def test_article_from_page(self) -> None:
        article = convert.article_from_page(PAGE)

        assert article.id == "65601"
        assert article.summary == "Runbook"
        assert article.project is not None and article.project.id == "98304"
        assert article.parent is not None and article.parent.id == "65500"
        assert article.reporter is not None and article.reporter.login == "abc123"

    def test_next_cursor(self) -> None:
        data = {"_links": {"next": "/wiki/api/v2/pages?cursor=abc%3D&limit=2"}}
        assert convert.next_cursor(data) == "abc="
        assert convert.next_cursor({"_links": {}}) is None

    def test_error_message_joins_errors(self) -> None:
        body = {"message": "Bad request", "errors": [{"message": "title is required"}]}
        assert convert.error_message(body) == "Bad request; title is required"


def test_wiki_path_is_not_doubled() -> None:
    kb = ConfluenceKnowledgeBase("https://acme.atlassian.net/wiki/", "me@acme.test", "token")
    assert kb.transport.base_url == BASE


class TestResolveSpace:
    def test_numeric_id_passes_through(self, kb, mock_http: MagicMock) -> None:
        assert kb.resolve_project_id("98304") == "98304"
        mock_http.assert_not_called()

    def test_space_key_is_looked_up(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(200, {"results": [{"id": 98304, "key": "ENG"}]})

        assert kb.resolve_project_id("ENG") == "98304"
        assert mock_http.call_args.kwargs["params"] == {"keys": "ENG"}

    def test_unknown_key(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(200, {"results": []})
        with pytest.raises(ProjectNotFoundError):
            kb.resolve_project_id("NOPE")


class TestPages:
    def test_get_article(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(200, PAGE)

        article = kb.get_article("65601")

        assert mock_http.call_args.args == ("GET", f"{BASE}/api/v2/pages/65601")
        assert mock_http.call_args.kwargs["params"] == {"body-format": "storage"}
        assert article.content == 'Deploy\n\nRun the "release" job.'

    def test_missing_page(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(404, {"message": "gone"})
        with pytest.raises(NotFoundError, match="article '1'"):
            kb.get_article("1")

    def test_list_follows_cursor(self, kb, mock_http: MagicMock, http_response) -> None:
        second = {**PAGE, "id": "65602"}
        third = {**PAGE, "id": "65603"}
        mock_http.side_effect = [
            http_response(200, {"results": [PAGE], "_links": {"next": "/wiki/api/v2/pages?cursor=c2"}}),
            http_response(200, {"results": [second, third], "_links": {}}),
        ]

        articles = kb.list_articles("98304", limit=2, skip=1)

        assert [a.id for a in articles] == ["65602", "65603"]
        first_params, second_params = (c.kwargs["params"] for c in mock_http.call_args_list)
        assert first_params["space-id"] == "98304"
        assert "cursor" not in first_params
        assert second_params["cursor"] == "c2"

    def test_list_without_space(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(200, {"results": []})

        assert kb.list_articles(None, limit=5, skip=0) == []
        assert "space-id" not in mock_http.call_args.kwargs["params"]

    def test_search_uses_cql(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(
            200,
            {
                "results": [
                    {"content": {"id": "65601", "title": "Runbook", "space": {"id": 98304, "key": "ENG"}}},
                    {"title": "a user hit"},
                ]
            },
        )

        articles = kb.search_articles('say "hi"', limit=10, skip=20)

        assert mock_http.call_args.args == ("GET", f"{BASE}/rest/api/search")
        params = mock_http.call_args.kwargs["params"]
        assert params["cql"] == 'type=page AND text~"say \\"hi\\""'
        assert params["start"] == 20
        assert [a.id for a in articles] == ["65601"]
        assert articles[0].project is not None and articles[0].project.short_name == "ENG"

    def test_create_with_labels(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.side_effect = [http_response(200, PAGE), http_response(200, {"results": []})]

        article = kb.create_article(
            CreateArticle(
                project_id="98304", summary="Runbook", content="# Deploy", parent_id="65500", tags=["ops"]
            )
        )

        create, label = mock_http.call_args_list
        assert create.args == ("POST", f"{BASE}/api/v2/pages")
        assert create.kwargs["json"] == {
            "spaceId": "98304",
            "title": "Runbook",
            "status": "current",
            "body": {"representation": "storage", "value": "<h1>Deploy</h1>"},
            "parentId": "65500",
        }
        assert label.args == ("POST", f"{BASE}/rest/api/content/65601/label")
        assert label.kwargs["json"] == [{"prefix": "global", "name": "ops"}]
        assert article.tags == ["ops"]

    def test_update_bumps_version(self, kb, mock_http: MagicMock, http_response) -> None:
        """Fields left out of the update keep their current values."""
        mock_http.side_effect = [http_response(200, PAGE), http_response(200, {**PAGE, "title": "Runbook v2"})]

        article = kb.update_article("65601", UpdateArticle(summary="Runbook v2"))

        put = mock_http.call_args_list[1]
        assert put.args == ("PUT", f"{BASE}/api/v2/pages/65601")
        assert put.kwargs["json"]["version"] == {"number": 5}
        assert put.kwargs["json"]["title"] == "Runbook v2"
        assert put.kwargs["json"]["body"]["value"] == PAGE["body"]["storage"]["value"]
        assert article.summary == "Runbook v2"

    def test_update_conflict_surfaces(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.side_effect = [
            http_response(200, PAGE),
            http_response(409, {"errors": [{"message": "Version must be incremented"}]}),
        ]
        with pytest.raises(ApiError, match="Version must be incremented"):
            kb.update_article("65601", UpdateArticle(content="new"))

    def test_move_needs_parent(self, kb, mock_http: MagicMock) -> None:
        with pytest.raises(InvalidInputError):
            kb.move_article("65601", None)
        mock_http.assert_not_called()

    def test_move_appends_under_parent(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.side_effect = [http_response(200, {}), http_response(200, PAGE)]

        kb.move_article("65601", "70000")

        assert mock_http.call_args_list[0].args == ("PUT", f"{BASE}/rest/api/content/65601/move/append/70000")

    def test_children(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(200, {"results": [{"id": "2", "title": "Child"}]})

        children = kb.get_child_articles("65601")

        assert mock_http.call_args.args[1] == f"{BASE}/api/v2/pages/65601/children"
        assert [c.summary for c in children] == ["Child"]


class TestAttachmentsAndComments:
    def test_attachments(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(
            200,
            {
                "results": [
                    {
                        "id": "att1",
                        "title": "diagram.png",
                        "fileSize": 2048,
                        "mediaType": "image/png",
                        "_links": {"download": "/download/attachments/65601/diagram.png"},
                    }
                ]
            },
        )

        [attachment] = kb.list_article_attachments("65601")

        assert attachment.name == "diagram.png"
        assert attachment.size == 2048
        assert attachment.mime_type == "image/png"

    def test_add_comment(self, kb, mock_http: MagicMock, http_response) -> None:
        mock_http.return_value = http_response(
            200,
            {
                "id": "c1",
                "version": {"authorId": "abc123"},
                "body": {"storage": {"value": "<p>Looks good</p>"}},
            },
        )

        comment = kb.add_article_comment("65601", "Looks good")

        assert mock_http.call_args.args == ("POST", f"{BASE}/api/v2/footer-comments")
        assert mock_http.call_args.kwargs["json"] == {
            "pageId": "65601",
            "body": {"representation": "storage", "value": "<p>Looks good</p>"},
        }
        assert comment.text == "Looks good"
        assert comment.author is not None and comment.author.login == "abc123"
