"""Tests for the scenario-backed mock tracker."""
import json
from pathlib import Path

import pytest

from track.core.exceptions import (
    ApiError,
    IoError,
    IssueNotFoundError,
    MockMissError,
    NotFoundError,
    ParseError,
    ProjectNotFoundError,
)
from track.core.types import CreateIssue, CreateTag, UpdateIssue
from track.mock import MockTracker
from track.mock.call_log import read_call_log


ISSUE = {"id": "2-1", "id_readable": "DEMO-1", "summary": "Demo", "state": "open"}
PROJECTS = [{"id": "0-2", "name": "Demo Project", "short_name": "DEMO"}]


class TestResponses:
    def test_get_issue(self, write_scenario) -> None:
        directory = write_scenario(
            '[[responses]]\nop = "get_issue"\nargs = { id = "DEMO-1" }\nfile = "issue.json"\n',
            {"issue.json": ISSUE},
        )

        issue = MockTracker(directory).get_issue("DEMO-1")

        assert issue.key == "DEMO-1"
        assert issue.state is not None and not issue.state.is_closed

    def test_lookup_miss_is_not_found(self, write_scenario) -> None:
        directory = write_scenario('[[responses]]\nop = "list_tags"\nfile = "tags.json"\n', {"tags.json": []})

        with pytest.raises(IssueNotFoundError) as exc_info:
            MockTracker(directory).get_issue("DEMO-404")

        assert isinstance(exc_info.value.__cause__, MockMissError)

    def test_other_miss_is_mock_miss(self, write_scenario) -> None:
        directory = write_scenario('[[responses]]\nop = "get_issue"\nfile = "issue.json"\n', {"issue.json": ISSUE})
        with pytest.raises(MockMissError):
            MockTracker(directory).list_tags()

    def test_error_status_becomes_api_error(self, write_scenario) -> None:
        directory = write_scenario(
            '[[responses]]\nop = "delete_issue"\nstatus = 403\nfile = "denied.json"\n',
            {"denied.json": {"message": "Forbidden"}},
        )
        with pytest.raises(ApiError) as exc_info:
            MockTracker(directory).delete_issue("DEMO-1")
        assert exc_info.value.status == 403
        assert exc_info.value.message == "Forbidden"

    def test_error_status_without_body(self, write_scenario) -> None:
        directory = write_scenario('[[responses]]\nop = "list_tags"\nstatus = 500\n')
        with pytest.raises(ApiError, match="HTTP 500"):
            MockTracker(directory).list_tags()

    def test_bad_response_shape(self, write_scenario) -> None:
        directory = write_scenario(
            '[[responses]]\nop = "list_projects"\nfile = "p.json"\n', {"p.json": {"not": "a list"}}
        )
        with pytest.raises(ParseError):
            MockTracker(directory).list_projects()

    def test_search_accepts_bare_list(self, write_scenario) -> None:
        directory = write_scenario(
            '[[responses]]\nop = "search_issues"\nargs = { limit = 20 }\nfile = "s.json"\n', {"s.json": [ISSUE]}
        )
        result = MockTracker(directory).search_issues("project: DEMO", 20, 0)
        assert len(result.items) == 1
        assert result.total is None

    def test_sequence_per_request(self, write_scenario) -> None:
        directory = write_scenario(
            '[[responses]]\nop = "get_issue"\nargs = { id = "DEMO-1" }\nsequence = ["a.json", "b.json"]\n',
            {"a.json": ISSUE, "b.json": {**ISSUE, "state": "closed"}},
        )
        tracker = MockTracker(directory)
        states = [tracker.get_issue("DEMO-1").state.name for _ in range(3)]
        assert states == ["open", "closed", "closed"]


class TestCallLog:
    def test_calls_are_logged(self, write_scenario) -> None:
        directory = write_scenario(
            '[[responses]]\nop = "update_issue"\nargs = { id = "DEMO-1" }\nfile = "issue.json"\n',
            {"issue.json": ISSUE},
        )

        MockTracker(directory).update_issue("DEMO-1", UpdateIssue(state="closed"))

        [entry] = read_call_log(directory)
        assert entry.op == "update_issue"
        assert entry.args == {"id": "DEMO-1"}
        assert entry.matched_mapping is not None and entry.matched_mapping.index == 0
        assert entry.result_kind == "ok"
        assert entry.body == {"state": "closed", "custom_fields": []}

    def test_miss_is_logged(self, write_scenario) -> None:
        directory = write_scenario('[[responses]]\nop = "list_tags"\nfile = "t.json"\n', {"t.json": []})

        with pytest.raises(MockMissError):
            MockTracker(directory).create_tag(CreateTag(name="urgent", color="fc2929"))

        [entry] = read_call_log(directory)
        assert entry.result_kind == "miss"
        assert entry.matched_mapping is None
        assert entry.body == {"name": "urgent", "color": "fc2929"}
        assert entry.error == "No mock response for create_tag(name=urgent)"

    def test_logging_can_be_disabled(self, write_scenario) -> None:
        directory = write_scenario('[[responses]]\nop = "list_tags"\nfile = "t.json"\n', {"t.json": []})
        MockTracker(directory, log_calls=False).list_tags()
        assert read_call_log(directory) == []

    def test_log_lines_are_json(self, write_scenario) -> None:
        directory = write_scenario('[[responses]]\nop = "list_tags"\nfile = "t.json"\n', {"t.json": []})
        MockTracker(directory).list_tags()
        line = (directory / "call_log.jsonl").read_text().strip()
        data = json.loads(line)
        assert data["op"] == "list_tags"
        assert "body" not in data


class TestResolveProject:
    def test_explicit_mapping(self, write_scenario) -> None:
        directory = write_scenario(
            '[[responses]]\nop = "resolve_project_id"\nargs = { identifier = "PROJ" }\nfile = "r.json"\n',
            {"r.json": {"id": "0-2"}},
        )
        assert MockTracker(directory).resolve_project_id("PROJ") == "0-2"

    @pytest.mark.parametrize("identifier", ["DEMO", "0-2"])
    def test_falls_back_to_project_list(self, write_scenario, identifier: str) -> None:
        directory = write_scenario(
            '[[responses]]\nop = "list_projects"\nfile = "p.json"\n', {"p.json": PROJECTS}
        )
        assert MockTracker(directory).resolve_project_id(identifier) == "0-2"

    def test_unknown_project(self, write_scenario) -> None:
        directory = write_scenario('[[responses]]\nop = "list_projects"\nfile = "p.json"\n', {"p.json": PROJECTS})
        with pytest.raises(ProjectNotFoundError):
            MockTracker(directory).resolve_project_id("NOPE")

    @pytest.mark.parametrize("identifier", ["demo", "Demo Project"])
    def test_fallback_needs_exact_short_name(self, write_scenario, identifier: str) -> None:
        directory = write_scenario('[[responses]]\nop = "list_projects"\nfile = "p.json"\n', {"p.json": PROJECTS})
        with pytest.raises(ProjectNotFoundError):
            MockTracker(directory).resolve_project_id(identifier)


def test_create_issue_args(write_scenario) -> None:
    directory = write_scenario(
        '[[responses]]\nop = "create_issue"\nargs = { project = "0-2", summary = "*" }\nfile = "c.json"\n',
        {"c.json": {"id": "2-999", "key": "PROJ-42", "title": "New"}},
    )
    issue = MockTracker(directory).create_issue(CreateIssue(project_id="0-2", summary="New"))
    assert issue.key == "PROJ-42"


def test_article_miss_is_not_found(write_scenario) -> None:
    directory = write_scenario('[[responses]]\nop = "list_tags"\nfile = "t.json"\n', {"t.json": []})
    with pytest.raises(NotFoundError):
        MockTracker(directory).get_article("KB-A-1")


def test_missing_manifest(tmp_path: Path) -> None:
    with pytest.raises(IoError, match="manifest"):
        MockTracker(tmp_path)
