"""Tests for scenario files and the call log helpers."""
from pathlib import Path

import pytest

from track.core.exceptions import ParseError
from track.mock.call_log import (
    CallLogEntry,
    append_entry,
    call_log_path,
    clear_call_log,
    log_cli_command,
    read_call_log,
)
from track.mock.scenario import OutcomeCheck, Scenario, find_scenarios


SCENARIO_TOML = """
[scenario]
name = "close-bug"
description = "Close the crash bug"
backend = "youtrack"
difficulty = "easy"
tags = ["issues"]

[setup]
prompt = "Close DEMO-1 as fixed"
cache_available = true

[expected_outcome]
required_calls = ["update_issue"]
issue_closed = { issue = "DEMO-1", field = "state", value = "Fixed" }
mentions_issue = "DEMO-1"

[scoring]
optimal_commands = 2
max_commands = 4

[scoring.penalties]
redundant_fetch = -20
"""


class TestScenario:
    def test_load(self, tmp_path: Path) -> None:
        (tmp_path / "scenario.toml").write_text(SCENARIO_TOML)

        loaded = Scenario.load_from_dir(tmp_path)

        assert loaded.name == "close-bug"
        assert loaded.setup.cache_available
        assert loaded.expected_outcome.required_calls == ["update_issue"]
        assert isinstance(loaded.expected_outcome.outcomes["issue_closed"], OutcomeCheck)
        assert loaded.expected_outcome.outcomes["mentions_issue"] == "DEMO-1"
        assert loaded.scoring.penalties.redundant_fetch == -20
        assert loaded.scoring.penalties.extra_command == -5

    def test_name_defaults_to_directory(self, tmp_path: Path) -> None:
        directory = tmp_path / "quick-look"
        directory.mkdir()
        (directory / "scenario.toml").write_text('[setup]\nprompt = "look"\n')
        assert Scenario.load_from_dir(directory).name == "quick-look"

    def test_plural_outcome_table(self, tmp_path: Path) -> None:
        (tmp_path / "scenario.toml").write_text('[expected_outcomes]\nrequired_calls = ["list_tags"]\n')
        assert Scenario.load_from_dir(tmp_path).expected_outcome.required_calls == ["list_tags"]

    def test_invalid(self, tmp_path: Path) -> None:
        (tmp_path / "scenario.toml").write_text("[scoring]\nbase_score = 0\n")
        with pytest.raises(ParseError):
            Scenario.load_from_dir(tmp_path)

    @pytest.mark.parametrize("backend,expected", [("youtrack", True), ("YouTrack", True), ("jira", False)])
    def test_compatibility(self, backend: str, expected: bool) -> None:
        loaded = Scenario.model_validate({"scenario": {"backend": "youtrack"}})
        assert loaded.is_compatible_with(backend) is expected

    def test_find_scenarios(self, tmp_path: Path) -> None:
        for name in ("b", "a"):
            (tmp_path / name).mkdir()
            (tmp_path / name / "scenario.toml").write_text("")
        (tmp_path / "not-a-scenario").mkdir()
        assert [p.name for p in find_scenarios(tmp_path)] == ["a", "b"]
        assert find_scenarios(tmp_path / "missing") == []


class TestCallLog:
    def test_append_and_read(self, tmp_path: Path) -> None:
        append_entry(tmp_path, CallLogEntry(op="get_issue", args={"id": "DEMO-1"}))
        log_cli_command(tmp_path, ["issue", "get", "DEMO-1"], 0)

        entries = read_call_log(tmp_path)

        assert [e.op for e in entries] == ["get_issue", "cli"]
        assert entries[1].is_cli
        assert entries[1].args == {"argv": ["issue", "get", "DEMO-1"]}
        assert entries[1].status == 0

    def test_failed_command_is_error(self, tmp_path: Path) -> None:
        log_cli_command(tmp_path, ["issue", "get", "NOPE"], 1)
        [entry] = read_call_log(tmp_path)
        assert entry.result_kind == "error"
        assert entry.status == 1

    def test_malformed_lines_are_skipped(self, tmp_path: Path) -> None:
        call_log_path(tmp_path).write_text('not json\n\n{"op": "list_tags"}\n')
        assert [e.op for e in read_call_log(tmp_path)] == ["list_tags"]

    def test_missing_log_is_empty(self, tmp_path: Path) -> None:
        assert read_call_log(tmp_path) == []

    def test_clear(self, tmp_path: Path) -> None:
        append_entry(tmp_path, CallLogEntry(op="list_tags"))
        clear_call_log(tmp_path)
        assert read_call_log(tmp_path) == []
        assert call_log_path(tmp_path).exists()
