"""Tests for the console entry point and exit code mapping."""
import sys
from pathlib import Path

import pytest
import typer

import track.main
from track import __version__
from track.core.exceptions import EXIT_INTERRUPTED
from track.main import main, run
from track.mock.call_log import read_call_log


class TestRun:
    """Tests for run(), which returns exit codes instead of exiting."""

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert run(["--version"]) == 0
        assert f"track {__version__}" in capsys.readouterr().out

    def test_success(self, basic_mock: Path) -> None:
        assert run(["issue", "get", "DEMO-1"]) == 0

    def test_error_exit_code(self, basic_mock: Path) -> None:
        """A TrackError's exit code is returned unchanged."""
        assert run(["issue", "get", "MISSING"]) == 1
        assert run(["tag", "list"]) == 0

    def test_usage_error(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Unknown commands are user errors."""
        assert run(["issue", "frobnicate"]) == 1
        assert "frobnicate" in capsys.readouterr().err

    def test_missing_project_is_usage_error(self, basic_mock: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Commands that need a project fail cleanly when none is configured."""
        assert run(["issue", "create", "-s", "Hello"]) == 1
        assert "No project given" in capsys.readouterr().err

    def test_typer_exceptions_are_caught(self) -> None:
        """Whichever click typer raises from, its usage errors are handled."""
        assert issubclass(typer.BadParameter, track.main._CLICK_ERRORS)
        assert issubclass(typer.Abort, track.main._ABORTS)

    def test_missing_configuration(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert run(["-b", "github", "issue", "get", "1"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_interrupted(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def interrupted(**kwargs: object) -> None:
            raise KeyboardInterrupt

        monkeypatch.setattr(track.main, "app", interrupted)
        assert run(["tag", "list"]) == EXIT_INTERRUPTED


class TestMain:
    """Tests for main(), the console script."""

    def test_records_invocation(self, basic_mock: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """In mock mode the command line is appended after the calls it made."""
        monkeypatch.setattr(sys, "argv", ["track", "-o", "json", "issue", "get", "DEMO-1"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        entries = read_call_log(basic_mock)
        assert [e.op for e in entries] == ["get_issue", "cli"]
        assert entries[1].args == {"argv": ["-o", "json", "issue", "get", "DEMO-1"]}
        assert entries[1].status == 0

    def test_records_failure(self, basic_mock: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "argv", ["track", "issue", "get", "MISSING"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert read_call_log(basic_mock)[-1].result_kind == "error"

    def test_no_log_outside_mock_mode(self, monkeypatch: pytest.MonkeyPatch, isolated_env: Path) -> None:
        monkeypatch.setattr(sys, "argv", ["track", "--version"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        assert not (isolated_env / "call_log.jsonl").exists()
