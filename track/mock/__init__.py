"""Mock harness: a backend replaying canned responses, plus run evaluation.

Set TRACK_MOCK_DIR to a scenario directory to route every command through
MockTracker instead of the network:

    TRACK_MOCK_DIR=./tests/fixtures/scenarios/basic-workflow track issue get DEMO-1

Scenario layout::

    basic-workflow/
    ├── scenario.toml      # metadata, expected outcome, scoring
    ├── manifest.toml      # request -> response mapping
    ├── call_log.jsonl     # written while commands run
    └── responses/         # JSON response bodies
"""
import os
from pathlib import Path

from track.mock.call_log import CallLogEntry, clear_call_log, log_cli_command, read_call_log
from track.mock.evaluator import EvaluationResult, Evaluator
from track.mock.manifest import Manifest, ResponseMapping
from track.mock.scenario import Scenario
from track.mock.tracker import MockTracker


MOCK_DIR_ENV = "TRACK_MOCK_DIR"


def get_mock_dir() -> Path | None:
    value = os.environ.get(MOCK_DIR_ENV)
    return Path(value) if value else None


def is_mock_enabled() -> bool:
    return get_mock_dir() is not None


__all__ = [
    "MOCK_DIR_ENV",
    "CallLogEntry",
    "EvaluationResult",
    "Evaluator",
    "Manifest",
    "MockTracker",
    "ResponseMapping",
    "Scenario",
    "clear_call_log",
    "get_mock_dir",
    "is_mock_enabled",
    "log_cli_command",
    "read_call_log",
]
