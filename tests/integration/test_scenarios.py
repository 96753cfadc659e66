"""End-to-end runs of the CLI against the bundled mock scenarios.

Each test copies a scenario from tests/fixtures/scenarios, points
TRACK_MOCK_DIR at the copy, drives the CLI and then inspects the call log
or evaluates it.
"""
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from track.main import app
from track.mock import Evaluator
from track.mock.call_log import read_call_log


pytestmark = pytest.mark.integration


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_get_issue_logs_exactly_one_call(runner: CliRunner, mock_scenario) -> None:
    """Reading an issue prints it and logs one get_issue call."""
    directory = mock_scenario("basic-workflow")

    result = runner.invoke(app, ["issue", "get", "DEMO-1"])

    assert result.exit_code == 0
    assert "Demo" in result.stdout
    assert "open" in result.stdout
    entries = read_call_log(directory)
    assert len(entries) == 1
    assert entries[0].op == "get_issue"
    assert entries[0].args == {"id": "DEMO-1"}


def test_project_list_json(runner: CliRunner, mock_scenario) -> None:
    mock_scenario("basic-workflow")

    result = runner.invoke(app, ["-o", "json", "project", "list"])

    assert result.exit_code == 0
    projects = json.loads(result.stdout)
    assert projects
    for project in projects:
        assert {"id", "short_name", "name"} <= project.keys()


def test_create_issue_resolves_then_creates(runner: CliRunner, mock_scenario) -> None:
    directory = mock_scenario("cache-operations")

    result = runner.invoke(app, ["issue", "create", "-p", "PROJ", "-s", "Hello"])

    assert result.exit_code == 0
    assert "PROJ-42" in result.stdout
    ops = [entry.op for entry in read_call_log(directory)]
    assert ops.index("resolve_project_id") < ops.index("create_issue")


def test_missing_issue_exits_one(runner: CliRunner, mock_scenario) -> None:
    mock_scenario("basic-workflow")

    result = runner.invoke(app, ["issue", "get", "MISSING"])

    assert result.exit_code == 1
    assert "Issue not found: MISSING" in result.stderr


def test_tag_create_then_list(runner: CliRunner, mock_scenario) -> None:
    directory = mock_scenario("tag-operations")

    created = runner.invoke(app, ["tag", "create", "-n", "urgent", "-c", "fc2929"])
    listed = runner.invoke(app, ["-o", "json", "tag", "list"])

    assert created.exit_code == 0
    assert read_call_log(directory)[0].body["color"] == "fc2929"
    tags = {tag["name"]: tag for tag in json.loads(listed.stdout)}
    assert tags["urgent"]["color"] == "fc2929"


def test_evaluator_reports_missing_call(runner: CliRunner, mock_scenario) -> None:
    """Skipping project resolution fails the criterion and lowers the score."""
    directory = mock_scenario("cache-operations")
    runner.invoke(app, ["-o", "json", "project", "list"])

    result = Evaluator.from_dir(directory).evaluate_dir(directory)

    assert "resolve_project_id" in result.missing
    assert not result.success
    assert result.score < 1.0


def test_eval_round_trip(runner: CliRunner, mock_scenario) -> None:
    """clear, run the command, then score it through the CLI."""
    directory = mock_scenario("cache-operations")

    assert runner.invoke(app, ["eval", "clear", str(directory)]).exit_code == 0
    assert runner.invoke(app, ["issue", "create", "-p", "PROJ", "-s", "Hello world"]).exit_code == 0
    result = runner.invoke(app, ["-o", "json", "eval", "run", str(directory), "--min-score", "90"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["success"] is True
    assert data["order_ok"] is True
    assert {o["name"]: o["achieved"] for o in data["outcomes"]} == {"issue_created": True}
