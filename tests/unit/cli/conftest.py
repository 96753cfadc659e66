"""Shared fixtures for CLI tests."""
from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import Result
from typer.testing import CliRunner

from track.main import app


@pytest.fixture
def invoke(cli_runner: CliRunner) -> Callable[..., Result]:
    """Run ``track`` with the given arguments."""
    def _invoke(*args: str) -> Result:
        return cli_runner.invoke(app, list(args))
    return _invoke


@pytest.fixture
def basic_mock(mock_scenario: Callable[[str], Path]) -> Path:
    """Route commands through a copy of the basic-workflow scenario."""
    return mock_scenario("basic-workflow")
