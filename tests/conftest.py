# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Shared fixtures and helpers for all tests.

Factory fixtures build neutral model objects and fake HTTP responses;
scenario fixtures copy a mock scenario into a temporary directory so each
test gets a fresh call log.
"""
import json
import os
import shutil
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest
from loguru import logger
from typer.testing import CliRunner

from track.core.types import Issue, Project, Tag


FIXTURES_DIR = Path(__file__).parent / "fixtures"
SCENARIOS_DIR = FIXTURES_DIR / "scenarios"


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Path]:
    """Run every test in an empty working directory with no TRACK_* settings."""
    for key in list(os.environ):
        if key.startswith("TRACK_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("NO_COLOR", "1")
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    yield work
    logger.remove()


@pytest.fixture
def cli_runner() -> CliRunner:
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def scenario_factory(tmp_path: Path) -> Callable[[str], Path]:
    """Copy a fixture scenario into tmp_path and return the copy."""
    def _create(name: str) -> Path:
        target = tmp_path / "scenarios" / name
        shutil.copytree(SCENARIOS_DIR / name, target)
        log = target / "call_log.jsonl"
        if log.exists():
            log.unlink()
        return target
    return _create


@pytest.fixture
def mock_scenario(
    monkeypatch: pytest.MonkeyPatch, scenario_factory: Callable[[str], Path]
) -> Callable[[str], Path]:
    """Copy a scenario and point TRACK_MOCK_DIR at it."""
    def _activate(name: str) -> Path:
        directory = scenario_factory(name)
        monkeypatch.setenv("TRACK_MOCK_DIR", str(directory))
        return directory
    return _activate


@pytest.fixture
def write_scenario(tmp_path: Path) -> Callable[..., Path]:
    """Write an ad hoc scenario from a manifest string and response bodies."""
    def _create(
        manifest: str,
        responses: dict[str, Any] | None = None,
        scenario: str = "",
        name: str = "adhoc",
    ) -> Path:
        directory = tmp_path / "adhoc" / name
        (directory / "responses").mkdir(parents=True)
        (directory / "manifest.toml").write_text(manifest, encoding="utf-8")
        if scenario:
            (directory / "scenario.toml").write_text(scenario, encoding="utf-8")
        for filename, body in (responses or {}).items():
            (directory / "responses" / filename).write_text(json.dumps(body), encoding="utf-8")
        return directory
    return _create


@pytest.fixture
def http_response() -> Callable[..., httpx.Response]:
    """Factory for real httpx.Response objects."""
    def _create(
        status: int = 200,
        body: Any = None,
        headers: dict[str, str] | None = None,
        text: str | None = None,
    ) -> httpx.Response:
        request = httpx.Request("GET", "https://example.test")
        if text is not None:
            return httpx.Response(status, text=text, headers=headers, request=request)
        if body is None:
            return httpx.Response(status, headers=headers, request=request)
        return httpx.Response(status, json=body, headers=headers, request=request)
    return _create


@pytest.fixture
def mock_http() -> Iterator[MagicMock]:
    """Patch httpx.Client.request; set return_value or side_effect per test.

    Calls are recorded as ``(method, url)`` with ``params``/``json``/``headers``
    keyword arguments.
    """
    with patch("httpx.Client.request") as request:
        yield request


@pytest.fixture
def mock_issue_factory() -> Callable[..., Issue]:
    """Factory fixture for creating test Issue instances with sensible defaults."""
    def _create(
        id: str = "2-17",
        id_readable: str = "DEMO-17",
        summary: str = "Test Issue",
        state: str | None = "open",
        **kwargs: Any,
    ) -> Issue:
        return Issue(id=id, id_readable=id_readable, summary=summary, state=state, **kwargs)
    return _create


@pytest.fixture
def mock_project_factory() -> Callable[..., Project]:
    def _create(id: str = "0-2", short_name: str = "DEMO", name: str = "Demo Project") -> Project:
        return Project(id=id, short_name=short_name, name=name)
    return _create


@pytest.fixture
def mock_tag_factory() -> Callable[..., Tag]:
    def _create(name: str = "urgent", color: str | None = "fc2929") -> Tag:
        return Tag(id=name, name=name, color=color)
    return _create
