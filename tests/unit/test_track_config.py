# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Tests for layered configuration."""
from pathlib import Path

import pytest
import tomli

from track.config import (
    TrackConfig,
    config_path,
    load_config,
    normalize_backend,
    read_config_file,
    set_config_value,
)
from track.core.constants import DEFAULT_TIMEOUT, GITHUB_API_URL
from track.core.exceptions import ConfigurationError


@pytest.fixture
def config_file(isolated_env: Path) -> Path:
    path = isolated_env / ".track.toml"
    path.write_text(
        'backend = "youtrack"\n'
        'url = "https://top.example"\n'
        'token = "top-token"\n'
        'default_project = "DEMO"\n'
        "timeout = 12.5\n"
        "[youtrack]\n"
        'url = "https://yt.example"\n'
        "[github]\n"
        'repo = "acme/widgets"\n'
        'token = "gh-token"\n'
    )
    return path


class TestPrecedence:
    def test_defaults_without_file(self) -> None:
        config = load_config()
        assert config.backend == "youtrack"
        assert config.url is None
        assert config.timeout == DEFAULT_TIMEOUT
        assert config.path is None

    def test_section_beats_top_level(self, config_file: Path) -> None:
        config = load_config()
        assert config.url == "https://yt.example"
        assert config.token == "top-token"
        assert config.default_project == "DEMO"
        assert config.timeout == 12.5
        assert config.path == config_file

    def test_env_beats_file(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRACK_URL", "https://env.example")
        monkeypatch.setenv("TRACK_TIMEOUT", "3")
        config = load_config()
        assert config.url == "https://env.example"
        assert config.timeout == 3

    def test_flags_beat_env(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRACK_TOKEN", "env-token")
        config = load_config(token="flag-token", url="https://flag.example")
        assert config.token == "flag-token"
        assert config.url == "https://flag.example"

    def test_backend_alias_and_github_section(self, config_file: Path) -> None:
        config = load_config(backend="gh")
        assert config.backend == "github"
        assert (config.owner, config.repo) == ("acme", "widgets")
        assert config.token == "gh-token"

    def test_github_url_default(self, isolated_env: Path) -> None:
        (isolated_env / ".track.toml").write_text('[github]\nowner = "acme"\nrepo = "widgets"\n')
        config = load_config(backend="github")
        assert config.url == GITHUB_API_URL
        assert config.repo == "widgets"

    def test_explicit_path(self, tmp_path: Path) -> None:
        path = tmp_path / "elsewhere.toml"
        path.write_text('backend = "jira"\n')
        assert load_config(path).backend == "jira"

    def test_env_config_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "env.toml"
        monkeypatch.setenv("TRACK_CONFIG", str(path))
        assert config_path() == path

    def test_mock_dir_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRACK_MOCK_DIR", str(tmp_path))
        assert load_config().mock_dir == tmp_path


class TestValidation:
    @pytest.mark.parametrize("name,expected", [("yt", "youtrack"), ("J", "jira"), ("gitlab", "gitlab")])
    def test_normalize_backend(self, name: str, expected: str) -> None:
        assert normalize_backend(name) == expected

    def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown backend"):
            normalize_backend("redmine")

    def test_invalid_toml(self, isolated_env: Path) -> None:
        (isolated_env / ".track.toml").write_text("backend = ")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            load_config()

    def test_missing_fields_listed(self) -> None:
        config = TrackConfig(backend="gitlab")
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_backend()
        message = str(exc_info.value)
        assert "url" in message
        assert "token" in message
        assert "project_id" in message

    def test_mock_dir_skips_validation(self, tmp_path: Path) -> None:
        TrackConfig(backend="jira", mock_dir=tmp_path).validate_backend()


class TestSetValue:
    def test_top_level_and_table(self, tmp_path: Path) -> None:
        path = tmp_path / ".track.toml"
        set_config_value(path, "backend", "gl")
        set_config_value(path, "gitlab.token", "secret")

        data = tomli.loads(path.read_text())

        assert data == {"backend": "gitlab", "gitlab": {"token": "secret"}}
        assert read_config_file(path) == data

    def test_unknown_table(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            set_config_value(tmp_path / ".track.toml", "redmine.token", "x")
