# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Layered configuration: ``.track.toml``, TRACK_* environment, CLI flags."""
import os
from pathlib import Path
from typing import Any

import tomli
import tomli_w
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from track.core.constants import CONFIG_FILENAME, DEFAULT_MAX_RESULTS, DEFAULT_TIMEOUT, GITHUB_API_URL
from track.core.exceptions import ConfigurationError, IoError


DEFAULT_BACKEND = "youtrack"

BACKENDS = ("youtrack", "github", "gitlab", "jira")
BACKEND_ALIASES = {"yt": "youtrack", "gh": "github", "gl": "gitlab", "j": "jira"}


class EnvSettings(BaseSettings):
    """Environment overrides.

    All settings can be overridden via environment variables with TRACK_ prefix.
    Example: TRACK_BACKEND=jira selects the Jira backend.
    """

    model_config = SettingsConfigDict(env_prefix="TRACK_", extra="ignore")

    backend: str | None = None
    url: str | None = None
    token: str | None = None
    email: str | None = None
    config: Path | None = None
    timeout: float | None = Field(default=None, gt=0)
    max_results: int | None = Field(default=None, ge=1)
    mock_dir: Path | None = None
    log_level: str | None = None


class BackendSection(BaseModel):
    """One ``[github]`` / ``[gitlab]`` / ``[jira]`` / ``[youtrack]`` table."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = None
    token: str | None = None
    email: str | None = None
    owner: str | None = None
    repo: str | None = None
    project_id: str | None = None


class FileConfig(BaseModel):
    """Contents of ``.track.toml``."""

    model_config = ConfigDict(extra="ignore")

    backend: str | None = None
    default_project: str | None = None
    url: str | None = None
    token: str | None = None
    email: str | None = None
    timeout: float | None = None
    github: BackendSection = Field(default_factory=BackendSection)
    gitlab: BackendSection = Field(default_factory=BackendSection)
    jira: BackendSection = Field(default_factory=BackendSection)
    youtrack: BackendSection = Field(default_factory=BackendSection)

    def section(self, backend: str) -> BackendSection:
        return getattr(self, backend)


class TrackConfig(BaseModel):
    """Effective configuration after all layers are merged.

    Attributes:
        backend: Canonical backend name.
        url: Backend base URL.
        token: API token.
        email: Jira account email.
        owner: GitHub repository owner.
        repo: GitHub repository name.
        project_id: GitLab project id or path.
        default_project: Project used when a command is given none.
        timeout: HTTP timeout in seconds.
        max_results: Cap for --all pagination.
        mock_dir: Scenario directory; when set the mock harness replaces the network.
        path: File the configuration was read from, if any.
    """

    backend: str = DEFAULT_BACKEND
    url: str | None = None
    token: str | None = None
    email: str | None = None
    owner: str | None = None
    repo: str | None = None
    project_id: str | None = None
    default_project: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    max_results: int = DEFAULT_MAX_RESULTS
    mock_dir: Path | None = None
    path: Path | None = None

    def validate_backend(self) -> None:
        """Check that the selected backend has what it needs to connect.

        Raises:
            ConfigurationError: Naming every missing setting.
        """
        if self.mock_dir is not None:
            return
        missing = []
        if not self.url and self.backend != "github":
            missing.append("url")
        if not self.token:
            missing.append("token")
        if self.backend == "jira" and not self.email:
            missing.append("email")
        if self.backend == "github" and not (self.owner and self.repo):
            missing.append("owner/repo")
        if self.backend == "gitlab" and not (self.project_id or self.default_project):
            missing.append("project_id")
        if missing:
            raise ConfigurationError(
                f"Missing configuration for {self.backend}: {', '.join(missing)} "
                f"(set it in {CONFIG_FILENAME}, TRACK_* environment variables, or flags)"
            )


def normalize_backend(name: str) -> str:
    """Map a backend name or alias (gh, gl, j, yt) to its canonical name.

    Raises:
        ConfigurationError: If the name is not a known backend.
    """
    lowered = name.strip().lower()
    lowered = BACKEND_ALIASES.get(lowered, lowered)
    if lowered not in BACKENDS:
        raise ConfigurationError(f"Unknown backend '{name}' (expected one of: {', '.join(BACKENDS)})")
    return lowered


def config_path(explicit: Path | None = None) -> Path:
    """Resolve the config file: explicit path, then TRACK_CONFIG, then ./.track.toml."""
    if explicit is not None:
        return explicit
    env_path = os.environ.get("TRACK_CONFIG")
    return Path(env_path) if env_path else Path.cwd() / CONFIG_FILENAME


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a TOML config file; a missing file reads as empty.

    Raises:
        ConfigurationError: If the file is not valid TOML.
    """
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            return tomli.load(f)
    except tomli.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def write_config_file(path: Path, data: dict[str, Any]) -> None:
    try:
        with open(path, "wb") as f:
            tomli_w.dump(data, f)
    except OSError as e:
        raise IoError(f"cannot write {path}: {e}") from e


def load_config(
    path: Path | None = None,
    backend: str | None = None,
    url: str | None = None,
    token: str | None = None,
) -> TrackConfig:
    """Merge configuration layers.

    Precedence, highest first: CLI flags, TRACK_* environment, the backend's
    table in the file, top-level file keys, built-in defaults.

    Args:
        path: Explicit config file (``--config``).
        backend: ``-b`` flag value.
        url: ``--url`` flag value.
        token: ``--token`` flag value.

    Returns:
        The merged configuration. Connection settings are not validated here;
        call TrackConfig.validate_backend before talking to a backend.
    """
    env = EnvSettings()
    resolved_path = config_path(path or env.config)
    file_config = FileConfig.model_validate(read_config_file(resolved_path))

    backend_name = normalize_backend(backend or env.backend or file_config.backend or DEFAULT_BACKEND)
    section = file_config.section(backend_name)

    def pick(flag: Any, env_value: Any, section_value: Any, top_value: Any) -> Any:
        for value in (flag, env_value, section_value, top_value):
            if value is not None:
                return value
        return None

    owner, repo = section.owner, section.repo
    if repo and "/" in repo and not owner:
        owner, repo = repo.split("/", 1)

    config_url = pick(url, env.url, section.url, file_config.url)
    if backend_name == "github" and not config_url:
        config_url = GITHUB_API_URL

    return TrackConfig(
        backend=backend_name,
        url=config_url,
        token=pick(token, env.token, section.token, file_config.token),
        email=pick(None, env.email, section.email, file_config.email),
        owner=owner,
        repo=repo,
        project_id=section.project_id,
        default_project=file_config.default_project,
        timeout=pick(None, env.timeout, None, file_config.timeout) or DEFAULT_TIMEOUT,
        max_results=env.max_results or DEFAULT_MAX_RESULTS,
        mock_dir=env.mock_dir,
        path=resolved_path if resolved_path.exists() else None,
    )


def set_config_value(path: Path, key: str, value: str) -> dict[str, Any]:
    """Set ``key`` (dotted for tables, e.g. ``github.token``) in the config file.

    Returns:
        The full document as written.

    Raises:
        ConfigurationError: If the key addresses an unknown table.
    """
    data = read_config_file(path)
    table, _, name = key.rpartition(".")
    if table:
        backend = normalize_backend(table)
        data.setdefault(backend, {})[name] = value
    else:
        if key == "backend":
            value = normalize_backend(value)
        data[key] = value
    write_config_file(path, data)
    return data
