"""Per-directory preferences kept in ``./.track-config.json``."""
from pathlib import Path

from pydantic import BaseModel, ValidationError

from track.core.constants import PREFS_FILENAME
from track.core.exceptions import IoError, ParseError


class LocalPrefs(BaseModel):
    """Default project chosen with ``track config project``."""

    default_project_id: str | None = None
    default_project_name: str | None = None

    def is_empty(self) -> bool:
        return self.default_project_id is None and self.default_project_name is None

    def set_default_project(self, project_id: str, project_name: str) -> None:
        self.default_project_id = project_id
        self.default_project_name = project_name


def prefs_path(directory: Path | None = None) -> Path:
    return (directory or Path.cwd()) / PREFS_FILENAME


def load_prefs(path: Path | None = None) -> LocalPrefs:
    """Read preferences; a missing file yields empty preferences.

    Raises:
        ParseError: If the file exists but is not valid JSON for LocalPrefs.
    """
    path = path or prefs_path()
    if not path.exists():
        return LocalPrefs()
    try:
        return LocalPrefs.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise ParseError(f"{path}: {e}") from e
    except OSError as e:
        raise IoError(f"cannot read {path}: {e}") from e


def save_prefs(prefs: LocalPrefs, path: Path | None = None) -> Path:
    path = path or prefs_path()
    try:
        path.write_text(prefs.model_dump_json(indent=2, exclude_none=True) + "\n", encoding="utf-8")
    except OSError as e:
        raise IoError(f"cannot write {path}: {e}") from e
    return path


def clear_prefs(path: Path | None = None) -> bool:
    """Delete the preferences file.

    Returns:
        True if a file was removed.
    """
    path = path or prefs_path()
    if not path.exists():
        return False
    try:
        path.unlink()
    except OSError as e:
        raise IoError(f"cannot delete {path}: {e}") from e
    return True
