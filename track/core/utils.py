"""Canonicalization helpers used by the domain model and the adapters."""
import re
from collections.abc import Iterable

from track.core.exceptions import InvalidInputError


HEX_COLOR_PATTERN = re.compile(r"^[0-9a-f]{6}$")

OPEN_STATE_WORDS = frozenset({"open", "opened", "reopen", "reopened"})
CLOSED_STATE_WORDS = frozenset({"closed", "close", "resolved", "done"})


def canonical_color(value: str) -> str:
    """Canonicalize a user-supplied tag color.

    Args:
        value: Hex color with or without a leading ``#``, any case.

    Returns:
        Six lowercase hex digits without ``#``.

    Raises:
        InvalidInputError: If the value is not six hex digits.

    Example:
        >>> canonical_color("#FC2929")
        'fc2929'
    """
    color = value.strip().lstrip("#").lower()
    if not HEX_COLOR_PATTERN.match(color):
        raise InvalidInputError("color", f"expected 6 hex digits, got '{value}'")
    return color


def normalize_color(value: str | None) -> str | None:
    """Lenient variant of canonical_color for data read from a backend.

    Values that are not plain hex colors decode to None instead of failing.
    """
    if not value:
        return None
    color = value.strip().lstrip("#").lower()
    return color if HEX_COLOR_PATTERN.match(color) else None


def display_color(color: str | None) -> str:
    """Render a canonical color for humans, with the leading ``#``."""
    return f"#{color}" if color else ""


def split_labels(value: str | Iterable[str] | None) -> list[str]:
    """Turn a comma-joined label string (or any iterable) into a label set.

    Order of first appearance is kept; blanks and duplicates are dropped.
    """
    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else value
    labels: list[str] = []
    for part in parts:
        label = part.strip()
        if label and label not in labels:
            labels.append(label)
    return labels


def join_labels(labels: Iterable[str]) -> str:
    return ",".join(split_labels(labels))


def is_open_word(word: str) -> bool:
    return word.strip().lower() in OPEN_STATE_WORDS


def is_closed_word(word: str) -> bool:
    return word.strip().lower() in CLOSED_STATE_WORDS
