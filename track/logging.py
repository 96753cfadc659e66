"""Logging configuration for the track CLI.

Diagnostics go to stderr through loguru so that stdout stays reserved for
command output (text or JSON).
"""

import os
import sys
from typing import TYPE_CHECKING

from loguru import logger


if TYPE_CHECKING:
    from loguru import Record


DEFAULT_LEVEL = "WARNING"

LEVEL_COLORS = {
    "TRACE": "<dim>",
    "DEBUG": "<cyan>",
    "INFO": "<blue>",
    "SUCCESS": "<green>",
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<red><bold>",
}


def _log_format(record: "Record") -> str:
    """Build the loguru format string for one record.

    Structured context passed as keyword extras is appended as
    ``key=value`` pairs after the message.

    Args:
        record: Loguru record containing log metadata, message, and level.

    Returns:
        Format string with loguru color tags.
    """
    level = record["level"].name
    color = LEVEL_COLORS.get(level, "")
    close = "</>" if color else ""

    fmt = (
        "<dim>{time:HH:mm:ss}</dim> "
        f"{color}{{level: <8}}{close}"
        "<dim>│</dim> "
        "<dim>{name}:</dim>"
        "{message}"
    )

    extra = record["extra"]
    if extra:
        extra_str = " ".join(f"{k}={v!r}" for k, v in extra.items())
        # Escape braces to prevent loguru format string injection
        extra_str = extra_str.replace("{", "{{").replace("}", "}}").replace("<", r"\<")
        fmt += f" <dim>│ {extra_str}</dim>"

    fmt += "\n"

    if record["exception"]:
        fmt += "{exception}\n"

    return fmt


def resolve_level(verbose: bool = False) -> str:
    """Pick the log level: TRACK_LOG_LEVEL wins, then -v (DEBUG), then WARNING."""
    env_level = os.environ.get("TRACK_LOG_LEVEL")
    if env_level:
        return env_level.upper()
    return "DEBUG" if verbose else DEFAULT_LEVEL


def configure_logging(level: str = DEFAULT_LEVEL) -> None:
    """Configure loguru with a single stderr handler.

    Colors are dropped when NO_COLOR is set or stderr is not a terminal.

    Args:
        level: Minimum log level to display (e.g., "DEBUG", "INFO", "WARNING").
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=_log_format,
        colorize=not os.environ.get("NO_COLOR") and sys.stderr.isatty(),
    )
