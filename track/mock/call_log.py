"""Append-only call log (``call_log.jsonl``) written by the mock harness.

Each line is one JSON object. Backend operations carry the operation name,
its arguments, the manifest entry that answered it and the outcome; command
invocations are recorded with ``op = "cli"``. Appends are serialized with a
process-wide lock so that lines never interleave.
"""
import json
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from track.core.exceptions import IoError


CALL_LOG_FILENAME = "call_log.jsonl"
CLI_OP = "cli"

ResultKind = Literal["ok", "error", "miss"]

_lock = threading.Lock()


class MatchedMapping(BaseModel):
    index: int
    file: str | None = None


class CallLogEntry(BaseModel):
    """One line of the call log.

    Attributes:
        timestamp: When the call was recorded (UTC).
        op: Operation name, or ``cli`` for a command invocation.
        args: Call arguments (``argv`` for command invocations).
        matched_mapping: Manifest entry used, or None on a miss.
        result_kind: ``ok``, ``error`` or ``miss``.
        status: Simulated HTTP status, or the exit code for command invocations.
        body: Request body forwarded by write operations.
        error: Error message when the call failed.
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    op: str
    args: dict[str, Any] = Field(default_factory=dict)
    matched_mapping: MatchedMapping | None = None
    result_kind: ResultKind = "ok"
    status: int | None = None
    body: Any = None
    error: str | None = None

    @property
    def is_cli(self) -> bool:
        return self.op == CLI_OP

    def to_line(self) -> str:
        data = self.model_dump(mode="json")
        for optional in ("body", "error"):
            if data[optional] is None:
                del data[optional]
        return json.dumps(data, ensure_ascii=False)


def call_log_path(scenario_dir: Path) -> Path:
    return scenario_dir / CALL_LOG_FILENAME


def append_entry(scenario_dir: Path, entry: CallLogEntry) -> None:
    """Append one entry under the log lock.

    Raises:
        IoError: If the log cannot be written.
    """
    line = entry.to_line() + "\n"
    with _lock:
        try:
            with open(call_log_path(scenario_dir), "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            raise IoError(f"cannot write call log: {e}") from e


def log_cli_command(scenario_dir: Path, argv: list[str], exit_code: int) -> None:
    """Record a command invocation alongside the backend calls it made."""
    append_entry(
        scenario_dir,
        CallLogEntry(
            op=CLI_OP,
            args={"argv": list(argv)},
            result_kind="ok" if exit_code == 0 else "error",
            status=exit_code,
        ),
    )


def read_call_log(scenario_dir: Path) -> list[CallLogEntry]:
    """Read every well-formed entry; a missing log reads as empty."""
    path = call_log_path(scenario_dir)
    if not path.exists():
        return []
    entries = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(CallLogEntry.model_validate_json(line))
            except ValidationError as e:
                logger.debug("Skipping malformed call log line", error=str(e))
    return entries


def clear_call_log(scenario_dir: Path) -> None:
    with _lock:
        try:
            call_log_path(scenario_dir).write_text("", encoding="utf-8")
        except OSError as e:
            raise IoError(f"cannot clear call log: {e}") from e
