"""Manifest parsing and request matching.

A manifest (``manifest.toml``) is an ordered list of ``[[responses]]``
entries mapping an operation plus argument constraints to a response file.
The first entry that matches wins; specificity plays no part.
"""
import json
from pathlib import Path
from typing import Any

import tomli
from loguru import logger
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from track.core.exceptions import IoError, ParseError


WILDCARD = "*"

ArgMatcher = str | list[str]


class ConditionMatcher(BaseModel):
    """Extra condition on the request body."""

    body_contains: str | None = None


class ResponseMapping(BaseModel):
    """Maps one request shape to a response.

    Attributes:
        op: Operation name (``get_issue``, ``search_issues``...). ``method`` is accepted too.
        args: Argument constraints; a string must equal the argument, a list
            is a set of accepted values and ``"*"`` accepts anything.
        file: Response file, relative to ``responses/``.
        sequence: Response files served in turn for repeated identical
            requests; the last one repeats once the sequence is exhausted.
        status: Simulated HTTP status; 400 and above turn into an ApiError.
        when: Optional body condition.
        delay_ms: Simulated latency.
    """

    model_config = ConfigDict(populate_by_name=True)

    op: str = Field(validation_alias=AliasChoices("op", "method"))
    args: dict[str, ArgMatcher] = Field(default_factory=dict)
    file: str | None = None
    sequence: list[str] | None = None
    status: int = 200
    when: ConditionMatcher | None = None
    delay_ms: int = 0

    @model_validator(mode="before")
    @classmethod
    def _stringify_args(cls, data: Any) -> Any:
        # TOML lets authors write limit = 20; matching is done on strings
        if isinstance(data, dict) and isinstance(data.get("args"), dict):
            data = dict(data)
            data["args"] = {
                key: [str(v) for v in value] if isinstance(value, list) else str(value)
                for key, value in data["args"].items()
            }
        return data

    def matches(self, op: str, args: dict[str, Any], body: str | None) -> bool:
        if self.op != op:
            return False
        for key, matcher in self.args.items():
            if key not in args:
                return False
            if not arg_matches(matcher, args[key]):
                return False
        if self.when and self.when.body_contains is not None:
            if body is None or self.when.body_contains not in body:
                return False
        return True

    def response_file(self, call_count: int) -> str | None:
        if self.sequence:
            return self.sequence[min(call_count, len(self.sequence) - 1)]
        return self.file

    def identity(self) -> str:
        return json.dumps(self.model_dump(), sort_keys=True)


class Match(BaseModel):
    """The manifest entry chosen for a call."""

    index: int
    mapping: ResponseMapping
    file: str | None


def arg_matches(matcher: ArgMatcher, value: Any) -> bool:
    """Check one argument against its constraint.

    Scalars compare as strings. When the call argument is itself a list (tags,
    for example) a string constraint must be one of its members and a list
    constraint must be a subset of it.
    """
    if matcher == WILDCARD:
        return True
    if isinstance(value, (list, tuple, set)):
        members = {str(v) for v in value}
        if isinstance(matcher, list):
            return set(matcher) <= members
        return matcher in members
    text = "" if value is None else str(value)
    if isinstance(matcher, list):
        return WILDCARD in matcher or text in matcher
    return matcher == text


def request_key(op: str, args: dict[str, Any]) -> str:
    """Stable key for a request, used to advance response sequences."""
    if not args:
        return op
    rendered = ",".join(f"{key}={args[key]}" for key in sorted(args))
    return f"{op}:{rendered}"


class Manifest(BaseModel):
    responses: list[ResponseMapping] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> "Manifest":
        """Load ``manifest.toml``.

        Identical mappings are reported with a warning; the first one is used.

        Raises:
            IoError: If the file cannot be read.
            ParseError: If it is not valid TOML or does not fit the schema.
        """
        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except OSError as e:
            raise IoError(f"cannot read mock manifest {path}: {e}") from e
        except tomli.TOMLDecodeError as e:
            raise ParseError(f"invalid mock manifest {path}: {e}") from e
        try:
            manifest = cls.model_validate(data)
        except ValidationError as e:
            raise ParseError(f"invalid mock manifest {path}: {e}") from e
        manifest.warn_duplicates()
        return manifest

    def warn_duplicates(self) -> None:
        seen: dict[str, int] = {}
        for index, mapping in enumerate(self.responses):
            identity = mapping.identity()
            if identity in seen:
                logger.warning(
                    "Duplicate mock mapping ignored",
                    op=mapping.op,
                    index=index,
                    first=seen[identity],
                )
            else:
                seen[identity] = index

    def find(
        self,
        op: str,
        args: dict[str, Any],
        body: str | None = None,
        call_counts: dict[str, int] | None = None,
    ) -> Match | None:
        """Return the first entry matching the call, or None.

        Args:
            op: Operation name.
            args: Call arguments.
            body: Serialized request body for write operations.
            call_counts: Calls seen so far per request_key, for sequences.
        """
        count = (call_counts or {}).get(request_key(op, args), 0)
        for index, mapping in enumerate(self.responses):
            if mapping.matches(op, args, body):
                return Match(index=index, mapping=mapping, file=mapping.response_file(count))
        return None
