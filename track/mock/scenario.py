"""Scenario definition (``scenario.toml``): setup, expected outcome and scoring."""
from pathlib import Path
from typing import Any

import tomli
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from track.core.exceptions import IoError, ParseError


SCENARIO_FILENAME = "scenario.toml"
MANIFEST_FILENAME = "manifest.toml"


class ScenarioMeta(BaseModel):
    name: str = ""
    description: str = ""
    backend: str = "any"
    difficulty: str = "medium"
    tags: list[str] = Field(default_factory=list)


class SetupConfig(BaseModel):
    prompt: str = ""
    default_project: str | None = None
    context: str | None = None
    cache_available: bool = False


class OutcomeCheck(BaseModel):
    """A named check over the call log. Every criterion given must hold."""

    method_called: str | None = None
    min_calls: int | None = None
    max_calls: int | None = None
    issue: str | None = None
    field: str | None = None
    value: str | None = None
    contains: str | None = None


NamedOutcome = bool | str | OutcomeCheck

CALL_LIST_KEYS = ("required_calls", "forbidden_calls", "ordered_calls")


class ExpectedOutcome(BaseModel):
    """Call-level expectations plus any number of named outcome checks.

    Attributes:
        required_calls: Operations that must appear in the log.
        forbidden_calls: Operations that must not appear.
        ordered_calls: Operations that must appear in this relative order.
        outcomes: Named checks. ``true``/``false`` asks whether any call was
            made, a string must appear among call arguments, a table is an
            OutcomeCheck.
    """

    required_calls: list[str] = Field(default_factory=list)
    forbidden_calls: list[str] = Field(default_factory=list)
    ordered_calls: list[str] = Field(default_factory=list)
    outcomes: dict[str, NamedOutcome] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_named(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "outcomes" in data:
            return data
        known = {key: data[key] for key in CALL_LIST_KEYS if key in data}
        named = {key: value for key, value in data.items() if key not in CALL_LIST_KEYS}
        return {**known, "outcomes": named}


class PenaltyConfig(BaseModel):
    extra_command: int = -5
    redundant_fetch: int = -10
    unnecessary_list: int = 0
    command_error: int = -15


class BonusConfig(BaseModel):
    cache_use: int = 10
    under_optimal: int = 0
    json_output: int = 0


class ScoringConfig(BaseModel):
    min_commands: int | None = None
    max_commands: int | None = None
    optimal_commands: int | None = None
    base_score: int = Field(default=100, gt=0)
    penalties: PenaltyConfig = Field(default_factory=PenaltyConfig)
    bonuses: BonusConfig = Field(default_factory=BonusConfig)


class Scenario(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scenario: ScenarioMeta = Field(default_factory=ScenarioMeta)
    setup: SetupConfig = Field(default_factory=SetupConfig)
    expected_outcome: ExpectedOutcome = Field(
        default_factory=ExpectedOutcome,
        validation_alias=AliasChoices("expected_outcome", "expected_outcomes"),
    )
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    @property
    def name(self) -> str:
        return self.scenario.name

    def is_compatible_with(self, backend: str) -> bool:
        return self.scenario.backend == "any" or self.scenario.backend.lower() == backend.lower()

    @classmethod
    def load(cls, path: Path) -> "Scenario":
        """Load a scenario file.

        Raises:
            IoError: If the file cannot be read.
            ParseError: If it is not valid TOML or does not fit the schema.
        """
        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except OSError as e:
            raise IoError(f"cannot read scenario {path}: {e}") from e
        except tomli.TOMLDecodeError as e:
            raise ParseError(f"invalid scenario {path}: {e}") from e
        try:
            scenario = cls.model_validate(data)
        except ValidationError as e:
            raise ParseError(f"invalid scenario {path}: {e}") from e
        if not scenario.scenario.name:
            scenario.scenario.name = path.parent.name
        return scenario

    @classmethod
    def load_from_dir(cls, directory: Path) -> "Scenario":
        return cls.load(directory / SCENARIO_FILENAME)


def find_scenarios(root: Path) -> list[Path]:
    """Scenario directories directly under ``root``, sorted by name."""
    if not root.is_dir():
        return []
    return sorted(p for p in root.iterdir() if (p / SCENARIO_FILENAME).is_file())
