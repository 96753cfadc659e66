"""Scores a recorded call log against a scenario's expected outcome.

Correctness comes first: every failed criterion costs 25 points and caps the
score below a full pass. Efficiency (command counts, redundant fetches,
errors) then adjusts the points through the scenario's penalties and
bonuses.
"""
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from track.mock.call_log import CallLogEntry, read_call_log
from track.mock.scenario import OutcomeCheck, Scenario, ScoringConfig


FAILED_CRITERION_POINTS = 25

JSON_OUTPUT_FLAGS = ("-ojson", "--output=json", "--format=json")


class EfficiencyRating(StrEnum):
    EXCELLENT = "Excellent"
    OPTIMAL = "Optimal"
    ACCEPTABLE = "Acceptable"
    INEFFICIENT = "Inefficient"


class OutcomeResult(BaseModel):
    name: str
    achieved: bool
    expected: str
    actual: str


class ScoreAdjustment(BaseModel):
    reason: str
    points: int
    count: int = 1


class EvaluationResult(BaseModel):
    """Outcome of one evaluation.

    Attributes:
        scenario_name: Scenario evaluated.
        success: True when every criterion holds.
        score: Normalized score in [0, 1].
        points: Points after adjustments, between 0 and max_points.
        max_points: The scenario's base score.
        total_calls: Backend operations counted for efficiency.
        optimal_calls: Optimal command count from the scenario.
        efficiency: Rating of the command count.
        missing: Required calls that never happened.
        forbidden_present: Forbidden calls that did happen.
        order_ok: Whether ordered calls appeared in order.
        outcomes: Per named outcome results.
        penalties: Point deductions applied.
        bonuses: Point additions applied.
        suggestions: Hints for a better run.
    """

    scenario_name: str
    success: bool
    score: float
    points: int
    max_points: int
    total_calls: int
    optimal_calls: int | None = None
    efficiency: EfficiencyRating
    missing: list[str] = Field(default_factory=list)
    forbidden_present: list[str] = Field(default_factory=list)
    order_ok: bool = True
    outcomes: list[OutcomeResult] = Field(default_factory=list)
    penalties: list[ScoreAdjustment] = Field(default_factory=list)
    bonuses: list[ScoreAdjustment] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


def _arg_values(call: CallLogEntry) -> list[str]:
    values = []
    for value in call.args.values():
        if isinstance(value, list):
            values.extend(str(v) for v in value)
        elif value is not None:
            values.append(str(value))
    return values


def _references(calls: list[CallLogEntry], value: str) -> bool:
    return any(value in _arg_values(call) for call in calls)


def _in_order(ops: list[str], ordered: list[str]) -> bool:
    remaining = iter(ops)
    return all(any(op == wanted for op in remaining) for wanted in ordered)


def _body_sets(body: Any, field: str, value: str) -> bool:
    """Whether an update body sets ``field`` to ``value`` (case-insensitive)."""
    if not isinstance(body, dict):
        return False
    wanted = value.lower()
    for key, current in body.items():
        if key.lower() == field.lower() and current is not None:
            if isinstance(current, list):
                if wanted in (str(v).lower() for v in current):
                    return True
            elif str(current).lower() == wanted:
                return True
    for update in body.get("custom_fields") or []:
        if str(update.get("name", "")).lower() != field.lower():
            continue
        current = update.get("value", update.get("login"))
        if current is not None and str(current).lower() == wanted:
            return True
    return False


def is_json_invocation(argv: list[str]) -> bool:
    for index, arg in enumerate(argv):
        if arg in JSON_OUTPUT_FLAGS:
            return True
        if arg in ("-o", "--output") and index + 1 < len(argv) and argv[index + 1] == "json":
            return True
    return False


class Evaluator:
    """Evaluate call logs for one scenario."""

    def __init__(self, scenario: Scenario) -> None:
        self.scenario = scenario

    @classmethod
    def from_dir(cls, directory: Path) -> "Evaluator":
        return cls(Scenario.load_from_dir(directory))

    def evaluate_dir(self, directory: Path) -> EvaluationResult:
        return self.evaluate(read_call_log(directory))

    def evaluate(self, entries: list[CallLogEntry]) -> EvaluationResult:
        scoring = self.scenario.scoring
        expected = self.scenario.expected_outcome
        calls = [entry for entry in entries if not entry.is_cli]
        invocations = [entry for entry in entries if entry.is_cli]
        ops = [call.op for call in calls]

        missing = [op for op in expected.required_calls if op not in ops]
        forbidden_present = [op for op in expected.forbidden_calls if op in ops]
        order_ok = _in_order(ops, expected.ordered_calls)
        outcomes = [
            self.check_outcome(name, outcome, calls)
            for name, outcome in expected.outcomes.items()
        ]

        failed = (
            len(missing)
            + len(forbidden_present)
            + (0 if order_ok else 1)
            + sum(1 for o in outcomes if not o.achieved)
        )

        penalties = self._penalties(calls, failed, scoring)
        bonuses = self._bonuses(calls, invocations, scoring)

        base = scoring.base_score
        points = base + sum(p.points for p in penalties) + sum(b.points for b in bonuses)
        points = max(0, min(base, points))
        score = points / base
        if failed:
            score = min(score, (base - FAILED_CRITERION_POINTS) / base)
            score = max(0.0, score)

        efficiency = self.efficiency(len(calls), scoring)
        result = EvaluationResult(
            scenario_name=self.scenario.name,
            success=failed == 0,
            score=score,
            points=points,
            max_points=base,
            total_calls=len(calls),
            optimal_calls=scoring.optimal_commands,
            efficiency=efficiency,
            missing=missing,
            forbidden_present=forbidden_present,
            order_ok=order_ok,
            outcomes=outcomes,
            penalties=penalties,
            bonuses=bonuses,
        )
        result.suggestions = self.suggestions(result, calls)
        return result

    def check_outcome(self, name: str, outcome: Any, calls: list[CallLogEntry]) -> OutcomeResult:
        if isinstance(outcome, bool):
            made = bool(calls)
            return OutcomeResult(
                name=name,
                achieved=made == outcome,
                expected=f"calls made: {str(outcome).lower()}",
                actual=f"calls made: {str(made).lower()}",
            )
        if isinstance(outcome, str):
            found = _references(calls, outcome)
            return OutcomeResult(
                name=name,
                achieved=found,
                expected=f"reference to '{outcome}'",
                actual=f"found '{outcome}'" if found else "not found",
            )
        return self._check_complex(name, outcome, calls)

    def _check_complex(self, name: str, outcome: OutcomeCheck, calls: list[CallLogEntry]) -> OutcomeResult:
        passed = True
        expected: list[str] = []
        actual: list[str] = []

        if outcome.method_called:
            count = sum(1 for call in calls if call.op == outcome.method_called)
            expected.append(f"method '{outcome.method_called}' called")
            if count:
                actual.append(f"'{outcome.method_called}' called {count} times")
            else:
                actual.append(f"'{outcome.method_called}' not called")
                passed = False
            if outcome.min_calls is not None and count < outcome.min_calls:
                expected.append(f"at least {outcome.min_calls} calls")
                actual.append(f"only {count} calls")
                passed = False
            if outcome.max_calls is not None and count > outcome.max_calls:
                expected.append(f"at most {outcome.max_calls} calls")
                actual.append(f"{count} calls (exceeds max)")
                passed = False

        if outcome.issue:
            expected.append(f"issue '{outcome.issue}'")
            if _references(calls, outcome.issue):
                actual.append(f"issue '{outcome.issue}' referenced")
            else:
                actual.append(f"issue '{outcome.issue}' not referenced")
                passed = False

        if outcome.field and outcome.value is not None:
            updates = [
                call for call in calls
                if call.op == "update_issue" and call.result_kind == "ok"
                and (outcome.issue is None or outcome.issue in _arg_values(call))
            ]
            expected.append(f"{outcome.field} = '{outcome.value}'")
            if any(_body_sets(call.body, outcome.field, outcome.value) for call in updates):
                actual.append(f"{outcome.field} set to '{outcome.value}'")
            else:
                actual.append("no update with matching field/value")
                passed = False

        if outcome.contains:
            needle = outcome.contains.lower()
            if outcome.method_called == "create_issue":
                expected.append(f"issue summary containing '{outcome.contains}'")
                found = any(
                    call.op == "create_issue" and needle in str(call.args.get("summary", "")).lower()
                    for call in calls
                )
            elif outcome.method_called in (None, "add_comment", "add_article_comment"):
                expected.append(f"comment containing '{outcome.contains}'")
                found = any(
                    call.op in ("add_comment", "add_article_comment")
                    and needle in str(call.args.get("text", "")).lower()
                    for call in calls
                )
            else:
                expected.append(f"argument containing '{outcome.contains}'")
                found = any(
                    call.op == outcome.method_called
                    and any(needle in value.lower() for value in _arg_values(call))
                    for call in calls
                )
            if found:
                actual.append(f"found text with '{outcome.contains}'")
            else:
                actual.append(f"no matching text for '{outcome.contains}'")
                passed = False

        return OutcomeResult(name=name, achieved=passed, expected=", ".join(expected), actual=", ".join(actual))

    @staticmethod
    def efficiency(total_calls: int, scoring: ScoringConfig) -> EfficiencyRating:
        optimal = scoring.optimal_commands
        maximum = scoring.max_commands
        if optimal is not None and total_calls < optimal:
            return EfficiencyRating.EXCELLENT
        if optimal is None or total_calls == optimal:
            if maximum is None or total_calls <= maximum:
                return EfficiencyRating.OPTIMAL
        if maximum is None or total_calls <= maximum:
            return EfficiencyRating.ACCEPTABLE
        return EfficiencyRating.INEFFICIENT

    @staticmethod
    def redundant_fetches(calls: list[CallLogEntry]) -> int:
        """Count ``get_*`` calls repeating an earlier one for the same id."""
        seen: set[str] = set()
        redundant = 0
        for call in calls:
            if not call.op.startswith("get_"):
                continue
            target = call.args.get("id", call.args.get("issue_id"))
            if target is None:
                continue
            key = f"{call.op}:{target}"
            if key in seen:
                redundant += 1
            else:
                seen.add(key)
        return redundant

    @staticmethod
    def repeated_lists(calls: list[CallLogEntry]) -> int:
        """Count ``list_*`` calls repeating an earlier identical listing."""
        seen: set[str] = set()
        repeated = 0
        for call in calls:
            if not call.op.startswith("list_"):
                continue
            key = f"{call.op}:{sorted(call.args.items())}"
            if key in seen:
                repeated += 1
            else:
                seen.add(key)
        return repeated

    def _penalties(self, calls: list[CallLogEntry], failed: int, scoring: ScoringConfig) -> list[ScoreAdjustment]:
        penalties = []
        if failed:
            penalties.append(
                ScoreAdjustment(
                    reason="Failed expected outcomes",
                    points=-FAILED_CRITERION_POINTS * failed,
                    count=failed,
                )
            )
        if scoring.max_commands is not None and len(calls) > scoring.max_commands:
            extra = len(calls) - scoring.max_commands
            penalties.append(
                ScoreAdjustment(
                    reason=f"Extra commands ({extra} over max {scoring.max_commands})",
                    points=extra * scoring.penalties.extra_command,
                    count=extra,
                )
            )
        redundant = self.redundant_fetches(calls)
        if redundant:
            penalties.append(
                ScoreAdjustment(
                    reason="Redundant fetches (same resource fetched multiple times)",
                    points=redundant * scoring.penalties.redundant_fetch,
                    count=redundant,
                )
            )
        repeated = self.repeated_lists(calls)
        if repeated and scoring.penalties.unnecessary_list:
            penalties.append(
                ScoreAdjustment(
                    reason="Unnecessary list operations",
                    points=repeated * scoring.penalties.unnecessary_list,
                    count=repeated,
                )
            )
        errors = sum(1 for call in calls if call.result_kind != "ok")
        if errors:
            penalties.append(
                ScoreAdjustment(
                    reason="Command errors",
                    points=errors * scoring.penalties.command_error,
                    count=errors,
                )
            )
        return penalties

    def _bonuses(
        self, calls: list[CallLogEntry], invocations: list[CallLogEntry], scoring: ScoringConfig
    ) -> list[ScoreAdjustment]:
        bonuses = []
        optimal = scoring.optimal_commands
        if optimal is not None and len(calls) < optimal and scoring.bonuses.under_optimal > 0:
            saved = optimal - len(calls)
            bonuses.append(
                ScoreAdjustment(
                    reason=f"Under optimal ({saved} commands saved)",
                    points=saved * scoring.bonuses.under_optimal,
                    count=saved,
                )
            )
        # With cached context available, a run that never lists projects used it
        if (
            self.scenario.setup.cache_available
            and calls
            and not any(call.op == "list_projects" for call in calls)
            and scoring.bonuses.cache_use > 0
        ):
            bonuses.append(ScoreAdjustment(reason="Effective cache usage", points=scoring.bonuses.cache_use))
        if scoring.bonuses.json_output > 0 and any(
            is_json_invocation([str(a) for a in entry.args.get("argv", [])]) for entry in invocations
        ):
            bonuses.append(ScoreAdjustment(reason="JSON output used", points=scoring.bonuses.json_output))
        return bonuses

    def suggestions(self, result: EvaluationResult, calls: list[CallLogEntry]) -> list[str]:
        suggestions = []
        for op in result.missing:
            suggestions.append(f"Required call '{op}' was never made")
        for op in result.forbidden_present:
            suggestions.append(f"Forbidden call '{op}' was made")
        if not result.order_ok:
            order = " -> ".join(self.scenario.expected_outcome.ordered_calls)
            suggestions.append(f"Calls were not made in the expected order ({order})")
        for outcome in result.outcomes:
            if not outcome.achieved:
                suggestions.append(
                    f"Outcome '{outcome.name}' was not achieved: expected {outcome.expected}, got {outcome.actual}"
                )
        if result.efficiency == EfficiencyRating.INEFFICIENT:
            suggestions.append("Avoid fetching the same resource multiple times")
        elif result.efficiency == EfficiencyRating.ACCEPTABLE:
            suggestions.append("Consider combining operations where possible for optimal efficiency")
        redundant = self.redundant_fetches(calls)
        if redundant:
            suggestions.append(f"Found {redundant} redundant fetch(es). Store results for reuse.")
        errors = sum(1 for call in calls if call.result_kind != "ok")
        if errors:
            suggestions.append(
                f"{errors} call(s) resulted in errors. Check arguments and resource existence."
            )
        return suggestions
