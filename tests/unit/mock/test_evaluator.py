"""Tests for call log scoring."""
from typing import Any

import pytest

from track.mock.call_log import CallLogEntry, MatchedMapping
from track.mock.evaluator import EfficiencyRating, Evaluator, is_json_invocation
from track.mock.scenario import Scenario, ScoringConfig


def call(op: str, result_kind: str = "ok", body: Any = None, **args: Any) -> CallLogEntry:
    return CallLogEntry(
        op=op,
        args=args,
        matched_mapping=MatchedMapping(index=0, file=f"{op}.json") if result_kind != "miss" else None,
        result_kind=result_kind,
        body=body,
    )


def scenario(**data: Any) -> Scenario:
    return Scenario.model_validate({"scenario": {"name": "test"}, **data})


class TestCorrectness:
    def test_perfect_run(self) -> None:
        evaluator = Evaluator(scenario(expected_outcome={"required_calls": ["get_issue"]}))

        result = evaluator.evaluate([call("get_issue", id="DEMO-1")])

        assert result.success
        assert result.score == 1.0
        assert result.points == 100
        assert result.suggestions == []

    def test_missing_required_call(self) -> None:
        evaluator = Evaluator(scenario(expected_outcome={"required_calls": ["get_issue", "add_comment"]}))

        result = evaluator.evaluate([call("get_issue", id="DEMO-1")])

        assert not result.success
        assert result.missing == ["add_comment"]
        assert result.points == 75
        assert result.score == pytest.approx(0.75)
        assert "Required call 'add_comment' was never made" in result.suggestions

    def test_failure_caps_score_even_with_bonus(self) -> None:
        evaluator = Evaluator(
            scenario(
                setup={"cache_available": True},
                expected_outcome={"forbidden_calls": ["delete_issue"]},
            )
        )

        result = evaluator.evaluate([call("delete_issue", id="DEMO-1")])

        assert result.forbidden_present == ["delete_issue"]
        assert result.score <= 0.75

    def test_order(self) -> None:
        evaluator = Evaluator(scenario(expected_outcome={"ordered_calls": ["get_issue", "update_issue"]}))
        good = evaluator.evaluate([call("get_issue", id="X"), call("list_tags"), call("update_issue", id="X")])
        bad = evaluator.evaluate([call("update_issue", id="X"), call("get_issue", id="X")])
        assert good.order_ok
        assert not bad.order_ok
        assert not bad.success

    def test_points_never_negative(self) -> None:
        evaluator = Evaluator(scenario(expected_outcome={"required_calls": ["a", "b", "c", "d", "e"]}))
        result = evaluator.evaluate([])
        assert result.points == 0
        assert result.score == 0.0


class TestNamedOutcomes:
    def test_string_outcome_references_argument(self) -> None:
        evaluator = Evaluator(scenario(expected_outcome={"issue_viewed": "DEMO-1"}))
        assert evaluator.evaluate([call("get_issue", id="DEMO-1")]).success
        assert not evaluator.evaluate([call("get_issue", id="DEMO-2")]).success

    def test_bool_outcome(self) -> None:
        evaluator = Evaluator(scenario(expected_outcome={"made_calls": True}))
        assert evaluator.evaluate([call("list_tags")]).success
        assert not evaluator.evaluate([]).success

    def test_field_update(self) -> None:
        evaluator = Evaluator(
            scenario(
                expected_outcome={"resolved": {"issue": "DEMO-1", "field": "state", "value": "Fixed"}}
            )
        )
        hit = call("update_issue", id="DEMO-1", body={"state": "fixed"})
        miss = call("update_issue", id="DEMO-1", body={"summary": "x"})
        assert evaluator.evaluate([hit]).success
        assert not evaluator.evaluate([miss]).success

    def test_field_update_through_custom_field(self) -> None:
        evaluator = Evaluator(scenario(expected_outcome={"prio": {"field": "Priority", "value": "Major"}}))
        body = {"custom_fields": [{"type": "single_enum", "name": "Priority", "value": "Major"}]}
        assert evaluator.evaluate([call("update_issue", id="DEMO-1", body=body)]).success

    def test_method_call_counts(self) -> None:
        evaluator = Evaluator(
            scenario(expected_outcome={"commented": {"method_called": "add_comment", "max_calls": 1}})
        )
        once = [call("add_comment", issue_id="X", text="hi")]
        assert evaluator.evaluate(once).success
        result = evaluator.evaluate(once * 2)
        assert not result.success
        assert "exceeds max" in result.outcomes[0].actual

    def test_comment_contains(self) -> None:
        evaluator = Evaluator(scenario(expected_outcome={"note": {"contains": "deployed"}}))
        assert evaluator.evaluate([call("add_comment", issue_id="X", text="Deployed to prod")]).success

    def test_created_summary_contains(self) -> None:
        evaluator = Evaluator(
            scenario(expected_outcome={"filed": {"method_called": "create_issue", "contains": "login"}})
        )
        assert evaluator.evaluate([call("create_issue", project="0-2", summary="Login broken")]).success


class TestEfficiency:
    @pytest.mark.parametrize(
        "calls,rating",
        [(1, EfficiencyRating.EXCELLENT), (2, EfficiencyRating.OPTIMAL), (3, EfficiencyRating.ACCEPTABLE),
         (5, EfficiencyRating.INEFFICIENT)],
    )
    def test_rating(self, calls: int, rating: EfficiencyRating) -> None:
        scoring = ScoringConfig(optimal_commands=2, max_commands=4)
        assert Evaluator.efficiency(calls, scoring) == rating

    def test_extra_commands_penalized(self) -> None:
        evaluator = Evaluator(scenario(scoring={"max_commands": 1}))
        result = evaluator.evaluate([call("list_tags"), call("list_projects"), call("list_link_types")])
        assert result.points == 90
        assert result.success

    def test_redundant_fetch_penalized(self) -> None:
        evaluator = Evaluator(scenario())
        result = evaluator.evaluate([call("get_issue", id="DEMO-1"), call("get_issue", id="DEMO-1")])
        assert result.points == 90
        assert any("redundant" in s for s in result.suggestions)

    def test_errors_penalized(self) -> None:
        evaluator = Evaluator(scenario())
        result = evaluator.evaluate([call("get_issue", result_kind="miss", id="NOPE")])
        assert result.points == 85

    def test_repeated_lists_free_by_default(self) -> None:
        evaluator = Evaluator(scenario())
        assert evaluator.evaluate([call("list_tags"), call("list_tags")]).points == 100

    def test_cache_bonus_is_clamped(self) -> None:
        evaluator = Evaluator(scenario(setup={"cache_available": True}))
        result = evaluator.evaluate([call("get_issue", id="X")])
        assert result.bonuses[0].reason == "Effective cache usage"
        assert result.points == 100

    def test_cache_bonus_offsets_penalty(self) -> None:
        evaluator = Evaluator(scenario(setup={"cache_available": True}))
        result = evaluator.evaluate([call("get_issue", id="X"), call("get_issue", id="X")])
        assert result.points == 100

    def test_listing_projects_forfeits_cache_bonus(self) -> None:
        evaluator = Evaluator(scenario(setup={"cache_available": True}))
        result = evaluator.evaluate([call("list_projects"), call("create_issue", project="0-2", summary="s")])
        assert result.bonuses == []

    def test_cli_entries_do_not_count_as_calls(self) -> None:
        evaluator = Evaluator(scenario(scoring={"max_commands": 1, "bonuses": {"json_output": 5}}))
        cli = CallLogEntry(op="cli", args={"argv": ["-o", "json", "issue", "get", "X"]}, status=0)
        result = evaluator.evaluate([cli, call("get_issue", id="X")])
        assert result.total_calls == 1
        assert result.bonuses[0].reason == "JSON output used"


@pytest.mark.parametrize(
    "argv,expected",
    [
        (["-o", "json", "issue", "get"], True),
        (["--output", "json"], True),
        (["--output=json"], True),
        (["-o", "text"], False),
        (["issue", "get", "json"], False),
    ],
)
def test_is_json_invocation(argv: list[str], expected: bool) -> None:
    assert is_json_invocation(argv) is expected
