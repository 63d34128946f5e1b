"""Tests for mean scores and top-three selection."""

import pytest

from crossrank.aggregation import ScoreAggregator, calculate_mean_scores
from crossrank.errors import ErrorKind, NoScoredModels
from crossrank.records import EvaluationRecord, GeneratedResponse


def record(evaluator, target, score):
    return EvaluationRecord(evaluator_model_id=evaluator, target_model_id=target, score=score)


def response(model_id):
    return GeneratedResponse(model_id=model_id, display_name=model_id.upper(), text=f"text {model_id}")


class TestMeanScores:
    def test_means_and_unscored_models_absent(self):
        responses = [response(m) for m in "ABCD"]
        evaluations = [record("A", "B", 8), record("C", "B", 6), record("A", "D", 9)]

        means = calculate_mean_scores(responses, evaluations)

        assert means == {"B": 7.0, "D": 9.0}

    def test_unknown_targets_discarded(self):
        means = calculate_mean_scores([response("A")], [record("A", "A", 5), record("A", "Z", 10)])

        assert means == {"A": 5.0}


class TestScoreAggregator:
    def test_ranks_by_mean_descending(self):
        responses = [response(m) for m in "ABCD"]
        evaluations = [record("A", "B", 8), record("C", "B", 6), record("A", "D", 9)]

        result = ScoreAggregator().aggregate(responses, evaluations)

        assert result.top_three == ("D", "B")
        assert "A" not in result.top_three and "C" not in result.top_three

    def test_ties_keep_response_order(self):
        responses = [response(m) for m in "ABCD"]
        evaluations = [record("A", "D", 7), record("C", "B", 7), record("A", "C", 5)]

        result = ScoreAggregator().aggregate(responses, evaluations)

        assert result.top_three == ("B", "D", "C")

    def test_boundary_tie_truncates_to_three_in_stable_order(self):
        responses = [response(m) for m in "ABCDE"]
        evaluations = [record("A", m, 6) for m in "EDCBA"]

        result = ScoreAggregator().aggregate(responses, evaluations)

        assert result.top_three == ("A", "B", "C")

    def test_top_responses_follow_response_set_order(self):
        responses = [response(m) for m in "ABCDE"]
        evaluations = [record("A", "E", 10), record("A", "A", 2), record("A", "C", 8), record("A", "B", 9)]

        result = ScoreAggregator().aggregate(responses, evaluations)

        assert result.top_three == ("E", "B", "C")
        assert [r.model_id for r in result.top_three_responses] == ["B", "C", "E"]

    def test_fewer_than_three_scored(self):
        responses = [response(m) for m in "ABCD"]

        result = ScoreAggregator().aggregate(responses, [record("B", "A", 4)])

        assert result.top_three == ("A",)
        assert [r.model_id for r in result.top_three_responses] == ["A"]

    def test_no_scores_raises(self):
        with pytest.raises(NoScoredModels) as exc:
            ScoreAggregator().aggregate([response(m) for m in "ABC"], [])
        assert exc.value.kind == ErrorKind.NO_SCORED_MODELS

    def test_only_unknown_targets_raises(self):
        with pytest.raises(NoScoredModels):
            ScoreAggregator().aggregate([response("A")], [record("A", "ghost", 9)])
