"""
aggregation.py - Mean cross-evaluation scores and top-three selection
"""

import logging
from statistics import mean

from .errors import NoScoredModels
from .records import AggregateScores

logger = logging.getLogger(__name__)

TOP_N = 3


def calculate_mean_scores(responses, evaluations) -> dict[str, float]:
    """Mean score per target model, in response-set order.

    Targets without a single record are absent; records for targets outside
    the response set are discarded.
    """
    scores = {r.model_id: [] for r in responses}
    discarded = 0
    for e in evaluations:
        if e.target_model_id in scores:
            scores[e.target_model_id].append(e.score)
        else:
            discarded += 1
    if discarded:
        logger.warning("Discarded %d evaluations referencing unknown targets", discarded)
    return {model_id: mean(s) for model_id, s in scores.items() if s}


class ScoreAggregator:
    def __init__(self, top_n: int = TOP_N):
        self.top_n = top_n

    def aggregate(self, responses, evaluations) -> AggregateScores:
        responses = tuple(responses)
        means = calculate_mean_scores(responses, evaluations)
        if not means:
            raise NoScoredModels("No model received a valid score from any evaluator")

        # sorted() is stable: equal means keep response-set order
        ranked = sorted(means, key=lambda model_id: means[model_id], reverse=True)
        top = tuple(ranked[:self.top_n])
        top_responses = tuple(r for r in responses if r.model_id in top)

        logger.info("Top %d: %s", len(top), ", ".join(f"{m} ({means[m]:.2f})" for m in top))
        return AggregateScores(mean_scores=means, top_three=top, top_three_responses=top_responses)
