"""
pipeline.py - End-to-end run: generate, cross-evaluate, aggregate, rank

State machine:
  Idle -> Generating -> Evaluating -> Aggregating -> Ranking -> Complete
with a terminal Failed state reachable from Generating, Aggregating and
Ranking. Each stage's complete output is the next stage's input.

Cancelling the task running `PipelineController.run` cancels the in-flight
model calls; nothing collected so far is returned.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .aggregation import ScoreAggregator
from .config import DEFAULT_TIMEOUT, MIN_SELECTED_MODELS, format_duration
from .errors import InvalidInput, PipelineError
from .evaluation import EvaluationCoordinator
from .generation import GenerationCoordinator
from .models import DEFAULT_CATALOG, ModelCatalog
from .ranking import ArbiterRanker
from .records import EvaluationRecord, GeneratedResponse, PipelineResult, Prompt

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    EVALUATING = "evaluating"
    AGGREGATING = "aggregating"
    RANKING = "ranking"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineFailure:
    """A run that stopped early, with whatever the earlier stages produced."""

    error: PipelineError
    stage: PipelineState
    prompt: Prompt
    selected_model_ids: tuple[str, ...]
    responses: tuple[GeneratedResponse, ...] = ()
    evaluations: tuple[EvaluationRecord, ...] = ()
    top_three: tuple[str, ...] = ()
    mean_scores: dict[str, float] = field(default_factory=dict)

    ok = False

    @property
    def kind(self):
        return self.error.kind

    def to_dict(self) -> dict:
        return {
            "error": self.error.to_dict(),
            "stage": self.stage.value,
            "selectedModels": list(self.selected_model_ids),
            "responses": [r.to_dict() for r in self.responses],
            "evaluations": [e.to_dict() for e in self.evaluations],
            "meanScores": dict(self.mean_scores),
            "topThree": list(self.top_three),
        }


class _Run:
    """Per-run state; never shared between runs."""

    def __init__(self, prompt, model_ids, on_state):
        self.prompt = prompt
        self.model_ids = tuple(model_ids)
        self.on_state = on_state
        self.state = PipelineState.IDLE
        self.responses = ()
        self.evaluations = ()
        self.top_three = ()
        self.mean_scores = {}

    def advance(self, state: PipelineState):
        logger.debug("Run state %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_state:
            self.on_state(state)

    def fail(self, error: PipelineError) -> PipelineFailure:
        stage = self.state
        logger.error("Run failed during %s: [%s] %s", stage.value, error.kind.value, error.message)
        self.advance(PipelineState.FAILED)
        return PipelineFailure(
            error=error, stage=stage, prompt=self.prompt, selected_model_ids=self.model_ids,
            responses=self.responses, evaluations=self.evaluations,
            top_three=self.top_three, mean_scores=dict(self.mean_scores),
        )


class PipelineController:
    def __init__(self, adapters: dict, catalog: ModelCatalog = DEFAULT_CATALOG,
                 arbiter_model_id: str | None = None, timeout: float = DEFAULT_TIMEOUT,
                 min_models: int = MIN_SELECTED_MODELS):
        self.catalog = catalog
        self.generator = GenerationCoordinator(adapters, catalog, timeout=timeout)
        self.evaluator = EvaluationCoordinator(adapters, catalog, timeout=timeout)
        self.aggregator = ScoreAggregator()
        self.ranker = ArbiterRanker(adapters, catalog, arbiter_model_id=arbiter_model_id, timeout=timeout)
        self.min_models = min_models

    async def run(self, prompt: Prompt, model_ids,
                  on_state: Callable[[PipelineState], None] | None = None) -> PipelineResult | PipelineFailure:
        """Run all stages. Returns a PipelineResult, or a PipelineFailure carrying partial results."""
        run = _Run(prompt, model_ids or (), on_state)
        start = time.time()

        run.advance(PipelineState.GENERATING)
        try:
            prompt.validate()
            # Unknown ids do not count towards the minimum; repeated ids are rejected
            recognized = self.catalog.resolve(run.model_ids)
            if not recognized:
                raise InvalidInput("None of the selected models is in the catalog")
            if len(recognized) < self.min_models:
                raise InvalidInput(f"Select at least {self.min_models} known models (got {len(recognized)})")
            run.responses = await self.generator.generate(prompt, run.model_ids)
        except InvalidInput as e:
            return run.fail(e)

        run.advance(PipelineState.EVALUATING)
        run.evaluations = await self.evaluator.evaluate(prompt, run.responses, run.model_ids)

        run.advance(PipelineState.AGGREGATING)
        try:
            aggregate = self.aggregator.aggregate(run.responses, run.evaluations)
        except PipelineError as e:
            return run.fail(e)
        run.top_three = aggregate.top_three
        run.mean_scores = aggregate.mean_scores

        run.advance(PipelineState.RANKING)
        try:
            ranking = await self.ranker.rank(prompt, aggregate.top_three_responses)
        except PipelineError as e:
            return run.fail(e)

        run.advance(PipelineState.COMPLETE)
        logger.info("Run complete in %s", format_duration(time.time() - start))
        return PipelineResult(
            prompt=prompt,
            selected_model_ids=run.model_ids,
            responses=run.responses,
            evaluations=run.evaluations,
            top_three=run.top_three,
            ranking=ranking,
            mean_scores=dict(run.mean_scores),
        )
