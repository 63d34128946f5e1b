"""
evaluation.py - Cross-evaluation of generated responses
"""

import asyncio
import logging
import time

from .config import DEFAULT_TIMEOUT, MAX_TOKENS_EVAL, TEMPERATURE_EVAL, format_duration
from .errors import InvalidInput
from .models import DEFAULT_CATALOG, ModelCatalog
from .parsing import coerce_index, coerce_score, parse_json_array
from .records import EvaluationRecord, GeneratedResponse, ModelDescriptor, Prompt

logger = logging.getLogger(__name__)

EVAL_PROMPT = """You are an expert evaluator of AI responses. Please evaluate the following responses to this prompt:

Original Prompt: "{prompt}"
{responses}

For each response, provide a score from 1-10 based on:
- Quality and accuracy
- Clarity and coherence
- Relevance to the prompt
- Completeness

Return ONLY a JSON array with this exact format:
[
  {{"responseIndex": 0, "score": 8.5, "reasoning": "brief explanation"}},
  {{"responseIndex": 1, "score": 7.0, "reasoning": "brief explanation"}}
]

"responseIndex" is the number shown next to each response.
Important: Return ONLY the JSON array, no other text."""


def build_evaluation_prompt(prompt_text: str, responses) -> str:
    lines = [f"\nResponse {i} (from {r.display_name}):\n{r.text}\n" for i, r in enumerate(responses)]
    return EVAL_PROMPT.format(prompt=prompt_text, responses="".join(lines))


def parse_evaluation(reply: str, evaluator_id: str, responses) -> list[EvaluationRecord]:
    """Turn one evaluator's free-text reply into validated records.

    Unparseable replies produce no records; malformed elements are dropped
    one by one. Only the first score per response index is kept.
    """
    items = parse_json_array(reply)
    if items is None:
        logger.warning("%s: evaluation reply is not a JSON array (%d chars)", evaluator_id, len(reply or ""))
        return []

    records, seen, dropped = [], set(), 0
    for item in items:
        if not isinstance(item, dict):
            dropped += 1
            continue
        index = coerce_index(item.get("responseIndex"), len(responses))
        score = coerce_score(item.get("score"))
        if index is None or score is None or index in seen:
            dropped += 1
            continue
        seen.add(index)
        reasoning = item.get("reasoning")
        records.append(EvaluationRecord(
            evaluator_model_id=evaluator_id,
            target_model_id=responses[index].model_id,
            score=score,
            reasoning=reasoning if isinstance(reasoning, str) else ("" if reasoning is None else str(reasoning)),
        ))

    if dropped:
        logger.info("%s: dropped %d/%d malformed evaluation entries", evaluator_id, dropped, len(items))
    return records


class EvaluationCoordinator:
    """Every selected model scores every response, including its own."""

    def __init__(self, adapters: dict, catalog: ModelCatalog = DEFAULT_CATALOG,
                 timeout: float = DEFAULT_TIMEOUT, max_tokens: int = MAX_TOKENS_EVAL):
        self.adapters = adapters
        self.catalog = catalog
        self.timeout = timeout
        self.max_tokens = max_tokens

    async def _evaluate_one(self, model: ModelDescriptor, eval_prompt: Prompt, responses) -> list[EvaluationRecord]:
        adapter = self.adapters.get(model.vendor)
        if adapter is None:
            logger.warning("%s: no adapter configured for %s", model.id, model.vendor.value)
            return []
        try:
            reply = await asyncio.wait_for(
                adapter.generate(model, eval_prompt, max_tokens=self.max_tokens, temperature=TEMPERATURE_EVAL),
                self.timeout)
            return parse_evaluation(reply, model.id, responses)
        except asyncio.TimeoutError:
            logger.warning("[evaluator %s] timed out after %ss", model.id, self.timeout)
            return []
        except Exception as e:
            logger.warning("[evaluator %s] %s: %s", model.id, type(e).__name__, str(e)[:200])
            return []

    async def evaluate(self, prompt: Prompt, responses, model_ids) -> tuple[EvaluationRecord, ...]:
        prompt.validate()
        responses = tuple(responses or ())
        if not responses:
            raise InvalidInput("No responses to evaluate")

        evaluators = self.catalog.resolve(model_ids or [])
        eval_prompt = Prompt(build_evaluation_prompt(prompt.text, responses))
        logger.info("Evaluating %d responses with %d evaluators", len(responses), len(evaluators))

        start = time.time()
        results = await asyncio.gather(*[self._evaluate_one(m, eval_prompt, responses) for m in evaluators])
        evaluations = tuple(record for records in results for record in records)

        silent = [m.id for m, records in zip(evaluators, results) if not records]
        if silent:
            logger.warning("No usable scores from: %s", ", ".join(silent))
        logger.info("Evaluation complete: %d records in %s", len(evaluations), format_duration(time.time() - start))
        return evaluations
