"""
ranking.py - Final ordering of the top three by the arbiter model
"""

import asyncio
import logging
import time

from .config import DEFAULT_TIMEOUT, MAX_TOKENS_RANK, TEMPERATURE_RANK, get_arbiter_model, format_duration
from .errors import InvalidInput, MalformedOutput, TransportFailure
from .models import DEFAULT_CATALOG, ModelCatalog
from .parsing import coerce_index, parse_json_object
from .records import Prompt, RankingOutcome

logger = logging.getLogger(__name__)

RANK_SIZE = 3

RANKING_PROMPT = """You are an expert AI evaluator. You must rank these 3 responses to the following prompt from best to worst:

Original Prompt: "{prompt}"
{responses}

Analyze each response based on:
- Accuracy and correctness
- Clarity and coherence
- Completeness
- Relevance to the prompt
- Overall quality

Return ONLY a JSON object with this exact format:
{{
  "ranking": [0, 1, 2],
  "reasoning": "brief explanation of your ranking decision"
}}

The "ranking" array should contain the response indices (0, 1, 2) ordered from best to worst.
Important: Return ONLY the JSON object, no other text."""


def build_ranking_prompt(prompt_text: str, responses) -> str:
    lines = [f"\nResponse {i} (Model: {r.display_name}):\n{r.text}\n" for i, r in enumerate(responses)]
    return RANKING_PROMPT.format(prompt=prompt_text, responses="".join(lines))


def parse_ranking(reply: str, responses, arbiter_id: str | None = None) -> RankingOutcome:
    """Map the arbiter's index ranking back to model ids. Raises MalformedOutput."""
    data = parse_json_object(reply, model_id=arbiter_id)
    ranking = data.get("ranking")
    if not isinstance(ranking, list) or len(ranking) != len(responses):
        raise MalformedOutput(f"'ranking' must be a list of {len(responses)} indices",
                              model_id=arbiter_id, raw=reply)

    indices = [coerce_index(i, len(responses)) for i in ranking]
    if None in indices or sorted(indices) != list(range(len(responses))):
        raise MalformedOutput(f"'ranking' is not a permutation of 0..{len(responses) - 1}: {ranking}",
                              model_id=arbiter_id, raw=reply)

    reasoning = data.get("reasoning")
    return RankingOutcome(
        ordered_model_ids=tuple(responses[i].model_id for i in indices),
        reasoning=reasoning if isinstance(reasoning, str) else ("" if reasoning is None else str(reasoning)),
    )


class ArbiterRanker:
    """One call to the arbiter model; every failure here is fatal to the run."""

    def __init__(self, adapters: dict, catalog: ModelCatalog = DEFAULT_CATALOG,
                 arbiter_model_id: str | None = None, timeout: float = DEFAULT_TIMEOUT,
                 max_tokens: int = MAX_TOKENS_RANK):
        self.adapters = adapters
        self.catalog = catalog
        self.arbiter_model_id = arbiter_model_id or get_arbiter_model()
        self.timeout = timeout
        self.max_tokens = max_tokens

    async def rank(self, prompt: Prompt, top_three_responses) -> RankingOutcome:
        prompt.validate()
        responses = tuple(top_three_responses or ())
        if len(responses) != RANK_SIZE:
            raise InvalidInput(f"Ranking needs exactly {RANK_SIZE} responses, got {len(responses)}")
        if len({r.model_id for r in responses}) != RANK_SIZE:
            raise InvalidInput("Ranking responses must come from distinct models")

        arbiter = self.catalog.get(self.arbiter_model_id)
        if arbiter is None:
            raise InvalidInput(f"Unknown arbiter model: {self.arbiter_model_id}", model_id=self.arbiter_model_id)
        adapter = self.adapters.get(arbiter.vendor)
        if adapter is None:
            raise TransportFailure(f"No adapter configured for {arbiter.vendor.value}", model_id=arbiter.id)

        ranking_prompt = Prompt(build_ranking_prompt(prompt.text, responses))
        logger.info("Requesting final ranking from %s", arbiter.display_name)

        start = time.time()
        try:
            reply = await asyncio.wait_for(
                adapter.generate(arbiter, ranking_prompt, max_tokens=self.max_tokens, temperature=TEMPERATURE_RANK),
                self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportFailure(f"Arbiter timed out after {self.timeout}s", model_id=arbiter.id) from e
        except TransportFailure:
            raise
        except Exception as e:
            raise TransportFailure(f"{type(e).__name__}: {str(e)[:200]}", model_id=arbiter.id) from e

        outcome = parse_ranking(reply, responses, arbiter.id)
        logger.info("Final ranking in %s: %s", format_duration(time.time() - start),
                    " > ".join(outcome.ordered_model_ids))
        return outcome
