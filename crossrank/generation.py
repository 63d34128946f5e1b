"""
generation.py - Fan a prompt out to the selected models
"""

import asyncio
import logging
import time

from .config import (
    DEFAULT_TIMEOUT, MAX_TOKENS_GENERATE, TEMPERATURE_GENERATE, EMPTY_RESPONSE_TEXT,
    sentinel_text, format_duration,
)
from .errors import InvalidInput
from .models import DEFAULT_CATALOG, ModelCatalog
from .records import GeneratedResponse, ModelDescriptor, Prompt

logger = logging.getLogger(__name__)


class GenerationCoordinator:
    """One GeneratedResponse per recognized model id, in input order.

    A failed call never fails the stage: the model's response text becomes the
    sentinel error string instead.
    """

    def __init__(self, adapters: dict, catalog: ModelCatalog = DEFAULT_CATALOG,
                 timeout: float = DEFAULT_TIMEOUT, max_tokens: int = MAX_TOKENS_GENERATE):
        self.adapters = adapters
        self.catalog = catalog
        self.timeout = timeout
        self.max_tokens = max_tokens

    async def _generate_one(self, model: ModelDescriptor, prompt: Prompt) -> GeneratedResponse:
        # Non-vision models get the text alone
        model_prompt = prompt if model.supports_vision else prompt.text_only()
        adapter = self.adapters.get(model.vendor)
        if adapter is None:
            logger.warning("%s: no adapter configured for %s", model.id, model.vendor.value)
            return GeneratedResponse(model_id=model.id, display_name=model.display_name,
                                     text=sentinel_text(model.display_name))
        try:
            text = await asyncio.wait_for(
                adapter.generate(model, model_prompt, max_tokens=self.max_tokens, temperature=TEMPERATURE_GENERATE),
                self.timeout)
            text = text or EMPTY_RESPONSE_TEXT
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %ss", model.id, self.timeout)
            text = sentinel_text(model.display_name)
        except Exception as e:
            logger.warning("%s failed: %s: %s", model.id, type(e).__name__, str(e)[:200])
            text = sentinel_text(model.display_name)
        return GeneratedResponse(model_id=model.id, display_name=model.display_name, text=text)

    async def generate(self, prompt: Prompt, model_ids) -> tuple[GeneratedResponse, ...]:
        prompt.validate()
        model_ids = list(model_ids or [])
        if not model_ids:
            raise InvalidInput("At least one model id is required")

        models = self.catalog.resolve(model_ids)
        skipped = len(model_ids) - len(models)
        logger.info("Generating with %d models%s", len(models), f" ({skipped} unknown skipped)" if skipped else "")

        start = time.time()
        responses = await asyncio.gather(*[self._generate_one(m, prompt) for m in models])
        logger.info("Generation complete: %d responses in %s", len(responses), format_duration(time.time() - start))
        return tuple(responses)
