"""Shared fixtures: a small catalog and a scripted stand-in for the vendor adapters."""

import asyncio
import json

import pytest

from crossrank.models import ModelCatalog
from crossrank.records import GeneratedResponse, Prompt, Vendor

TEST_MODELS = [
    {"provider": "openai", "model_id": "model-a", "name": "Model A", "vision": True},
    {"provider": "anthropic", "model_id": "model-b", "name": "Model B", "vision": True},
    {"provider": "google", "model_id": "model-c", "name": "Model C", "vision": True},
    {"provider": "mistral", "model_id": "model-d", "name": "Model D", "vision": False},
    {"provider": "openai", "model_id": "model-e", "name": "Model E", "vision": False},
    {"provider": "google", "model_id": "arbiter", "name": "Arbiter", "vision": True},
]

MODEL_IDS = ["model-a", "model-b", "model-c", "model-d"]


class FakeAdapter:
    """Answers by model id and by the role implied by the prompt.

    Each script maps a model id to a reply string, an exception instance to
    raise, or a callable taking the Prompt. Unscripted models answer with a
    fixed text (generation) or an empty array (evaluation).
    """

    def __init__(self, generate=None, evaluate=None, rank=None, delay=None):
        self.scripts = {"generate": generate or {}, "evaluate": evaluate or {}, "rank": rank or {}}
        self.delay = delay or {}
        self.calls = []

    @staticmethod
    def role(prompt: Prompt) -> str:
        if '"responseIndex"' in prompt.text:
            return "evaluate"
        if '"ranking"' in prompt.text:
            return "rank"
        return "generate"

    async def generate(self, model, prompt, *, max_tokens=1000, temperature=None):
        role = self.role(prompt)
        self.calls.append({"model": model.id, "role": role, "prompt": prompt, "temperature": temperature})
        if model.id in self.delay:
            await asyncio.sleep(self.delay[model.id])

        reply = self.scripts[role].get(model.id)
        if reply is None:
            return f"Answer from {model.id}" if role == "generate" else "[]"
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply

    def calls_for(self, role: str) -> list:
        return [c for c in self.calls if c["role"] == role]


def evaluation_reply(*scores) -> str:
    """JSON array scoring response indexes 0..n-1 with the given scores."""
    return json.dumps([{"responseIndex": i, "score": s, "reasoning": f"score {s}"} for i, s in enumerate(scores)])


def adapters_for(fake: FakeAdapter) -> dict:
    return {vendor: fake for vendor in Vendor}


@pytest.fixture
def catalog():
    return ModelCatalog(TEST_MODELS)


@pytest.fixture
def prompt():
    return Prompt("What is the capital of France?")


@pytest.fixture
def responses():
    return tuple(
        GeneratedResponse(model_id=m, display_name=f"Model {m[-1].upper()}", text=f"Answer from {m}")
        for m in MODEL_IDS
    )
