"""
models.py - Model catalog for CrossRank
"""

from .errors import InvalidInput
from .records import ModelDescriptor, Vendor

# vision: whether the model accepts image parts alongside the prompt text
ALL_MODELS = [
    {"provider": "openai", "model_id": "gpt-4o", "name": "GPT-4o", "vision": True},
    {"provider": "openai", "model_id": "gpt-4-turbo", "name": "GPT-4 Turbo", "vision": True},
    {"provider": "openai", "model_id": "gpt-3.5-turbo", "name": "GPT-3.5 Turbo", "vision": False},
    {"provider": "anthropic", "model_id": "claude-3-5-sonnet-20241022", "name": "Claude 3.5 Sonnet", "vision": True},
    {"provider": "anthropic", "model_id": "claude-3-opus-20240229", "name": "Claude 3 Opus", "vision": True},
    {"provider": "anthropic", "model_id": "claude-3-haiku-20240307", "name": "Claude 3 Haiku", "vision": True},
    {"provider": "google", "model_id": "gemini-1.5-pro", "name": "Gemini 1.5 Pro", "vision": True},
    {"provider": "google", "model_id": "gemini-1.5-flash", "name": "Gemini 1.5 Flash", "vision": True},
    {"provider": "mistral", "model_id": "mistral-large-latest", "name": "Mistral Large", "vision": False},
    {"provider": "mistral", "model_id": "pixtral-large-latest", "name": "Pixtral Large", "vision": True},
]


class ModelCatalog:
    """Read-only lookup from model id to its descriptor."""

    def __init__(self, models: list[dict] | None = None):
        entries = ALL_MODELS if models is None else models
        self._models = {}
        for m in entries:
            descriptor = ModelDescriptor(
                id=m["model_id"], display_name=m["name"],
                vendor=Vendor(m["provider"]), supports_vision=bool(m.get("vision", False)))
            self._models[descriptor.id] = descriptor

    def get(self, model_id: str) -> ModelDescriptor | None:
        return self._models.get(model_id)

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    def all(self) -> list[ModelDescriptor]:
        return list(self._models.values())

    def resolve(self, model_ids) -> list[ModelDescriptor]:
        """Descriptors for the recognized ids, in input order. Unknown ids are skipped.

        Raises InvalidInput if an id appears more than once.
        """
        model_ids = list(model_ids)
        repeated = sorted({m for m in model_ids if model_ids.count(m) > 1})
        if repeated:
            raise InvalidInput(f"Model ids selected more than once: {', '.join(repeated)}")
        return [self._models[m] for m in model_ids if m in self._models]

    def vendors(self) -> set[Vendor]:
        return {m.vendor for m in self._models.values()}


DEFAULT_CATALOG = ModelCatalog()
