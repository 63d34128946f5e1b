"""
records.py - Immutable records passed between pipeline stages
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from .errors import InvalidInput


class Vendor(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    MISTRAL = "mistral"


@dataclass(frozen=True)
class Prompt:
    text: str
    images: tuple[str, ...] = ()

    def __post_init__(self):
        # Accept any sequence from callers, store a tuple
        object.__setattr__(self, "images", tuple(self.images or ()))

    @property
    def has_images(self) -> bool:
        return bool(self.images)

    def text_only(self) -> "Prompt":
        return self if not self.images else replace(self, images=())

    def validate(self) -> "Prompt":
        if not isinstance(self.text, str) or not self.text.strip():
            raise InvalidInput("Prompt text is missing or empty")
        if any(not isinstance(img, str) or not img for img in self.images):
            raise InvalidInput("Prompt images must be non-empty encoded strings")
        return self

    def to_dict(self) -> dict:
        return {"text": self.text, "images": list(self.images)}


@dataclass(frozen=True)
class ModelDescriptor:
    id: str
    display_name: str
    vendor: Vendor
    supports_vision: bool = False

    def to_dict(self) -> dict:
        return {"id": self.id, "displayName": self.display_name,
                "vendor": self.vendor.value, "supportsVision": self.supports_vision}


@dataclass(frozen=True)
class GeneratedResponse:
    model_id: str
    display_name: str
    text: str
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {"modelId": self.model_id, "displayName": self.display_name,
                "text": self.text, "createdAt": self.created_at.isoformat()}


@dataclass(frozen=True)
class EvaluationRecord:
    evaluator_model_id: str
    target_model_id: str
    score: float
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {"evaluatorModelId": self.evaluator_model_id, "targetModelId": self.target_model_id,
                "score": self.score, "reasoning": self.reasoning}


@dataclass(frozen=True)
class RankingOutcome:
    ordered_model_ids: tuple[str, ...]
    reasoning: str = ""

    def to_dict(self) -> dict:
        return {"ranking": list(self.ordered_model_ids), "reasoning": self.reasoning}


@dataclass(frozen=True)
class AggregateScores:
    """Output of score aggregation: per-target means and the top-three selection."""

    mean_scores: dict[str, float]
    top_three: tuple[str, ...]
    top_three_responses: tuple[GeneratedResponse, ...]


@dataclass(frozen=True)
class PipelineResult:
    prompt: Prompt
    selected_model_ids: tuple[str, ...]
    responses: tuple[GeneratedResponse, ...]
    evaluations: tuple[EvaluationRecord, ...]
    top_three: tuple[str, ...]
    ranking: RankingOutcome
    mean_scores: dict[str, float] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=datetime.now)
    user_choice: str | None = None

    ok = True

    def with_user_choice(self, model_id: str) -> "PipelineResult":
        """Return a copy with the user's preferred response attached."""
        if model_id not in {r.model_id for r in self.responses}:
            raise InvalidInput(f"Unknown user choice: {model_id}", model_id=model_id)
        return replace(self, user_choice=model_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.created_at.isoformat(),
            "prompt": self.prompt.to_dict(),
            "selectedModels": list(self.selected_model_ids),
            "responses": [r.to_dict() for r in self.responses],
            "evaluations": [e.to_dict() for e in self.evaluations],
            "meanScores": dict(self.mean_scores),
            "topThree": list(self.top_three),
            "arbiterRanking": list(self.ranking.ordered_model_ids),
            "arbiterReasoning": self.ranking.reasoning,
            "userChoice": self.user_choice,
        }
