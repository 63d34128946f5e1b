"""
CrossRank - Cross-vendor LLM comparison by peer evaluation

Selected models answer one prompt, score each other's answers, and the three
best-scored answers are ordered by a designated arbiter model.
"""

from . import config  # noqa: F401
from . import models  # noqa: F401
from . import providers  # noqa: F401
from .errors import ErrorKind, InvalidInput, MalformedOutput, NoScoredModels, PipelineError, TransportFailure
from .pipeline import PipelineController, PipelineFailure, PipelineState
from .records import EvaluationRecord, GeneratedResponse, PipelineResult, Prompt, RankingOutcome

__all__ = [
    "config", "models", "providers",
    "ErrorKind", "PipelineError", "TransportFailure", "MalformedOutput", "NoScoredModels", "InvalidInput",
    "PipelineController", "PipelineFailure", "PipelineState",
    "Prompt", "GeneratedResponse", "EvaluationRecord", "RankingOutcome", "PipelineResult",
]
__version__ = "1.0.0"
