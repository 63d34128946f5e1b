"""
errors.py - Error taxonomy for CrossRank runs
"""

from enum import Enum


class ErrorKind(str, Enum):
    TRANSPORT_FAILURE = "transport_failure"
    MALFORMED_OUTPUT = "malformed_output"
    NO_SCORED_MODELS = "no_scored_models"
    INVALID_INPUT = "invalid_input"


class PipelineError(Exception):
    """Base class for every failure a stage can report to its caller."""

    kind: ErrorKind

    def __init__(self, message: str, model_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.model_id = model_id

    def to_dict(self) -> dict:
        data = {"kind": self.kind.value, "message": self.message}
        if self.model_id:
            data["modelId"] = self.model_id
        return data


class TransportFailure(PipelineError):
    """Adapter call failed (network, auth, rate limit, timeout)."""

    kind = ErrorKind.TRANSPORT_FAILURE


class MalformedOutput(PipelineError):
    """Model reply could not be read as the demanded JSON shape."""

    kind = ErrorKind.MALFORMED_OUTPUT

    def __init__(self, message: str, model_id: str | None = None, raw: str = ""):
        super().__init__(message, model_id)
        self.raw = raw


class NoScoredModels(PipelineError):
    """No target model received a single valid score."""

    kind = ErrorKind.NO_SCORED_MODELS


class InvalidInput(PipelineError):
    """Request rejected before any external call was made."""

    kind = ErrorKind.INVALID_INPUT
