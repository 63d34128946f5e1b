"""
api.py - HTTP endpoints for the three pipeline stages

Run with: crossrank --serve  (or uvicorn crossrank.api:app)
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .aggregation import ScoreAggregator
from .config import DEFAULT_TIMEOUT, MIN_SELECTED_MODELS, get_arbiter_model
from .errors import ErrorKind, PipelineError
from .evaluation import EvaluationCoordinator
from .generation import GenerationCoordinator
from .models import DEFAULT_CATALOG, ModelCatalog
from .pipeline import PipelineController
from .providers import build_adapters
from .ranking import ArbiterRanker
from .records import GeneratedResponse, Prompt

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.NO_SCORED_MODELS: 422,
    ErrorKind.MALFORMED_OUTPUT: 502,
    ErrorKind.TRANSPORT_FAILURE: 502,
}


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PromptModel(ApiModel):
    text: str
    images: List[str] = Field(default_factory=list)

    def to_record(self) -> Prompt:
        return Prompt(self.text, tuple(self.images))


class GeneratedResponseModel(ApiModel):
    model_id: str = Field(..., alias="modelId")
    display_name: str = Field(..., alias="displayName")
    text: str
    created_at: datetime = Field(default_factory=datetime.now, alias="createdAt")

    def to_record(self) -> GeneratedResponse:
        return GeneratedResponse(model_id=self.model_id, display_name=self.display_name,
                                 text=self.text, created_at=self.created_at)


class EvaluationRecordModel(ApiModel):
    evaluator_model_id: str = Field(..., alias="evaluatorModelId")
    target_model_id: str = Field(..., alias="targetModelId")
    score: float = Field(..., ge=1, le=10)
    reasoning: str = ""


class ModelDescriptorModel(ApiModel):
    id: str
    display_name: str = Field(..., alias="displayName")
    vendor: str
    supports_vision: bool = Field(..., alias="supportsVision")


class GenerateRequest(ApiModel):
    prompt: PromptModel
    model_ids: List[str] = Field(..., alias="modelIds")


class GenerateResponse(ApiModel):
    responses: List[GeneratedResponseModel]


class EvaluateRequest(ApiModel):
    prompt: PromptModel
    responses: List[GeneratedResponseModel]
    model_ids: List[str] = Field(..., alias="modelIds")


class EvaluateResponse(ApiModel):
    evaluations: List[EvaluationRecordModel]
    top_three: List[str] = Field(..., alias="topThree")
    top_three_responses: List[GeneratedResponseModel] = Field(..., alias="topThreeResponses")


class RankRequest(ApiModel):
    prompt: PromptModel
    top_three_responses: List[GeneratedResponseModel] = Field(..., alias="topThreeResponses")


class RankResponse(ApiModel):
    ranking: List[str]
    reasoning: str


class RunResponse(ApiModel):
    id: str
    timestamp: datetime
    prompt: PromptModel
    selected_models: List[str] = Field(..., alias="selectedModels")
    responses: List[GeneratedResponseModel]
    evaluations: List[EvaluationRecordModel]
    mean_scores: dict = Field(default_factory=dict, alias="meanScores")
    top_three: List[str] = Field(..., alias="topThree")
    arbiter_ranking: List[str] = Field(..., alias="arbiterRanking")
    arbiter_reasoning: str = Field("", alias="arbiterReasoning")
    user_choice: Optional[str] = Field(None, alias="userChoice")


class ModelListResponse(ApiModel):
    models: List[ModelDescriptorModel]
    arbiter: str
    total: int


def error_response(message: str, error: PipelineError, extra: dict | None = None) -> JSONResponse:
    content = {"error": message, "kind": error.kind.value, "detail": error.message}
    if extra:
        content.update(extra)
    return JSONResponse(status_code=STATUS_BY_KIND[error.kind], content=content)


def get_adapters(request: Request) -> dict:
    return request.app.state.adapters


def get_catalog(request: Request) -> ModelCatalog:
    return request.app.state.catalog


def create_app(adapters: dict | None = None, catalog: ModelCatalog | None = None,
               arbiter_model_id: str | None = None, timeout: float = DEFAULT_TIMEOUT) -> FastAPI:
    """Create the FastAPI application. Adapters default to one per vendor."""
    app = FastAPI(title="CrossRank", description="Cross-vendor LLM comparison by peer evaluation")
    app.state.adapters = adapters if adapters is not None else build_adapters(timeout=timeout)
    app.state.catalog = catalog or DEFAULT_CATALOG
    app.state.arbiter_model_id = arbiter_model_id
    app.state.timeout = timeout

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={
            "error": "Invalid request", "kind": ErrorKind.INVALID_INPUT.value,
            "detail": [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()],
        })

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/models", response_model=ModelListResponse)
    async def list_models(catalog: ModelCatalog = Depends(get_catalog)):
        models = [m.to_dict() for m in catalog.all()]
        arbiter = app.state.arbiter_model_id or get_arbiter_model()
        return {"models": models, "arbiter": arbiter, "total": len(models)}

    @app.post("/api/generate-responses", response_model=GenerateResponse)
    async def generate_responses(body: GenerateRequest, adapters: dict = Depends(get_adapters),
                                 catalog: ModelCatalog = Depends(get_catalog)):
        coordinator = GenerationCoordinator(adapters, catalog, timeout=app.state.timeout)
        try:
            responses = await coordinator.generate(body.prompt.to_record(), body.model_ids)
        except PipelineError as e:
            logger.error("Error in generate-responses: %s", e.message)
            return error_response("Failed to generate responses", e)
        return {"responses": [r.to_dict() for r in responses]}

    @app.post("/api/evaluate-responses", response_model=EvaluateResponse)
    async def evaluate_responses(body: EvaluateRequest, adapters: dict = Depends(get_adapters),
                                 catalog: ModelCatalog = Depends(get_catalog)):
        coordinator = EvaluationCoordinator(adapters, catalog, timeout=app.state.timeout)
        responses = [r.to_record() for r in body.responses]
        try:
            evaluations = await coordinator.evaluate(body.prompt.to_record(), responses, body.model_ids)
            aggregate = ScoreAggregator().aggregate(responses, evaluations)
        except PipelineError as e:
            logger.error("Error in evaluate-responses: %s", e.message)
            return error_response("Failed to evaluate responses", e)
        return {
            "evaluations": [e.to_dict() for e in evaluations],
            "topThree": list(aggregate.top_three),
            "topThreeResponses": [r.to_dict() for r in aggregate.top_three_responses],
        }

    @app.post("/api/final-ranking", response_model=RankResponse)
    async def final_ranking(body: RankRequest, adapters: dict = Depends(get_adapters),
                            catalog: ModelCatalog = Depends(get_catalog)):
        ranker = ArbiterRanker(adapters, catalog, arbiter_model_id=app.state.arbiter_model_id,
                               timeout=app.state.timeout)
        try:
            outcome = await ranker.rank(body.prompt.to_record(), [r.to_record() for r in body.top_three_responses])
        except PipelineError as e:
            logger.error("Error in final-ranking: %s", e.message)
            return error_response("Failed to generate final ranking", e)
        return outcome.to_dict()

    @app.post("/api/run", response_model=RunResponse)
    async def run_pipeline(body: GenerateRequest, adapters: dict = Depends(get_adapters),
                           catalog: ModelCatalog = Depends(get_catalog)):
        controller = PipelineController(adapters, catalog, arbiter_model_id=app.state.arbiter_model_id,
                                        timeout=app.state.timeout, min_models=MIN_SELECTED_MODELS)
        result = await controller.run(body.prompt.to_record(), body.model_ids)
        if not result.ok:
            return error_response("Failed to run comparison", result.error, {"partial": result.to_dict()})
        return result.to_dict()

    return app


app = create_app()
