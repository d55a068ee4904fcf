"""
Habit Saga Orchestrator - HTTP Entry Point
Check-in, goal creation, goal completion and panel endpoints.
"""

import logging
from typing import Any, Dict, Optional, Type, TypeVar

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from agents import GeminiNarrativeProvider, GeminiPanelArtist
from config import SagaConfiguration, create_default_config_from_env
from core.chapter_image import generate_chapter_image
from core.checkin_coordinator import CheckInCoordinator
from core.errors import CheckInError, DependencyError, StorageError, parse_error, validation_error
from core.goal_completion import GoalCompletionService
from core.goal_creation import GoalCreationService
from core.narrative_client import NarrativeGeneratorClient
from core.panel_orchestrator import PanelGenerationOrchestrator
from core.quota_ledger import evaluate_quota
from models import (
    CheckInRequest,
    CheckInResponse,
    CompleteGoalRequest,
    CompleteGoalResponse,
    CreateGoalRequest,
    CreateGoalResponse,
    ErrorResponse,
    GenerateChapterImageRequest,
    GenerateChapterImageResponse,
    PanelQuotaInfo,
)
from services import BackgroundTaskRunner, SupabaseSagaStore, configure_auth, get_current_user

load_dotenv()

# Configure logging for orchestrator
logger = logging.getLogger("orchestrator")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)

T = TypeVar("T", bound=BaseModel)


class SagaService:
    """
    Wires the store, AI providers and pipeline components together.
    One instance serves every request; it holds no per-check-in state.
    """

    def __init__(
        self,
        config: SagaConfiguration,
        store=None,
        narrative_provider=None,
        image_provider=None,
        background: Optional[BackgroundTaskRunner] = None,
    ):
        self.config = config
        self.store = store
        self.narrative_provider = narrative_provider
        self.image_provider = image_provider
        self.background = background or BackgroundTaskRunner()

        self.panel_orchestrator = PanelGenerationOrchestrator(store, image_provider)
        self.narrative_client = NarrativeGeneratorClient(narrative_provider, config.narrative_retry)
        self.coordinator = CheckInCoordinator(
            store,
            self.narrative_client,
            self.panel_orchestrator,
            chapter_index_attempts=config.chapter_index_attempts,
        )
        self.goal_creation = GoalCreationService(store, narrative_provider, self.panel_orchestrator, self.background)
        self.goal_completion = GoalCompletionService(
            store,
            narrative_provider,
            self.panel_orchestrator,
            chapter_index_attempts=config.chapter_index_attempts,
        )

    @classmethod
    def from_config(cls, config: SagaConfiguration) -> "SagaService":
        for problem in config.validate_settings():
            logger.warning(f"[from_config] {problem}")

        store = None
        if config.supabase:
            store = SupabaseSagaStore(
                config.supabase.url,
                config.supabase.service_role_key.get_secret_value(),
                panels_bucket=config.supabase.panels_bucket,
            )
            store.connect()
            secret = config.supabase.jwt_secret
            configure_auth(secret.get_secret_value() if secret else None)

        narrative_provider = None
        image_provider = None
        if config.gemini:
            narrative_provider = GeminiNarrativeProvider.from_config(config.gemini)
            image_provider = GeminiPanelArtist.from_config(config.gemini)

        return cls(config, store=store, narrative_provider=narrative_provider, image_provider=image_provider)

    @property
    def is_ready(self) -> bool:
        return self.store is not None

    async def shutdown(self) -> None:
        await self.background.drain()


# HTTP API
settings = create_default_config_from_env()

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

app = FastAPI(title="Habit Saga Orchestrator")

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "apikey", "x-client-info"],
)

saga_service: Optional[SagaService] = None


@app.exception_handler(CheckInError)
async def check_in_error_handler(request: Request, exc: CheckInError):
    if isinstance(exc, DependencyError) and exc.detail:
        logger.error(f"[{request.url.path}] {exc.code}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[{request.url.path}] Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal error",
            message="An unexpected error occurred",
            code="INTERNAL_ERROR",
        ).model_dump(),
    )


@app.on_event("startup")
async def startup():
    global saga_service
    saga_service = SagaService.from_config(settings)


@app.on_event("shutdown")
async def shutdown():
    global saga_service
    if saga_service:
        await saga_service.shutdown()


def require_service() -> SagaService:
    if saga_service is None or not saga_service.is_ready:
        raise DependencyError(
            "CONFIG_ERROR",
            "Server configuration error",
            detail="Supabase storage is not configured",
        )
    return saga_service


async def parse_body(request: Request, model: Type[T]) -> T:
    """Read the JSON body ourselves so bad JSON and bad shapes get distinct codes."""
    try:
        body = await request.json()
    except ValueError:
        raise parse_error("Invalid JSON in request body")
    if not isinstance(body, dict):
        raise validation_error("Request body must be a JSON object")
    try:
        return model.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise validation_error(f"{location}: {first.get('msg')}" if location else first.get("msg", "Invalid request"))


@app.get("/health")
async def health():
    ready = saga_service is not None and saga_service.is_ready
    return {
        "status": "ok" if ready else "degraded",
        "service": "habit-saga-orchestrator",
        "storage_configured": ready,
        "ai_configured": bool(saga_service and saga_service.narrative_provider),
    }


@app.post("/check-in", response_model=CheckInResponse)
@limiter.limit(settings.checkin_rate_limit)
async def check_in(request: Request) -> Dict[str, Any]:
    """Record a check-in and write the next chapter. Requires authentication."""
    service = require_service()
    user_id, _ = await get_current_user(request)
    payload = await parse_body(request, CheckInRequest)
    return await service.coordinator.check_in(user_id, payload)


@app.post("/create-goal-and-origin", response_model=CreateGoalResponse)
@limiter.limit("5/minute")
async def create_goal_and_origin(request: Request) -> Dict[str, Any]:
    """Create a goal with its habit plan and origin chapter. Requires authentication."""
    service = require_service()
    user_id, _ = await get_current_user(request)
    payload = await parse_body(request, CreateGoalRequest)
    return await service.goal_creation.create(user_id, payload)


@app.post("/complete-goal", response_model=CompleteGoalResponse)
@limiter.limit("5/minute")
async def complete_goal(request: Request) -> Dict[str, Any]:
    """Close the saga with a finale chapter and mark the goal completed. Requires authentication."""
    service = require_service()
    user_id, _ = await get_current_user(request)
    payload = await parse_body(request, CompleteGoalRequest)
    return await service.goal_completion.complete(user_id, payload)


@app.post("/generate-chapter-image", response_model=GenerateChapterImageResponse)
@limiter.limit("10/minute")
async def generate_chapter_image_endpoint(request: Request) -> Dict[str, Any]:
    """Generate the panel for an existing chapter. Requires authentication."""
    service = require_service()
    user_id, _ = await get_current_user(request)
    payload = await parse_body(request, GenerateChapterImageRequest)
    return await generate_chapter_image(service.store, service.panel_orchestrator, user_id, payload.chapter_id)


@app.get("/quota", response_model=PanelQuotaInfo)
@limiter.limit("30/minute")
async def get_quota(request: Request) -> PanelQuotaInfo:
    """Panel allowance for the caller."""
    service = require_service()
    user_id, _ = await get_current_user(request)
    try:
        user = await service.store.get_user(user_id)
        if user is None:
            raise DependencyError("USER_FETCH_ERROR", "Failed to fetch user record", detail=f"No user row for {user_id}")
        status = await evaluate_quota(service.store, user_id, user.subscription_tier)
    except StorageError as e:
        raise DependencyError("USER_FETCH_ERROR", "Failed to read panel usage", detail=str(e))
    return status.to_info()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
