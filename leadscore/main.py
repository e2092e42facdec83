import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging

from leadscore.api.v1.router import router as api_v1_router
from leadscore.core.exceptions import (
    ConcurrencyConflictError,
    ContactNotFoundError,
    InvalidConditionError,
    PersistenceError,
    ScoringModelNotFoundError,
    ScoringRuleNotFoundError,
    ValidationError,
)
from leadscore.core.config import settings as app_settings
from leadscore.core.database import AsyncSessionLocal
from leadscore.core.rate_limit import limiter
from leadscore.services.decay_scheduler import DecayScheduler, start_decay_loop
from leadscore.services.lead_scoring import ScoringEngine
from leadscore.services.notifier import StreamStatusChangeNotifier

# Configure logging
logging.basicConfig(level=app_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application-level background tasks."""
    decay_task = None
    if app_settings.DECAY_ENABLED:
        engine = ScoringEngine(
            session_factory=AsyncSessionLocal,
            notifier=StreamStatusChangeNotifier(),
        )
        scheduler = DecayScheduler(session_factory=AsyncSessionLocal, engine=engine)
        decay_task = asyncio.create_task(start_decay_loop(scheduler))
        logger.info("Background decay task scheduled")
    yield
    # Shutdown: cancel the background task
    if decay_task is not None:
        decay_task.cancel()
        try:
            await decay_task
        except asyncio.CancelledError:
            logger.info("Background decay task stopped")


app = FastAPI(
    title="Lead Scoring Engine",
    description="Rule-driven lead scoring with cooldowns, decay and qualification thresholds",
    version="0.1.0",
    lifespan=lifespan,
)

# Attach rate limiter state so slowapi middleware can find it
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware, restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in app_settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.exception_handler(ContactNotFoundError)
async def contact_not_found_handler(request: Request, exc: ContactNotFoundError):
    logger.warning("Contact not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "contact_not_found"},
    )


@app.exception_handler(ScoringModelNotFoundError)
async def scoring_model_not_found_handler(
    request: Request, exc: ScoringModelNotFoundError
):
    logger.warning("Scoring model not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "scoring_model_not_found"},
    )


@app.exception_handler(ScoringRuleNotFoundError)
async def scoring_rule_not_found_handler(
    request: Request, exc: ScoringRuleNotFoundError
):
    logger.warning("Scoring rule not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "scoring_rule_not_found"},
    )


@app.exception_handler(InvalidConditionError)
async def invalid_condition_handler(request: Request, exc: InvalidConditionError):
    logger.warning("Invalid rule condition: %s", exc.detail)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.detail, "type": "invalid_condition"},
    )


@app.exception_handler(ValidationError)
async def scoring_validation_handler(request: Request, exc: ValidationError):
    logger.warning("Invalid scoring input: %s", exc.detail)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.detail, "type": "invalid_scoring_input"},
    )


@app.exception_handler(ConcurrencyConflictError)
async def concurrency_conflict_handler(
    request: Request, exc: ConcurrencyConflictError
):
    logger.warning("Concurrency conflict: %s", exc.detail)
    return JSONResponse(
        status_code=409,
        content={"detail": exc.detail, "type": "concurrency_conflict"},
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Score store unavailable: %s", exc.detail)
    return JSONResponse(
        status_code=503,
        content={"detail": exc.detail, "type": "persistence_error"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Request validation error: %s", exc.errors())
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": jsonable_errors(exc),
            "type": "validation_error",
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Return validation errors with non-JSON ``ctx`` values stringified."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected/unhandled exceptions.

    Returns a generic 500 response so that raw stack traces are never
    leaked to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected internal error occurred. Please try again later.",
            "type": "internal_server_error",
        },
    )
