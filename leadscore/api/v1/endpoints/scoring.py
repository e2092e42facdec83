from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from leadscore.core.config import settings
from leadscore.core.constants import HISTORY_DEFAULT_LIMIT, HISTORY_MAX_LIMIT
from leadscore.core.rate_limit import limiter
from leadscore.schemas.score import (
    BulkAdjustResponse,
    BulkScoreAdjustRequest,
    DecayRunResponse,
    ScoreAdjustRequest,
    ScoreEventRequest,
    ScoreHistoryResponse,
    ScoreOutcome,
    StatusResetRequest,
)
from leadscore.services.decay_scheduler import DecayScheduler
from leadscore.services.lead_scoring import ScoringEngine
from leadscore.api.deps import get_decay_scheduler, get_scoring_engine

router = APIRouter(prefix="/scoring", tags=["Scoring"])


@router.post("/events", response_model=ScoreOutcome)
@limiter.limit(settings.EVENTS_RATE_LIMIT)
async def process_event(
    request: Request,
    request_body: ScoreEventRequest,
    engine: ScoringEngine = Depends(get_scoring_engine),
) -> ScoreOutcome:
    """Score one business event for a contact.

    Rate-limited per client IP.  A contact whose model has no rule for
    the event type gets an unchanged outcome, not an error.
    """
    return await engine.process_event(
        contact_id=request_body.contact_id,
        event_type=request_body.event_type,
        description=request_body.description,
        related_type=request_body.related_type,
        related_id=request_body.related_id,
        context=request_body.context,
    )


@router.post("/adjustments", response_model=ScoreOutcome)
async def adjust_score(
    request_body: ScoreAdjustRequest,
    engine: ScoringEngine = Depends(get_scoring_engine),
) -> ScoreOutcome:
    """Apply a manual, rule-less score adjustment."""
    return await engine.adjust_score(
        request_body.contact_id, request_body.points, request_body.reason
    )


@router.post("/adjustments/bulk", response_model=BulkAdjustResponse)
async def bulk_adjust(
    request_body: BulkScoreAdjustRequest,
    engine: ScoringEngine = Depends(get_scoring_engine),
) -> BulkAdjustResponse:
    results = await engine.bulk_adjust(
        request_body.contact_ids, request_body.points, request_body.reason
    )
    succeeded = sum(1 for item in results if item.success)
    return BulkAdjustResponse(
        results=results,
        succeeded=succeeded,
        failed=len(results) - succeeded,
    )


@router.get("/contacts/{contact_id}/history", response_model=ScoreHistoryResponse)
async def get_history(
    contact_id: UUID,
    limit: int = Query(HISTORY_DEFAULT_LIMIT, ge=1, le=HISTORY_MAX_LIMIT),
    engine: ScoringEngine = Depends(get_scoring_engine),
) -> ScoreHistoryResponse:
    """Return the contact's score ledger, most recent first."""
    entries = await engine.get_history(contact_id, limit=limit)
    return ScoreHistoryResponse(contact_id=contact_id, entries=entries)


@router.post("/contacts/{contact_id}/recalculate", response_model=ScoreOutcome)
async def recalculate_score(
    contact_id: UUID,
    engine: ScoringEngine = Depends(get_scoring_engine),
) -> ScoreOutcome:
    """Rebuild the cached score from the ledger."""
    return await engine.recalculate_score(contact_id)


@router.post("/contacts/{contact_id}/status-reset", response_model=ScoreOutcome)
async def reset_status(
    contact_id: UUID,
    request_body: StatusResetRequest,
    engine: ScoringEngine = Depends(get_scoring_engine),
) -> ScoreOutcome:
    """Force a contact's status; the only way to move it backwards."""
    return await engine.reset_status(
        contact_id, request_body.status, request_body.reason
    )


@router.post("/decay/run", response_model=DecayRunResponse)
async def run_decay(
    scheduler: DecayScheduler = Depends(get_decay_scheduler),
) -> DecayRunResponse:
    """Run a decay pass now instead of waiting for the scheduler."""
    result = await scheduler.run_once()
    return DecayRunResponse(
        contacts_processed=result.contacts_processed,
        entries_decayed=result.entries_decayed,
        failures=result.failures,
    )
