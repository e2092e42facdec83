"""Score event, adjustment, outcome and ledger schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from leadscore.core.constants import (
    DESCRIPTION_MAX_LENGTH,
    HISTORY_MAX_LIMIT,
    REASON_MAX_LENGTH,
    RELATED_ID_MAX_LENGTH,
    RELATED_TYPE_MAX_LENGTH,
    SCORE_MAX,
    SCORE_MIN,
)
from leadscore.schemas.common import (
    ContactStatus,
    ScoringEventType,
    SkipReason,
    SuccessResponse,
)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ScoreEventRequest(BaseModel):
    """Request body for POST /api/v1/scoring/events."""

    contact_id: UUID
    event_type: ScoringEventType
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    related_type: Optional[str] = Field(None, max_length=RELATED_TYPE_MAX_LENGTH)
    related_id: Optional[str] = Field(None, max_length=RELATED_ID_MAX_LENGTH)
    context: Dict[str, Any] = Field(default_factory=dict)


class ScoreAdjustRequest(BaseModel):
    """Request body for POST /api/v1/scoring/adjustments."""

    contact_id: UUID
    points: int = Field(..., ge=SCORE_MIN, le=SCORE_MAX)
    reason: str = Field(..., min_length=1, max_length=REASON_MAX_LENGTH)


class BulkScoreAdjustRequest(BaseModel):
    """Request body for POST /api/v1/scoring/adjustments/bulk."""

    contact_ids: List[UUID] = Field(..., min_length=1, max_length=HISTORY_MAX_LIMIT)
    points: int = Field(..., ge=SCORE_MIN, le=SCORE_MAX)
    reason: str = Field(..., min_length=1, max_length=REASON_MAX_LENGTH)


class StatusResetRequest(BaseModel):
    """Request body for POST /api/v1/scoring/contacts/{contact_id}/status-reset."""

    status: ContactStatus
    reason: str = Field(..., min_length=1, max_length=REASON_MAX_LENGTH)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AppliedRule(BaseModel):
    rule_id: UUID
    rule_name: str
    points: int
    occurrence_index: int
    ledger_entry_id: int
    decay_at: Optional[datetime] = None


class SkippedRule(BaseModel):
    rule_id: UUID
    rule_name: str
    reason: SkipReason


class ScoreOutcome(BaseModel):
    """Result of any operation that touches a contact's score state."""

    contact_id: UUID
    event_type: Optional[ScoringEventType] = None
    model_id: Optional[UUID] = None
    applied_rules: List[AppliedRule] = Field(default_factory=list)
    skipped_rules: List[SkippedRule] = Field(default_factory=list)
    total_delta: int = 0
    previous_score: int
    new_score: int
    previous_status: ContactStatus
    status: ContactStatus
    transitioned: bool = False


class BulkAdjustItem(BaseModel):
    contact_id: UUID
    success: bool
    outcome: Optional[ScoreOutcome] = None
    error: Optional[str] = None


class BulkAdjustResponse(SuccessResponse):
    results: List[BulkAdjustItem]
    succeeded: int
    failed: int


class ScoreHistoryEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entry_id: int
    contact_id: UUID
    delta: int
    reason: str
    rule_id: Optional[UUID] = None
    event_type: Optional[str] = None
    description: Optional[str] = None
    related_type: Optional[str] = None
    related_id: Optional[str] = None
    previous_score: int
    new_score: int
    created_at: datetime
    decay_at: Optional[datetime] = None
    decay_points: Optional[int] = None
    decayed: bool = False
    reverses_entry_id: Optional[int] = None


class ScoreHistoryResponse(SuccessResponse):
    contact_id: UUID
    entries: List[ScoreHistoryEntryOut]


class DecayRunResponse(SuccessResponse):
    contacts_processed: int
    entries_decayed: int
    failures: int
