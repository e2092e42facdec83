"""Pydantic schemas package: re-exports for convenience."""

# Common enums
from leadscore.schemas.common import (
    ScoringEventType as ScoringEventType,
    ContactStatus as ContactStatus,
    ConditionOperator as ConditionOperator,
    SkipReason as SkipReason,
    SuccessResponse as SuccessResponse,
)

# Model / rule administration schemas
from leadscore.schemas.scoring_model import (
    RuleCondition as RuleCondition,
    ScoringRuleCreate as ScoringRuleCreate,
    ScoringRuleUpdate as ScoringRuleUpdate,
    ScoringRuleOut as ScoringRuleOut,
    ScoringModelCreate as ScoringModelCreate,
    ScoringModelUpdate as ScoringModelUpdate,
    ScoringModelOut as ScoringModelOut,
)

# Score event / ledger schemas
from leadscore.schemas.score import (
    ScoreEventRequest as ScoreEventRequest,
    ScoreAdjustRequest as ScoreAdjustRequest,
    BulkScoreAdjustRequest as BulkScoreAdjustRequest,
    StatusResetRequest as StatusResetRequest,
    AppliedRule as AppliedRule,
    SkippedRule as SkippedRule,
    ScoreOutcome as ScoreOutcome,
    BulkAdjustItem as BulkAdjustItem,
    BulkAdjustResponse as BulkAdjustResponse,
    ScoreHistoryEntryOut as ScoreHistoryEntryOut,
    ScoreHistoryResponse as ScoreHistoryResponse,
    DecayRunResponse as DecayRunResponse,
)
