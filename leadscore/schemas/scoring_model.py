"""Scoring model and rule administration schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator
from typing_extensions import Self

from leadscore.core.constants import (
    DEFAULT_CUSTOMER_THRESHOLD,
    DEFAULT_QUALIFIED_THRESHOLD,
    RULE_POINTS_MAX,
    RULE_POINTS_MIN,
)
from leadscore.schemas.common import ConditionOperator, ScoringEventType

# Operators that compare against a list value
_LIST_OPERATORS = frozenset({ConditionOperator.in_, ConditionOperator.not_in})

# Operators that ignore ``value`` entirely
_UNARY_OPERATORS = frozenset(
    {ConditionOperator.is_empty, ConditionOperator.is_not_empty}
)

_NUMERIC_OPERATORS = frozenset(
    {
        ConditionOperator.greater_than,
        ConditionOperator.less_than,
        ConditionOperator.greater_than_or_equals,
        ConditionOperator.less_than_or_equals,
    }
)


# ---------------------------------------------------------------------------
# Rule schemas
# ---------------------------------------------------------------------------


class RuleCondition(BaseModel):
    """One predicate evaluated against the event context.

    ``operator`` selects the comparison; the shape of ``value`` is checked
    here so malformed conditions are rejected when the rule is written
    rather than when an event arrives.
    """

    field: str = Field(..., min_length=1, max_length=100)
    operator: ConditionOperator
    value: Any = None

    @model_validator(mode="after")
    def validate_value_shape(self) -> Self:
        if self.operator in _LIST_OPERATORS and not isinstance(self.value, list):
            raise ValueError(f"operator '{self.operator.value}' requires a list value")
        if self.operator in _NUMERIC_OPERATORS:
            if isinstance(self.value, bool):
                raise ValueError(
                    f"operator '{self.operator.value}' requires a numeric value"
                )
            try:
                float(self.value)
            except (TypeError, ValueError):
                raise ValueError(
                    f"operator '{self.operator.value}' requires a numeric value"
                )
        if self.operator in _UNARY_OPERATORS:
            self.value = None
        return self


class ScoringRuleCreate(BaseModel):
    """Request body for creating a scoring rule."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    event_type: ScoringEventType
    points: int = Field(..., ge=RULE_POINTS_MIN, le=RULE_POINTS_MAX)
    is_active: bool = True
    decay_days: Optional[PositiveInt] = None
    decay_points: Optional[int] = None
    max_occurrences: Optional[PositiveInt] = None
    cooldown_hours: Optional[PositiveInt] = None
    conditions: List[RuleCondition] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_decay(self) -> Self:
        if self.decay_points is not None and self.decay_days is None:
            raise ValueError("decay_points requires decay_days")
        return self


class ScoringRuleUpdate(BaseModel):
    """Partial update for a scoring rule; omitted fields are unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    event_type: Optional[ScoringEventType] = None
    points: Optional[int] = Field(None, ge=RULE_POINTS_MIN, le=RULE_POINTS_MAX)
    is_active: Optional[bool] = None
    decay_days: Optional[PositiveInt] = None
    decay_points: Optional[int] = None
    max_occurrences: Optional[PositiveInt] = None
    cooldown_hours: Optional[PositiveInt] = None
    conditions: Optional[List[RuleCondition]] = None


class ScoringRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rule_id: UUID
    model_id: UUID
    name: str
    description: Optional[str] = None
    event_type: ScoringEventType
    points: int
    is_active: bool
    decay_days: Optional[int] = None
    decay_points: Optional[int] = None
    max_occurrences: Optional[int] = None
    cooldown_hours: Optional[int] = None
    conditions: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Model schemas
# ---------------------------------------------------------------------------


class ScoringModelCreate(BaseModel):
    """Request body for creating a scoring model, optionally with rules."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: bool = True
    is_default: bool = False
    qualified_threshold: int = Field(DEFAULT_QUALIFIED_THRESHOLD, ge=0)
    customer_threshold: int = Field(DEFAULT_CUSTOMER_THRESHOLD, ge=0)
    rules: List[ScoringRuleCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_thresholds(self) -> Self:
        if self.customer_threshold < self.qualified_threshold:
            raise ValueError(
                f"customer_threshold ({self.customer_threshold}) must be greater "
                f"than or equal to qualified_threshold ({self.qualified_threshold})"
            )
        return self


class ScoringModelUpdate(BaseModel):
    """Partial update for a scoring model.

    Threshold ordering is re-checked in the service against the stored
    values when only one threshold is supplied.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None
    qualified_threshold: Optional[int] = Field(None, ge=0)
    customer_threshold: Optional[int] = Field(None, ge=0)


class ScoringModelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    model_id: UUID
    name: str
    description: Optional[str] = None
    is_active: bool
    is_default: bool
    version: int
    qualified_threshold: int
    customer_threshold: int
    rules: List[ScoringRuleOut] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
