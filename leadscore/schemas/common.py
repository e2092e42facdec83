from enum import Enum
from pydantic import BaseModel


class ScoringEventType(str, Enum):
    EMAIL_OPENED = "EMAIL_OPENED"
    EMAIL_CLICKED = "EMAIL_CLICKED"
    EMAIL_REPLIED = "EMAIL_REPLIED"
    MEETING_BOOKED = "MEETING_BOOKED"
    MEETING_ATTENDED = "MEETING_ATTENDED"
    CALL_ANSWERED = "CALL_ANSWERED"
    CALL_POSITIVE_OUTCOME = "CALL_POSITIVE_OUTCOME"
    FORM_SUBMITTED = "FORM_SUBMITTED"
    PAGE_VISITED = "PAGE_VISITED"
    DOCUMENT_VIEWED = "DOCUMENT_VIEWED"
    DEMO_REQUESTED = "DEMO_REQUESTED"
    TRIAL_STARTED = "TRIAL_STARTED"
    QUOTE_REQUESTED = "QUOTE_REQUESTED"
    DEAL_CREATED = "DEAL_CREATED"
    STAGE_ADVANCED = "STAGE_ADVANCED"
    CUSTOM = "CUSTOM"


class ContactStatus(str, Enum):
    new = "new"
    qualified = "qualified"
    customer = "customer"


class ConditionOperator(str, Enum):
    equals = "equals"
    not_equals = "not_equals"
    contains = "contains"
    not_contains = "not_contains"
    starts_with = "starts_with"
    ends_with = "ends_with"
    greater_than = "greater_than"
    less_than = "less_than"
    greater_than_or_equals = "greater_than_or_equals"
    less_than_or_equals = "less_than_or_equals"
    is_empty = "is_empty"
    is_not_empty = "is_not_empty"
    in_ = "in"
    not_in = "not_in"


class SkipReason(str, Enum):
    conditions = "conditions"
    invalid_condition = "invalid_condition"
    max_occurrences = "max_occurrences"
    cooldown = "cooldown"


class SuccessResponse(BaseModel):
    """Generic success response base."""

    success: bool = True
