from typing import Dict, FrozenSet

CONTACT_STATUSES: FrozenSet[str] = frozenset({"new", "qualified", "customer"})

# Status only ever moves up this ladder outside of an explicit reset
STATUS_RANK: Dict[str, int] = {
    "new": 0,
    "qualified": 1,
    "customer": 2,
}

RULE_POINTS_MIN: int = -100
RULE_POINTS_MAX: int = 100

DEFAULT_QUALIFIED_THRESHOLD: int = 50
DEFAULT_CUSTOMER_THRESHOLD: int = 100

HISTORY_DEFAULT_LIMIT: int = 50
HISTORY_MAX_LIMIT: int = 500

# Ledger reason written for decay reversals
DECAY_REASON: str = "decay"

# Column limits shared by the request schemas and the engine
REASON_MAX_LENGTH: int = 255
DESCRIPTION_MAX_LENGTH: int = 1000
RELATED_TYPE_MAX_LENGTH: int = 50
RELATED_ID_MAX_LENGTH: int = 100

# Scores and deltas are stored in 32-bit INTEGER columns
SCORE_MIN: int = -(2**31)
SCORE_MAX: int = 2**31 - 1
