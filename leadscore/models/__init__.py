from leadscore.models.base import Base
from leadscore.models.contact import Contact
from leadscore.models.scoring_model import ScoringModel
from leadscore.models.scoring_rule import ScoringRule
from leadscore.models.score_history import ScoreHistoryEntry
from leadscore.models.rule_application import RuleApplication
from leadscore.models.status_change import ContactStatusChange

# Import event listeners to register them
from leadscore.models import listeners  # noqa: F401

__all__ = [
    "Base",
    "Contact",
    "ScoringModel",
    "ScoringRule",
    "ScoreHistoryEntry",
    "RuleApplication",
    "ContactStatusChange",
]
