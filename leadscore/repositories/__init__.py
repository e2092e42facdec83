"""Repository layer: all database access goes through here.

Repositories encapsulate SQLAlchemy queries so that the service layer
only contains business logic.
"""

from leadscore.repositories.contact_repository import ContactRepository
from leadscore.repositories.scoring_model_repository import ScoringModelRepository
from leadscore.repositories.scoring_rule_repository import ScoringRuleRepository
from leadscore.repositories.rule_application_repository import (
    RuleApplicationRepository,
)
from leadscore.repositories.score_history_repository import ScoreHistoryRepository
from leadscore.repositories.status_change_repository import StatusChangeRepository

__all__ = [
    "ContactRepository",
    "ScoringModelRepository",
    "ScoringRuleRepository",
    "RuleApplicationRepository",
    "ScoreHistoryRepository",
    "StatusChangeRepository",
]
