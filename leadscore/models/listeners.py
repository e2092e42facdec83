from sqlalchemy import event

from leadscore.models.base import utcnow
from leadscore.models.contact import Contact
from leadscore.models.scoring_model import ScoringModel
from leadscore.models.scoring_rule import ScoringRule


# Auto updated_at
@event.listens_for(Contact, "before_update")
@event.listens_for(ScoringModel, "before_update")
@event.listens_for(ScoringRule, "before_update")
def update_timestamp(mapper, connection, target):
    target.updated_at = utcnow()
