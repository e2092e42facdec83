from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from leadscore.core.constants import RULE_POINTS_MAX, RULE_POINTS_MIN
from leadscore.models.base import Base, JSONType, UTCDateTime, utcnow
from leadscore.schemas.common import ScoringEventType

_EVENT_TYPE_CHECK_CLAUSE: str = (
    f"event_type IN ({', '.join(repr(e.value) for e in ScoringEventType)})"
)


class ScoringRule(Base):
    """Database-driven scoring rule owned by one scoring model.

    A rule fires on one ``event_type`` when all of its ``conditions`` hold,
    subject to ``max_occurrences`` and ``cooldown_hours``.  When
    ``decay_days`` is set, each firing schedules a reversal of
    ``decay_points`` (default: ``points``) on the score ledger.
    """

    __tablename__ = "scoring_rules"
    rule_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    model_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("scoring_models.model_id", ondelete="CASCADE"),
        nullable=False,
    )
    name = Column(String(100), nullable=False)
    description = Column(Text)
    event_type = Column(String(50), nullable=False)
    points = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    decay_days = Column(Integer)
    decay_points = Column(Integer)
    max_occurrences = Column(Integer)
    cooldown_hours = Column(Integer)
    conditions = Column(JSONType, nullable=False, default=list)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow)

    model = relationship("ScoringModel", back_populates="rules")

    __table_args__ = (
        CheckConstraint(_EVENT_TYPE_CHECK_CLAUSE, name="ck_scoring_rule_event_type"),
        CheckConstraint(
            f"points BETWEEN {RULE_POINTS_MIN} AND {RULE_POINTS_MAX}",
            name="ck_scoring_rule_points_range",
        ),
        CheckConstraint(
            "decay_days IS NULL OR decay_days > 0", name="ck_scoring_rule_decay_days"
        ),
        CheckConstraint(
            "max_occurrences IS NULL OR max_occurrences > 0",
            name="ck_scoring_rule_max_occurrences",
        ),
        CheckConstraint(
            "cooldown_hours IS NULL OR cooldown_hours > 0",
            name="ck_scoring_rule_cooldown_hours",
        ),
        Index("ix_scoring_rules_model_event", "model_id", "event_type"),
    )
