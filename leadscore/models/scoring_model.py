from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from leadscore.models.base import Base, UTCDateTime, utcnow


class ScoringModel(Base):
    """A named, versioned set of scoring rules plus status thresholds.

    ``version`` is bumped on every change to the model or its rules; rule
    snapshots are cached per version.  At most one model carries
    ``is_default`` (partial unique index on PostgreSQL, enforced in the
    admin service everywhere).
    """

    __tablename__ = "scoring_models"
    model_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    is_default = Column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    version = Column(Integer, nullable=False, default=1, server_default=text("1"))
    qualified_threshold = Column(Integer, nullable=False, default=50)
    customer_threshold = Column(Integer, nullable=False, default=100)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow)

    rules = relationship(
        "ScoringRule",
        back_populates="model",
        cascade="all, delete-orphan",
        order_by="ScoringRule.created_at",
    )

    __table_args__ = (
        CheckConstraint(
            "qualified_threshold >= 0 AND customer_threshold >= qualified_threshold",
            name="ck_scoring_model_thresholds",
        ),
        Index(
            "uq_scoring_models_single_default",
            "is_default",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )
