from uuid import uuid4

from sqlalchemy import (
    Column,
    String,
    Integer,
    CheckConstraint,
    ForeignKey,
    Index,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from leadscore.core.constants import CONTACT_STATUSES
from leadscore.models.base import Base, UTCDateTime, utcnow

_STATUS_CHECK_CLAUSE: str = (
    f"status IN ({', '.join(repr(s) for s in sorted(CONTACT_STATUSES))})"
)


class Contact(Base):
    """CRM contact, as seen by the scoring engine.

    The contact row itself is owned by the CRM; the engine only reads the
    identity columns and writes the cached score state (``lead_score``,
    ``status``, ``last_scored_at``).  ``scoring_model_id`` optionally
    pins the contact to a non-default scoring model.
    """

    __tablename__ = "contacts"
    contact_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255))
    status = Column(String(20), nullable=False, default="new", server_default="new")
    lead_score = Column(Integer, nullable=False, default=0, server_default=text("0"))
    scoring_model_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("scoring_models.model_id", ondelete="SET NULL"),
        nullable=True,
    )
    last_scored_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow)

    score_history = relationship(
        "ScoreHistoryEntry", back_populates="contact", cascade="all, delete-orphan"
    )
    status_changes = relationship(
        "ContactStatusChange", back_populates="contact", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(_STATUS_CHECK_CLAUSE, name="ck_contact_status"),
        Index("ix_contacts_status", "status"),
    )
