from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import relationship

from leadscore.core.constants import CONTACT_STATUSES
from leadscore.models.base import Base, UTCDateTime, utcnow

# SQL CHECK clause for status columns, derived from CONTACT_STATUSES constant
_STATUS_CHECK_CLAUSE: str = (
    f"{{col}} IN ({', '.join(repr(s) for s in sorted(CONTACT_STATUSES))})"
)


class ContactStatusChange(Base):
    """Audit trail for contact qualification-status transitions.

    Written for every threshold transition and for every explicit status
    reset, together with the score at the time and the model whose
    thresholds were crossed.
    """

    __tablename__ = "contact_status_changes"
    change_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    contact_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.contact_id", ondelete="CASCADE"),
        nullable=False,
    )
    status_from = Column(String(20), nullable=False)
    status_to = Column(String(20), nullable=False)
    score = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=False)
    model_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("scoring_models.model_id", ondelete="SET NULL"),
        nullable=True,
    )
    changed_at = Column(UTCDateTime, nullable=False, default=utcnow)

    contact = relationship("Contact", back_populates="status_changes")

    __table_args__ = (
        CheckConstraint(
            _STATUS_CHECK_CLAUSE.format(col="status_from"),
            name="ck_status_change_from",
        ),
        CheckConstraint(
            _STATUS_CHECK_CLAUSE.format(col="status_to"),
            name="ck_status_change_to",
        ),
        Index("ix_contact_status_changes_contact", "contact_id", "changed_at"),
    )
