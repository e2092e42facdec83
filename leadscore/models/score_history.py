from sqlalchemy import (
    Boolean,
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

from leadscore.models.base import Base, UTCDateTime, utcnow


class ScoreHistoryEntry(Base):
    """One signed point delta on a contact's score ledger.

    The ledger is append-only: a contact's ``lead_score`` is the sum of
    ``delta`` over all of its entries.  The single permitted in-place
    change is the one-way ``decayed`` flag, flipped by the decay
    scheduler in the same transaction that appends the offsetting entry
    (``reverses_entry_id`` points back at the original).
    """

    __tablename__ = "score_history"
    entry_id = Column(Integer, primary_key=True, autoincrement=True)
    contact_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.contact_id", ondelete="CASCADE"),
        nullable=False,
    )
    delta = Column(Integer, nullable=False)
    reason = Column(String(255), nullable=False)
    rule_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("scoring_rules.rule_id", ondelete="SET NULL"),
        nullable=True,
    )
    event_type = Column(String(50))
    description = Column(Text)
    related_type = Column(String(50))
    related_id = Column(String(100))
    previous_score = Column(Integer, nullable=False)
    new_score = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    # Staged decay: populated when the firing rule had decay_days set
    decay_at = Column(UTCDateTime)
    decay_points = Column(Integer)
    decayed = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    reverses_entry_id = Column(
        Integer,
        ForeignKey("score_history.entry_id", ondelete="SET NULL"),
        nullable=True,
    )

    contact = relationship("Contact", back_populates="score_history")

    __table_args__ = (
        Index("ix_score_history_contact_created", "contact_id", "created_at"),
        Index("ix_score_history_decay_due", "decayed", "decay_at"),
    )
