from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
    Uuid,
)

from leadscore.models.base import Base, UTCDateTime, utcnow


class RuleApplication(Base):
    """One successful firing of a scoring rule for a contact.

    ``occurrence_index`` counts firings per (contact, rule) starting at 1.
    The unique constraint turns a lost update between two writers into an
    ``IntegrityError`` instead of a silently exceeded occurrence cap.
    """

    __tablename__ = "rule_applications"
    application_id = Column(Integer, primary_key=True, autoincrement=True)
    contact_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("contacts.contact_id", ondelete="CASCADE"),
        nullable=False,
    )
    rule_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("scoring_rules.rule_id", ondelete="CASCADE"),
        nullable=False,
    )
    occurrence_index = Column(Integer, nullable=False)
    applied_at = Column(UTCDateTime, nullable=False, default=utcnow)
    ledger_entry_id = Column(
        Integer,
        ForeignKey("score_history.entry_id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "contact_id",
            "rule_id",
            "occurrence_index",
            name="uq_rule_applications_occurrence",
        ),
        Index("ix_rule_applications_contact_rule", "contact_id", "rule_id"),
    )
