"""initial scoring schema

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates the scoring tables:
  - ``scoring_models`` with a partial unique index allowing one default
  - ``contacts`` (score state columns only)
  - ``scoring_rules``
  - ``score_history`` (append-only ledger)
  - ``rule_applications`` (occurrence tracker)
  - ``contact_status_changes`` (status audit trail)
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "1a2b3c4d5e6f"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_EVENT_TYPES = (
    "EMAIL_OPENED",
    "EMAIL_CLICKED",
    "EMAIL_REPLIED",
    "MEETING_BOOKED",
    "MEETING_ATTENDED",
    "CALL_ANSWERED",
    "CALL_POSITIVE_OUTCOME",
    "FORM_SUBMITTED",
    "PAGE_VISITED",
    "DOCUMENT_VIEWED",
    "DEMO_REQUESTED",
    "TRIAL_STARTED",
    "QUOTE_REQUESTED",
    "DEAL_CREATED",
    "STAGE_ADVANCED",
    "CUSTOM",
)
_STATUSES = ("customer", "new", "qualified")


def _in_clause(column: str, values: Sequence[str]) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


def upgrade() -> None:
    json_type = sa.JSON().with_variant(
        postgresql.JSONB(), "postgresql"
    )

    op.create_table(
        "scoring_models",
        sa.Column("model_id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("qualified_threshold", sa.Integer(), nullable=False),
        sa.Column("customer_threshold", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint(
            "qualified_threshold >= 0 AND customer_threshold >= qualified_threshold",
            name="ck_scoring_model_thresholds",
        ),
    )
    op.create_index(
        "uq_scoring_models_single_default",
        "scoring_models",
        ["is_default"],
        unique=True,
        postgresql_where=sa.text("is_default"),
        sqlite_where=sa.text("is_default"),
    )

    op.create_table(
        "contacts",
        sa.Column("contact_id", sa.Uuid(), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("status", sa.String(20), nullable=False, server_default="new"),
        sa.Column("lead_score", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "scoring_model_id",
            sa.Uuid(),
            sa.ForeignKey("scoring_models.model_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("last_scored_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint(_in_clause("status", _STATUSES), name="ck_contact_status"),
    )
    op.create_index("ix_contacts_status", "contacts", ["status"])

    op.create_table(
        "scoring_rules",
        sa.Column("rule_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "model_id",
            sa.Uuid(),
            sa.ForeignKey("scoring_models.model_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("decay_days", sa.Integer()),
        sa.Column("decay_points", sa.Integer()),
        sa.Column("max_occurrences", sa.Integer()),
        sa.Column("cooldown_hours", sa.Integer()),
        sa.Column("conditions", json_type, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint(
            _in_clause("event_type", _EVENT_TYPES), name="ck_scoring_rule_event_type"
        ),
        sa.CheckConstraint(
            "points BETWEEN -100 AND 100", name="ck_scoring_rule_points_range"
        ),
        sa.CheckConstraint(
            "decay_days IS NULL OR decay_days > 0", name="ck_scoring_rule_decay_days"
        ),
        sa.CheckConstraint(
            "max_occurrences IS NULL OR max_occurrences > 0",
            name="ck_scoring_rule_max_occurrences",
        ),
        sa.CheckConstraint(
            "cooldown_hours IS NULL OR cooldown_hours > 0",
            name="ck_scoring_rule_cooldown_hours",
        ),
    )
    op.create_index(
        "ix_scoring_rules_model_event", "scoring_rules", ["model_id", "event_type"]
    )

    op.create_table(
        "score_history",
        sa.Column("entry_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "contact_id",
            sa.Uuid(),
            sa.ForeignKey("contacts.contact_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column(
            "rule_id",
            sa.Uuid(),
            sa.ForeignKey("scoring_rules.rule_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("event_type", sa.String(50)),
        sa.Column("description", sa.Text()),
        sa.Column("related_type", sa.String(50)),
        sa.Column("related_id", sa.String(100)),
        sa.Column("previous_score", sa.Integer(), nullable=False),
        sa.Column("new_score", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("decay_at", sa.DateTime(timezone=True)),
        sa.Column("decay_points", sa.Integer()),
        sa.Column("decayed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "reverses_entry_id",
            sa.Integer(),
            sa.ForeignKey("score_history.entry_id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index(
        "ix_score_history_contact_created", "score_history", ["contact_id", "created_at"]
    )
    op.create_index("ix_score_history_decay_due", "score_history", ["decayed", "decay_at"])

    op.create_table(
        "rule_applications",
        sa.Column("application_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "contact_id",
            sa.Uuid(),
            sa.ForeignKey("contacts.contact_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "rule_id",
            sa.Uuid(),
            sa.ForeignKey("scoring_rules.rule_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("occurrence_index", sa.Integer(), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "ledger_entry_id",
            sa.Integer(),
            sa.ForeignKey("score_history.entry_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.UniqueConstraint(
            "contact_id",
            "rule_id",
            "occurrence_index",
            name="uq_rule_applications_occurrence",
        ),
    )
    op.create_index(
        "ix_rule_applications_contact_rule",
        "rule_applications",
        ["contact_id", "rule_id"],
    )

    op.create_table(
        "contact_status_changes",
        sa.Column("change_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "contact_id",
            sa.Uuid(),
            sa.ForeignKey("contacts.contact_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status_from", sa.String(20), nullable=False),
        sa.Column("status_to", sa.String(20), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column(
            "model_id",
            sa.Uuid(),
            sa.ForeignKey("scoring_models.model_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            _in_clause("status_from", _STATUSES), name="ck_status_change_from"
        ),
        sa.CheckConstraint(_in_clause("status_to", _STATUSES), name="ck_status_change_to"),
    )
    op.create_index(
        "ix_contact_status_changes_contact",
        "contact_status_changes",
        ["contact_id", "changed_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_contact_status_changes_contact", table_name="contact_status_changes")
    op.drop_table("contact_status_changes")
    op.drop_index("ix_rule_applications_contact_rule", table_name="rule_applications")
    op.drop_table("rule_applications")
    op.drop_index("ix_score_history_decay_due", table_name="score_history")
    op.drop_index("ix_score_history_contact_created", table_name="score_history")
    op.drop_table("score_history")
    op.drop_index("ix_scoring_rules_model_event", table_name="scoring_rules")
    op.drop_table("scoring_rules")
    op.drop_index("ix_contacts_status", table_name="contacts")
    op.drop_table("contacts")
    op.drop_index("uq_scoring_models_single_default", table_name="scoring_models")
    op.drop_table("scoring_models")
