"""seed default scoring model

Revision ID: 2b3c4d5e6f70
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-19 09:30:00.000000

Inserts the default scoring model and its rules when ``scoring_models``
is empty, so re-running against a populated database is a no-op.

The values come from ``leadscore.core.default_scoring_rules``.
Do NOT edit values here directly; update that module instead.
"""

from datetime import datetime, timezone
from typing import Sequence, Union
from uuid import uuid4

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2b3c4d5e6f70"
down_revision: Union[str, None] = "1a2b3c4d5e6f"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Import at migration time so values stay in sync.
from leadscore.core.default_scoring_rules import (  # noqa: E402
    DEFAULT_SCORING_MODEL,
    DEFAULT_SCORING_RULES,
)

_models = sa.table(
    "scoring_models",
    sa.column("model_id", sa.Uuid()),
    sa.column("name", sa.String()),
    sa.column("description", sa.Text()),
    sa.column("is_active", sa.Boolean()),
    sa.column("is_default", sa.Boolean()),
    sa.column("version", sa.Integer()),
    sa.column("qualified_threshold", sa.Integer()),
    sa.column("customer_threshold", sa.Integer()),
    sa.column("created_at", sa.DateTime(timezone=True)),
    sa.column("updated_at", sa.DateTime(timezone=True)),
)

_rules = sa.table(
    "scoring_rules",
    sa.column("rule_id", sa.Uuid()),
    sa.column("model_id", sa.Uuid()),
    sa.column("name", sa.String()),
    sa.column("description", sa.Text()),
    sa.column("event_type", sa.String()),
    sa.column("points", sa.Integer()),
    sa.column("is_active", sa.Boolean()),
    sa.column("decay_days", sa.Integer()),
    sa.column("decay_points", sa.Integer()),
    sa.column("max_occurrences", sa.Integer()),
    sa.column("cooldown_hours", sa.Integer()),
    sa.column("conditions", sa.JSON()),
    sa.column("created_at", sa.DateTime(timezone=True)),
    sa.column("updated_at", sa.DateTime(timezone=True)),
)


def upgrade() -> None:
    conn = op.get_bind()
    if conn.execute(sa.text("SELECT 1 FROM scoring_models LIMIT 1")).first():
        return

    now = datetime.now(timezone.utc)
    model_id = uuid4()
    op.bulk_insert(
        _models,
        [
            {
                **DEFAULT_SCORING_MODEL,
                "model_id": model_id,
                "version": 1,
                "created_at": now,
                "updated_at": now,
            }
        ],
    )
    op.bulk_insert(
        _rules,
        [
            {
                "description": None,
                "is_active": True,
                "decay_days": None,
                "decay_points": None,
                "max_occurrences": None,
                "cooldown_hours": None,
                "conditions": [],
                **rule,
                "rule_id": uuid4(),
                "model_id": model_id,
                "created_at": now,
                "updated_at": now,
            }
            for rule in DEFAULT_SCORING_RULES
        ],
    )


def downgrade() -> None:
    name = DEFAULT_SCORING_MODEL["name"].replace("'", "''")
    # Rules go with the model (ON DELETE CASCADE)
    op.execute(f"DELETE FROM scoring_models WHERE name = '{name}';")
