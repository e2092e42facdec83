from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select

from leadscore.models.scoring_rule import ScoringRule
from leadscore.repositories.base import BaseRepository


class ScoringRuleRepository(BaseRepository):
    """Encapsulates queries against the ``scoring_rules`` table."""

    async def get_for_model(self, model_id: UUID, rule_id: UUID) -> Optional[ScoringRule]:
        """Return a rule only if it belongs to *model_id*."""
        result = await self._db.execute(
            select(ScoringRule).where(
                ScoringRule.rule_id == rule_id,
                ScoringRule.model_id == model_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> ScoringRule:
        """Insert a new rule and flush to populate defaults."""
        return await self._add(ScoringRule(**kwargs))

    async def delete(self, rule: ScoringRule) -> None:
        await self._db.delete(rule)
