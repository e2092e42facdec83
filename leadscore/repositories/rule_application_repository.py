from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select, func

from leadscore.models.rule_application import RuleApplication
from leadscore.repositories.base import BaseRepository


class RuleApplicationRepository(BaseRepository):
    """Occurrence tracker: per (contact, rule) firing history.

    Must share the session of the ``ScoreHistoryRepository`` that appends
    the matching ledger entry, so a firing is recorded in both tables or
    in neither.
    """

    async def count_for(self, contact_id: UUID, rule_id: UUID) -> int:
        """Return how many times *rule_id* has fired for *contact_id*."""
        result = await self._db.execute(
            select(func.count())
            .select_from(RuleApplication)
            .where(
                RuleApplication.contact_id == contact_id,
                RuleApplication.rule_id == rule_id,
            )
        )
        return result.scalar() or 0

    async def last_applied_at(
        self, contact_id: UUID, rule_id: UUID
    ) -> Optional[datetime]:
        """Return the most recent firing time, or ``None`` if never fired."""
        result = await self._db.execute(
            select(func.max(RuleApplication.applied_at)).where(
                RuleApplication.contact_id == contact_id,
                RuleApplication.rule_id == rule_id,
            )
        )
        return result.scalar_one_or_none()

    async def record(
        self,
        contact_id: UUID,
        rule_id: UUID,
        at: datetime,
        ledger_entry_id: Optional[int] = None,
    ) -> RuleApplication:
        """Append the next occurrence for (contact, rule)."""
        index = await self.count_for(contact_id, rule_id) + 1
        return await self._add(
            RuleApplication(
                contact_id=contact_id,
                rule_id=rule_id,
                occurrence_index=index,
                applied_at=at,
                ledger_entry_id=ledger_entry_id,
            )
        )
