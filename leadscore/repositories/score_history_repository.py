from datetime import datetime
from typing import Any, List
from uuid import UUID

from sqlalchemy import select, update, func

from leadscore.models.score_history import ScoreHistoryEntry
from leadscore.repositories.base import BaseRepository


class ScoreHistoryRepository(BaseRepository):
    """Append-only score ledger (``score_history`` table)."""

    async def append(self, **kwargs: Any) -> ScoreHistoryEntry:
        """Insert a ledger entry and flush so ``entry_id`` is populated."""
        return await self._add(ScoreHistoryEntry(**kwargs))

    async def list_for_contact(
        self, contact_id: UUID, limit: int
    ) -> List[ScoreHistoryEntry]:
        """Return the most recent entries for a contact, newest first."""
        result = await self._db.execute(
            select(ScoreHistoryEntry)
            .where(ScoreHistoryEntry.contact_id == contact_id)
            .order_by(
                ScoreHistoryEntry.created_at.desc(),
                ScoreHistoryEntry.entry_id.desc(),
            )
            .limit(limit)
        )
        return list(result.scalars().all())

    async def sum_for_contact(self, contact_id: UUID) -> int:
        """Return the signed sum of every ledger delta for a contact."""
        result = await self._db.execute(
            select(func.coalesce(func.sum(ScoreHistoryEntry.delta), 0)).where(
                ScoreHistoryEntry.contact_id == contact_id
            )
        )
        return int(result.scalar() or 0)

    async def find_contacts_with_due_decay(
        self, now: datetime, limit: int
    ) -> List[UUID]:
        """Return contacts owning at least one undecayed entry due by *now*."""
        result = await self._db.execute(
            select(ScoreHistoryEntry.contact_id)
            .where(
                ScoreHistoryEntry.decayed.is_(False),
                ScoreHistoryEntry.decay_at.is_not(None),
                ScoreHistoryEntry.decay_at <= now,
            )
            .group_by(ScoreHistoryEntry.contact_id)
            .order_by(func.min(ScoreHistoryEntry.decay_at))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_due_for_contact(
        self, contact_id: UUID, now: datetime
    ) -> List[ScoreHistoryEntry]:
        """Return a contact's undecayed entries whose decay time has passed."""
        result = await self._db.execute(
            select(ScoreHistoryEntry)
            .where(
                ScoreHistoryEntry.contact_id == contact_id,
                ScoreHistoryEntry.decayed.is_(False),
                ScoreHistoryEntry.decay_at.is_not(None),
                ScoreHistoryEntry.decay_at <= now,
            )
            .order_by(ScoreHistoryEntry.decay_at, ScoreHistoryEntry.entry_id)
        )
        return list(result.scalars().all())

    async def mark_decayed(self, entry_id: int) -> bool:
        """Compare-and-set ``decayed`` from false to true.

        Returns ``True`` only for the caller that actually flipped the
        flag; a concurrent or repeated decay pass gets ``False`` and must
        not append a reversal.
        """
        result = await self._db.execute(
            update(ScoreHistoryEntry)
            .where(
                ScoreHistoryEntry.entry_id == entry_id,
                ScoreHistoryEntry.decayed.is_(False),
            )
            .values(decayed=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
