from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select

from leadscore.models.contact import Contact
from leadscore.repositories.base import BaseRepository


class ContactRepository(BaseRepository):
    """Reads contacts and writes their cached score state."""

    async def get_by_id(self, contact_id: UUID) -> Optional[Contact]:
        """Return a single contact by primary key, or ``None``."""
        result = await self._db.execute(
            select(Contact).where(Contact.contact_id == contact_id)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, contact_id: UUID) -> Optional[Contact]:
        """Return the contact with its row locked until the transaction ends.

        ``SELECT ... FOR UPDATE`` is the cross-process half of the
        per-contact critical section; backends without row locks (SQLite)
        compile it away.
        """
        result = await self._db.execute(
            select(Contact)
            .where(Contact.contact_id == contact_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_score_state(
        self,
        contact: Contact,
        lead_score: int,
        status: str,
        scored_at: datetime,
    ) -> None:
        """Set the cached score, status and last-scored timestamp."""
        contact.lead_score = lead_score
        contact.status = status
        contact.last_scored_at = scored_at
