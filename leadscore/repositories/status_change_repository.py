from typing import Any, List
from uuid import UUID

from sqlalchemy import select

from leadscore.models.status_change import ContactStatusChange
from leadscore.repositories.base import BaseRepository


class StatusChangeRepository(BaseRepository):
    """Encapsulates queries against ``contact_status_changes``."""

    async def create(self, **kwargs: Any) -> ContactStatusChange:
        return await self._add(ContactStatusChange(**kwargs), flush=False)

    async def list_for_contact(self, contact_id: UUID) -> List[ContactStatusChange]:
        """Return a contact's status transitions, oldest first."""
        result = await self._db.execute(
            select(ContactStatusChange)
            .where(ContactStatusChange.contact_id == contact_id)
            .order_by(ContactStatusChange.changed_at.asc())
        )
        return list(result.scalars().all())
