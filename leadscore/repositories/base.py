from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository:
    """Holds the session shared by every repository in one unit of work.

    Repositories never commit.  The scoring engine and the admin service
    own the transaction, so rows written through different repositories
    for the same contact commit together or not at all.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _add(self, instance: T, flush: bool = True) -> T:
        """Stage *instance*; flushing populates generated keys and defaults."""
        self._db.add(instance)
        if flush:
            await self._db.flush()
        return instance
