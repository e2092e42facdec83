import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


class ContactLockRegistry:
    """In-process exclusive lock per contact id.

    Serialises every read-modify-write of one contact's score state
    (live events, manual adjustments and decay) inside this worker.
    Other workers are excluded by the row lock taken on the contact
    inside the transaction.  Locks are dropped once nobody holds or
    awaits them, so the registry only grows with in-flight contacts.
    """

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, contact_id: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(contact_id)
        if lock is None:
            lock = self._locks[contact_id] = asyncio.Lock()
        self._users[contact_id] = self._users.get(contact_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[contact_id] -= 1
            if self._users[contact_id] == 0:
                del self._users[contact_id]
                del self._locks[contact_id]

    def is_locked(self, contact_id: Hashable) -> bool:
        lock = self._locks.get(contact_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


# Process-wide registry shared by the API and the decay scheduler
contact_locks = ContactLockRegistry()
