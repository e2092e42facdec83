import asyncio
from uuid import uuid4

import pytest

from leadscore.core.locks import ContactLockRegistry


class TestContactLockRegistry:
    @pytest.mark.asyncio
    async def test_same_contact_is_serialised(self):
        registry = ContactLockRegistry()
        contact_id = uuid4()
        order = []

        async def work(name):
            async with registry.hold(contact_id):
                order.append(f"{name}:start")
                await asyncio.sleep(0)
                order.append(f"{name}:end")

        await asyncio.gather(work("a"), work("b"))

        assert order == ["a:start", "a:end", "b:start", "b:end"]

    @pytest.mark.asyncio
    async def test_different_contacts_do_not_block(self):
        registry = ContactLockRegistry()
        first, second = uuid4(), uuid4()

        async with registry.hold(first):
            assert registry.is_locked(first)
            assert not registry.is_locked(second)
            async with registry.hold(second):
                assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_idle_locks_are_released(self):
        registry = ContactLockRegistry()
        contact_id = uuid4()

        async with registry.hold(contact_id):
            pass

        assert len(registry) == 0
        assert not registry.is_locked(contact_id)

    @pytest.mark.asyncio
    async def test_lock_released_when_work_fails(self):
        registry = ContactLockRegistry()
        contact_id = uuid4()

        with pytest.raises(RuntimeError):
            async with registry.hold(contact_id):
                raise RuntimeError("boom")

        assert len(registry) == 0
