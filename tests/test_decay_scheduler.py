import asyncio
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import select

from leadscore.core.exceptions import PersistenceError
from leadscore.models import ScoreHistoryEntry
from leadscore.repositories.rule_application_repository import (
    RuleApplicationRepository,
)
from leadscore.schemas.common import ContactStatus, SkipReason
from leadscore.services.decay_scheduler import (
    DecayRunResult,
    DecayScheduler,
    start_decay_loop,
)


async def _ledger(session_factory, contact_id):
    async with session_factory() as session:
        result = await session.execute(
            select(ScoreHistoryEntry)
            .where(ScoreHistoryEntry.contact_id == contact_id)
            .order_by(ScoreHistoryEntry.entry_id)
        )
        return list(result.scalars().all())


@pytest.fixture
def scheduler(session_factory, scoring_engine, clock) -> DecayScheduler:
    return DecayScheduler(
        session_factory=session_factory,
        engine=scoring_engine,
        batch_size=10,
        concurrency=1,
        clock=clock,
    )


def _decaying_rule(**overrides):
    rule = {
        "name": "Webinar Attended",
        "event_type": "MEETING_ATTENDED",
        "points": 20,
        "decay_days": 7,
        "decay_points": 20,
    }
    rule.update(overrides)
    return rule


class TestDecayPass:
    @pytest.mark.asyncio
    async def test_decay_returns_score_to_pre_event_value(
        self, scheduler, scoring_engine, make_model, make_contact, clock,
        session_factory, fetch_contact,
    ):
        await make_model([_decaying_rule()])
        contact = await make_contact()
        await scoring_engine.adjust_score(contact.contact_id, 3, "baseline")
        await scoring_engine.process_event(contact.contact_id, "MEETING_ATTENDED")

        clock.advance(days=8)
        result = await scheduler.run_once()

        assert result == DecayRunResult(
            contacts_processed=1, entries_decayed=1, failures=0
        )
        stored = await fetch_contact(contact.contact_id)
        assert stored.lead_score == 3

        baseline, original, reversal = await _ledger(session_factory, contact.contact_id)
        assert original.decayed is True
        assert reversal.delta == -20
        assert reversal.reason == "decay"
        assert reversal.reverses_entry_id == original.entry_id
        assert reversal.previous_score == 23
        assert reversal.new_score == 3

    @pytest.mark.asyncio
    async def test_entries_not_yet_due_are_left_alone(
        self, scheduler, scoring_engine, make_model, make_contact, clock, fetch_contact
    ):
        await make_model([_decaying_rule()])
        contact = await make_contact()
        await scoring_engine.process_event(contact.contact_id, "MEETING_ATTENDED")

        clock.advance(days=6, hours=23)
        result = await scheduler.run_once()

        assert result.entries_decayed == 0
        assert (await fetch_contact(contact.contact_id)).lead_score == 20

    @pytest.mark.asyncio
    async def test_rerunning_a_pass_is_a_no_op(
        self, scheduler, scoring_engine, make_model, make_contact, clock,
        session_factory, fetch_contact,
    ):
        await make_model([_decaying_rule()])
        contact = await make_contact()
        await scoring_engine.process_event(contact.contact_id, "MEETING_ATTENDED")
        clock.advance(days=8)

        await scheduler.run_once()
        second = await scheduler.run_once()

        assert second.entries_decayed == 0
        assert len(await _ledger(session_factory, contact.contact_id)) == 2
        assert (await fetch_contact(contact.contact_id)).lead_score == 0

    @pytest.mark.asyncio
    async def test_concurrent_decay_of_one_contact_reverses_once(
        self, scoring_engine, make_model, make_contact, clock, session_factory
    ):
        await make_model([_decaying_rule()])
        contact = await make_contact()
        await scoring_engine.process_event(contact.contact_id, "MEETING_ATTENDED")
        clock.advance(days=8)

        counts = await asyncio.gather(
            scoring_engine.decay_contact(contact.contact_id),
            scoring_engine.decay_contact(contact.contact_id),
        )

        assert sorted(counts) == [0, 1]
        reversals = [
            e
            for e in await _ledger(session_factory, contact.contact_id)
            if e.reverses_entry_id is not None
        ]
        assert len(reversals) == 1

    @pytest.mark.asyncio
    async def test_reversal_does_not_count_as_a_firing(
        self, scheduler, scoring_engine, make_model, make_contact, clock,
        session_factory, fetch_contact,
    ):
        model = await make_model([_decaying_rule(cooldown_hours=240)])
        rule_id = model.rules[0].rule_id
        contact = await make_contact()
        fired_at = clock.now
        await scoring_engine.process_event(contact.contact_id, "MEETING_ATTENDED")

        clock.advance(days=8)
        assert (await scheduler.run_once()).entries_decayed == 1

        async with session_factory() as session:
            tracker = RuleApplicationRepository(session)
            assert await tracker.count_for(contact.contact_id, rule_id) == 1
            assert await tracker.last_applied_at(contact.contact_id, rule_id) == fired_at

        # Still inside the cooldown that started with the real firing
        blocked = await scoring_engine.process_event(
            contact.contact_id, "MEETING_ATTENDED"
        )
        assert blocked.applied_rules == []
        assert [s.reason for s in blocked.skipped_rules] == [SkipReason.cooldown]

        clock.advance(days=2)
        fired = await scoring_engine.process_event(
            contact.contact_id, "MEETING_ATTENDED"
        )
        assert fired.applied_rules[0].occurrence_index == 2
        assert (await fetch_contact(contact.contact_id)).lead_score == 20

    @pytest.mark.asyncio
    async def test_decay_points_default_to_rule_points(
        self, scheduler, scoring_engine, make_model, make_contact, clock, fetch_contact
    ):
        await make_model([_decaying_rule(points=15, decay_points=None)])
        contact = await make_contact()
        await scoring_engine.process_event(contact.contact_id, "MEETING_ATTENDED")

        clock.advance(days=7)
        await scheduler.run_once()

        assert (await fetch_contact(contact.contact_id)).lead_score == 0

    @pytest.mark.asyncio
    async def test_partial_decay(
        self, scheduler, scoring_engine, make_model, make_contact, clock, fetch_contact
    ):
        await make_model([_decaying_rule(points=20, decay_points=8)])
        contact = await make_contact()
        await scoring_engine.process_event(contact.contact_id, "MEETING_ATTENDED")

        clock.advance(days=8)
        await scheduler.run_once()

        assert (await fetch_contact(contact.contact_id)).lead_score == 12

    @pytest.mark.asyncio
    async def test_decay_never_demotes(
        self, scheduler, scoring_engine, make_model, make_contact, clock,
        fetch_contact, notifier,
    ):
        await make_model([_decaying_rule(points=60, decay_points=60)])
        contact = await make_contact()
        outcome = await scoring_engine.process_event(
            contact.contact_id, "MEETING_ATTENDED"
        )
        assert outcome.status == ContactStatus.qualified
        notifier.notify.reset_mock()

        clock.advance(days=8)
        await scheduler.run_once()

        stored = await fetch_contact(contact.contact_id)
        assert stored.lead_score == 0
        assert stored.status == "qualified"
        notifier.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deactivated_rule_still_decays(
        self, scheduler, scoring_engine, make_model, make_contact, clock,
        session_factory, fetch_contact,
    ):
        from leadscore.schemas.scoring_model import ScoringRuleUpdate
        from leadscore.services.scoring_admin_service import ScoringAdminService

        model = await make_model([_decaying_rule()])
        contact = await make_contact()
        await scoring_engine.process_event(contact.contact_id, "MEETING_ATTENDED")

        async with session_factory() as session:
            await ScoringAdminService(session).update_rule(
                model.model_id, model.rules[0].rule_id, ScoringRuleUpdate(is_active=False)
            )

        clock.advance(days=8)
        await scheduler.run_once()

        assert (await fetch_contact(contact.contact_id)).lead_score == 0

    @pytest.mark.asyncio
    async def test_processes_every_due_contact(
        self, scheduler, scoring_engine, make_model, make_contact, clock, fetch_contact
    ):
        await make_model([_decaying_rule()])
        contacts = [await make_contact(email=f"c{i}@example.com") for i in range(3)]
        for contact in contacts:
            await scoring_engine.process_event(contact.contact_id, "MEETING_ATTENDED")

        clock.advance(days=8)
        result = await scheduler.run_once()

        assert result.contacts_processed == 3
        assert result.entries_decayed == 3
        for contact in contacts:
            assert (await fetch_contact(contact.contact_id)).lead_score == 0


class TestDecayFailures:
    """One contact failing must not stop the pass."""

    @pytest.mark.asyncio
    async def test_failed_contact_is_counted_and_skipped(self, session_factory):
        good, bad = uuid4(), uuid4()

        async def decay_contact(contact_id):
            if contact_id == bad:
                raise PersistenceError()
            return 2

        engine = MagicMock()
        engine.decay_contact = AsyncMock(side_effect=decay_contact)
        scheduler = DecayScheduler(
            session_factory=session_factory, engine=engine, batch_size=10
        )

        with patch.object(
            DecayScheduler,
            "_due_contacts",
            new_callable=AsyncMock,
            side_effect=[[good, bad], []],
        ):
            result = await scheduler.run_once()

        assert result.contacts_processed == 1
        assert result.entries_decayed == 2
        assert result.failures == 1


class TestDecayLoop:
    @pytest.mark.asyncio
    async def test_loop_survives_a_failed_cycle(self):
        scheduler = MagicMock()
        scheduler.run_once = AsyncMock(side_effect=[Exception("db down"), DecayRunResult()])

        sleep = AsyncMock(side_effect=[None, asyncio.CancelledError()])
        with patch("leadscore.services.decay_scheduler.asyncio.sleep", sleep):
            with pytest.raises(asyncio.CancelledError):
                await start_decay_loop(scheduler, interval_seconds=5)

        assert scheduler.run_once.await_count == 2
        sleep.assert_awaited_with(5)
