import json
from uuid import uuid4

import pytest
from sqlalchemy import event

from leadscore.repositories.scoring_model_repository import ScoringModelRepository
from leadscore.schemas.scoring_model import ScoringModelUpdate, ScoringRuleUpdate
from leadscore.services.rule_store import (
    ModelSnapshot,
    RuleSnapshot,
    RuleStore,
    snapshot_cache_key,
)
from leadscore.services.scoring_admin_service import ScoringAdminService


def _rule(**overrides) -> RuleSnapshot:
    values = {
        "rule_id": uuid4(),
        "name": "Email Opened",
        "event_type": "EMAIL_OPENED",
        "points": 5,
        "is_active": True,
    }
    values.update(overrides)
    return RuleSnapshot(**values)


class TestSnapshots:
    def test_rules_for_filters_event_type_and_inactive(self):
        opened = _rule()
        clicked = _rule(name="Clicked", event_type="EMAIL_CLICKED")
        retired = _rule(name="Old Opened", is_active=False)
        snapshot = ModelSnapshot(
            model_id=uuid4(),
            name="m",
            version=1,
            qualified_threshold=50,
            customer_threshold=100,
            rules=(opened, clicked, retired),
        )

        assert snapshot.rules_for("EMAIL_OPENED") == (opened,)
        assert snapshot.rules_for("DEAL_CREATED") == ()

    @pytest.mark.parametrize(
        "decay_days,decay_points,expected",
        [(None, None, None), (7, None, 5), (7, 2, 2)],
    )
    def test_effective_decay_points(self, decay_days, decay_points, expected):
        rule = _rule(decay_days=decay_days, decay_points=decay_points)
        assert rule.effective_decay_points == expected

    def test_dict_round_trip_through_json(self):
        snapshot = ModelSnapshot(
            model_id=uuid4(),
            name="m",
            version=3,
            qualified_threshold=10,
            customer_threshold=20,
            rules=(
                _rule(conditions=({"field": "a", "operator": "equals", "value": 1},)),
            ),
        )
        data = json.loads(json.dumps(snapshot.to_dict(), default=str))

        assert ModelSnapshot.from_dict(data) == snapshot


class TestResolveModel:
    @pytest.mark.asyncio
    async def test_default_model_when_no_override(
        self, rule_store, make_model, make_contact, session_factory
    ):
        model = await make_model([])
        contact = await make_contact()

        async with session_factory() as session:
            assert await rule_store.resolve_model_id(session, contact) == model.model_id

    @pytest.mark.asyncio
    async def test_active_override_wins(
        self, rule_store, make_model, make_contact, session_factory
    ):
        await make_model([])
        override = await make_model([], name="Enterprise", is_default=False)
        contact = await make_contact(scoring_model_id=override.model_id)

        async with session_factory() as session:
            assert (
                await rule_store.resolve_model_id(session, contact)
                == override.model_id
            )

    @pytest.mark.asyncio
    async def test_inactive_override_falls_back_to_default(
        self, rule_store, make_model, make_contact, session_factory
    ):
        default = await make_model([])
        override = await make_model(
            [], name="Retired", is_default=False, is_active=False
        )
        contact = await make_contact(scoring_model_id=override.model_id)

        async with session_factory() as session:
            assert (
                await rule_store.resolve_model_id(session, contact)
                == default.model_id
            )

    @pytest.mark.asyncio
    async def test_no_model_resolves_to_none(
        self, rule_store, make_contact, session_factory
    ):
        contact = await make_contact()

        async with session_factory() as session:
            assert await rule_store.resolve_model_id(session, contact) is None
            assert await rule_store.snapshot_for_contact(session, contact) is None


class TestSnapshotCaching:
    @pytest.mark.asyncio
    async def test_database_load_is_written_to_redis(
        self, mock_cache, mock_redis, make_model, session_factory
    ):
        model = await make_model([{"name": "Opened", "event_type": "EMAIL_OPENED", "points": 5}])
        store = RuleStore(cache=mock_cache, ttl=60, local_snapshots={})

        async with session_factory() as session:
            snapshot = await store.get_snapshot(session, model.model_id)

        assert snapshot.version == 1
        assert [r.name for r in snapshot.rules] == ["Opened"]
        mock_redis.get.assert_awaited_once_with(snapshot_cache_key(model.model_id, 1))
        key, ttl, payload = mock_redis.setex.await_args.args
        assert key == snapshot_cache_key(model.model_id, 1)
        assert ttl == 60
        assert json.loads(payload)["name"] == "Test Model"

    @pytest.mark.asyncio
    async def test_redis_hit_skips_database_load(
        self, mock_cache, mock_redis, make_model, session_factory
    ):
        model = await make_model([])
        cached = ModelSnapshot(
            model_id=model.model_id,
            name="From Redis",
            version=1,
            qualified_threshold=50,
            customer_threshold=100,
        )
        mock_redis.get.return_value = json.dumps(cached.to_dict(), default=str)
        store = RuleStore(cache=mock_cache, local_snapshots={})

        async with session_factory() as session:
            snapshot = await store.get_snapshot(session, model.model_id)

        assert snapshot.name == "From Redis"
        mock_redis.setex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_redis_payload_is_discarded(
        self, mock_cache, mock_redis, make_model, session_factory
    ):
        model = await make_model([])
        mock_redis.get.return_value = json.dumps({"model_id": "not-a-uuid"})
        store = RuleStore(cache=mock_cache, local_snapshots={})

        async with session_factory() as session:
            snapshot = await store.get_snapshot(session, model.model_id)

        assert snapshot.name == "Test Model"
        mock_redis.setex.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_in_process_snapshot_reused_while_version_unchanged(
        self, mock_cache, mock_redis, make_model, session_factory
    ):
        model = await make_model([])
        store = RuleStore(cache=mock_cache, local_snapshots={})

        async with session_factory() as session:
            first = await store.get_snapshot(session, model.model_id)
            second = await store.get_snapshot(session, model.model_id)

        assert first is second
        assert mock_redis.get.await_count == 1

    @pytest.mark.asyncio
    async def test_rule_edit_retires_old_snapshot(
        self, rule_store, make_model, session_factory
    ):
        model = await make_model(
            [{"name": "Opened", "event_type": "EMAIL_OPENED", "points": 5}]
        )
        async with session_factory() as session:
            before = await rule_store.get_snapshot(session, model.model_id)

        async with session_factory() as session:
            await ScoringAdminService(session, rule_store).update_rule(
                model.model_id, model.rules[0].rule_id, ScoringRuleUpdate(points=8)
            )

        async with session_factory() as session:
            after = await rule_store.get_snapshot(session, model.model_id)

        assert before.version == 1
        assert after.version == 2
        assert after.rules[0].points == 8

    @pytest.mark.asyncio
    async def test_model_and_rules_load_in_one_statement(
        self, make_model, session_factory, db_engine
    ):
        model = await make_model(
            [
                {"name": "Opened", "event_type": "EMAIL_OPENED", "points": 5},
                {"name": "Clicked", "event_type": "EMAIL_CLICKED", "points": 3},
            ]
        )
        statements = []

        def _record(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(db_engine.sync_engine, "before_cursor_execute", _record)
        try:
            async with session_factory() as session:
                loaded = await ScoringModelRepository(session).get_by_id(
                    model.model_id
                )
                snapshot = ModelSnapshot.from_model(loaded)
        finally:
            event.remove(db_engine.sync_engine, "before_cursor_execute", _record)

        assert len(statements) == 1
        assert snapshot.version == 1
        assert sorted(r.name for r in snapshot.rules) == ["Clicked", "Opened"]

    @pytest.mark.asyncio
    async def test_inactive_model_has_no_snapshot(
        self, rule_store, make_model, session_factory
    ):
        model = await make_model([])
        async with session_factory() as session:
            await ScoringAdminService(session, rule_store).update_model(
                model.model_id, ScoringModelUpdate(is_active=False)
            )

        async with session_factory() as session:
            assert await rule_store.get_snapshot(session, model.model_id) is None

    @pytest.mark.asyncio
    async def test_unknown_model_has_no_snapshot(self, rule_store, session_factory):
        async with session_factory() as session:
            assert await rule_store.get_snapshot(session, uuid4()) is None
