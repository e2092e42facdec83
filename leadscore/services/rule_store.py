"""Versioned, read-mostly cache of scoring models and their rules.

A :class:`ModelSnapshot` is an immutable copy of one model and all of
its rules taken from a single load, tagged with the model ``version``.
Every change to a model or one of its rules bumps that version, so a
snapshot never has to be invalidated in place: lookups simply miss and
load the new version.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from leadscore.core.cache import CacheService
from leadscore.core.config import settings
from leadscore.models.contact import Contact
from leadscore.models.scoring_model import ScoringModel
from leadscore.models.scoring_rule import ScoringRule
from leadscore.repositories.scoring_model_repository import ScoringModelRepository

logger = logging.getLogger(__name__)

# Process-wide snapshots, keyed by model id; replaced when the version moves
_LOCAL_SNAPSHOTS: Dict[UUID, "ModelSnapshot"] = {}


def snapshot_cache_key(model_id: UUID, version: int) -> str:
    return f"scoring:model:{model_id}:v{version}"


@dataclass(frozen=True)
class RuleSnapshot:
    rule_id: UUID
    name: str
    event_type: str
    points: int
    is_active: bool
    decay_days: Optional[int] = None
    decay_points: Optional[int] = None
    max_occurrences: Optional[int] = None
    cooldown_hours: Optional[int] = None
    conditions: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def effective_decay_points(self) -> Optional[int]:
        """Points reversed on decay; defaults to the rule's own points."""
        if self.decay_days is None:
            return None
        return self.points if self.decay_points is None else self.decay_points

    @classmethod
    def from_rule(cls, rule: ScoringRule) -> "RuleSnapshot":
        return cls(
            rule_id=rule.rule_id,
            name=rule.name,
            event_type=rule.event_type,
            points=rule.points,
            is_active=bool(rule.is_active),
            decay_days=rule.decay_days,
            decay_points=rule.decay_points,
            max_occurrences=rule.max_occurrences,
            cooldown_hours=rule.cooldown_hours,
            conditions=tuple(dict(c) for c in (rule.conditions or [])),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleSnapshot":
        return cls(
            **{
                **data,
                "rule_id": UUID(str(data["rule_id"])),
                "conditions": tuple(dict(c) for c in data.get("conditions") or []),
            }
        )


@dataclass(frozen=True)
class ModelSnapshot:
    model_id: UUID
    name: str
    version: int
    qualified_threshold: int
    customer_threshold: int
    rules: Tuple[RuleSnapshot, ...] = field(default_factory=tuple)

    def rules_for(self, event_type: str) -> Tuple[RuleSnapshot, ...]:
        """Active rules listening for *event_type*, in definition order."""
        return tuple(
            rule
            for rule in self.rules
            if rule.is_active and rule.event_type == event_type
        )

    @classmethod
    def from_model(cls, model: ScoringModel) -> "ModelSnapshot":
        return cls(
            model_id=model.model_id,
            name=model.name,
            version=model.version,
            qualified_threshold=model.qualified_threshold,
            customer_threshold=model.customer_threshold,
            rules=tuple(RuleSnapshot.from_rule(rule) for rule in model.rules),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelSnapshot":
        return cls(
            model_id=UUID(str(data["model_id"])),
            name=data["name"],
            version=int(data["version"]),
            qualified_threshold=int(data["qualified_threshold"]),
            customer_threshold=int(data["customer_threshold"]),
            rules=tuple(RuleSnapshot.from_dict(r) for r in data.get("rules") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RuleStore:
    """Resolve the scoring model for a contact and serve rule snapshots.

    Lookups go in-process snapshot → Redis → database.  When Redis is
    unavailable the :class:`CacheService` no-ops and every miss falls
    through to the database.
    """

    def __init__(
        self,
        cache: Optional[CacheService] = None,
        ttl: Optional[int] = None,
        local_snapshots: Optional[Dict[UUID, ModelSnapshot]] = None,
    ) -> None:
        self._cache = cache or CacheService(None)
        self._ttl = settings.REDIS_CACHE_TTL if ttl is None else ttl
        self._local = _LOCAL_SNAPSHOTS if local_snapshots is None else local_snapshots

    async def resolve_model_id(
        self, session: AsyncSession, contact: Contact
    ) -> Optional[UUID]:
        """Return the contact's active override model, else the active default."""
        repo = ScoringModelRepository(session)
        if contact.scoring_model_id is not None:
            if await repo.get_version(contact.scoring_model_id) is not None:
                return contact.scoring_model_id
            logger.debug(
                "Contact %s override model %s is inactive or missing, using default",
                contact.contact_id,
                contact.scoring_model_id,
            )
        return await repo.get_default_model_id()

    async def get_snapshot(
        self, session: AsyncSession, model_id: UUID
    ) -> Optional[ModelSnapshot]:
        """Return the snapshot for the model's current version.

        ``None`` when the model does not exist or is inactive.
        """
        repo = ScoringModelRepository(session)
        version = await repo.get_version(model_id)
        if version is None:
            return None

        snapshot = self._local.get(model_id)
        if snapshot is not None and snapshot.version == version:
            return snapshot

        data = await self._cache.get_json(snapshot_cache_key(model_id, version))
        if data is not None:
            try:
                snapshot = ModelSnapshot.from_dict(data)
            except (KeyError, TypeError, ValueError):
                logger.warning("Discarding malformed snapshot for model %s", model_id)
                snapshot = None

        if snapshot is None or snapshot.version != version:
            model = await repo.get_by_id(model_id)
            if model is None:
                return None
            snapshot = ModelSnapshot.from_model(model)
            await self._cache.set_json(
                snapshot_cache_key(model_id, snapshot.version),
                snapshot.to_dict(),
                ttl=self._ttl,
            )
            logger.debug(
                "Loaded model %s v%d with %d rules",
                model_id,
                snapshot.version,
                len(snapshot.rules),
            )

        self._local[model_id] = snapshot
        return snapshot

    async def snapshot_for_contact(
        self, session: AsyncSession, contact: Contact
    ) -> Optional[ModelSnapshot]:
        model_id = await self.resolve_model_id(session, contact)
        if model_id is None:
            return None
        return await self.get_snapshot(session, model_id)

    def forget(self, model_id: UUID) -> None:
        """Drop the in-process snapshot (used after a model is deleted)."""
        self._local.pop(model_id, None)
