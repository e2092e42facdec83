import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import joinedload, selectinload

from leadscore.models.scoring_model import ScoringModel
from leadscore.models.scoring_rule import ScoringRule
from leadscore.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ScoringModelRepository(BaseRepository):
    """Encapsulates queries against the ``scoring_models`` table."""

    async def list_all(self) -> List[ScoringModel]:
        """Return every model with its rules, newest first."""
        result = await self._db.execute(
            select(ScoringModel)
            .options(selectinload(ScoringModel.rules))
            .order_by(ScoringModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_by_id(self, model_id: UUID) -> Optional[ScoringModel]:
        """Return one model with its rules, or ``None``.

        Model and rules come from one joined SELECT, so the rules always
        belong to the returned ``version``.
        """
        result = await self._db.execute(
            select(ScoringModel)
            .options(joinedload(ScoringModel.rules))
            .where(ScoringModel.model_id == model_id)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalar_one_or_none()

    async def get_version(self, model_id: UUID) -> Optional[int]:
        """Return the current version of an *active* model, or ``None``."""
        result = await self._db.execute(
            select(ScoringModel.version).where(
                ScoringModel.model_id == model_id,
                ScoringModel.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def get_default_model_id(self) -> Optional[UUID]:
        """Return the id of the active default model, if there is one."""
        result = await self._db.execute(
            select(ScoringModel.model_id)
            .where(
                ScoringModel.is_default.is_(True),
                ScoringModel.is_active.is_(True),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create(self, rules: Optional[List[dict]] = None, **kwargs) -> ScoringModel:
        """Insert a model (and optional rule dicts) and flush to get ids."""
        model = ScoringModel(**kwargs)
        model.rules = [ScoringRule(**rule) for rule in (rules or [])]
        return await self._add(model)

    async def clear_default(self, except_model_id: Optional[UUID] = None) -> None:
        """Un-default every model except *except_model_id*.

        Runs in the caller's transaction so the hand-over of the default
        flag is atomic.
        """
        stmt = update(ScoringModel).where(ScoringModel.is_default.is_(True))
        if except_model_id is not None:
            stmt = stmt.where(ScoringModel.model_id != except_model_id)
        await self._db.execute(
            stmt.values(is_default=False, version=ScoringModel.version + 1)
        )

    async def bump_version(self, model: ScoringModel) -> None:
        """Invalidate cached rule snapshots for *model*."""
        model.version = (model.version or 0) + 1

    async def delete(self, model: ScoringModel) -> None:
        await self._db.delete(model)

    async def seed_default_if_empty(self) -> Optional[ScoringModel]:
        """Insert the default scoring model when no model exists.

        Uses a row-count check so this is idempotent: calling it when a
        model already exists is a cheap no-op.  The canonical definition
        lives in ``leadscore.core.default_scoring_rules``.
        """
        from leadscore.core.default_scoring_rules import (
            DEFAULT_SCORING_MODEL,
            DEFAULT_SCORING_RULES,
        )

        existing = await self._db.execute(select(ScoringModel.model_id).limit(1))
        if existing.scalar_one_or_none() is not None:
            return None

        logger.info("scoring_models table is empty, seeding default model")
        model = await self.create(rules=DEFAULT_SCORING_RULES, **DEFAULT_SCORING_MODEL)
        logger.info("Seeded default model with %d rules", len(DEFAULT_SCORING_RULES))
        return model
