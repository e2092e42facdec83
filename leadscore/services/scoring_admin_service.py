import logging
from typing import List
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leadscore.core.exceptions import (
    ScoringModelNotFoundError,
    ScoringRuleNotFoundError,
    ValidationError,
)
from leadscore.models.scoring_model import ScoringModel
from leadscore.models.scoring_rule import ScoringRule
from leadscore.repositories.scoring_model_repository import ScoringModelRepository
from leadscore.repositories.scoring_rule_repository import ScoringRuleRepository
from leadscore.schemas.scoring_model import (
    ScoringModelCreate,
    ScoringModelUpdate,
    ScoringRuleCreate,
    ScoringRuleUpdate,
)
from leadscore.services.lead_scoring import translate_db_error
from leadscore.services.rule_store import RuleStore

logger = logging.getLogger(__name__)


def _rule_values(data: ScoringRuleCreate) -> dict:
    values = data.model_dump()
    values["event_type"] = data.event_type.value
    values["conditions"] = [c.model_dump(mode="json") for c in data.conditions]
    return values


class ScoringAdminService:
    """Create, edit and delete scoring models and their rules.

    Every write bumps the owning model's ``version`` in the same
    transaction, which retires cached rule snapshots of the old version.
    At most one model is the default: promoting a model un-defaults the
    previous holder atomically.
    """

    def __init__(self, db: AsyncSession, rule_store: RuleStore | None = None) -> None:
        self._db = db
        self._models = ScoringModelRepository(db)
        self._rules = ScoringRuleRepository(db)
        self._rule_store = rule_store or RuleStore()

    async def _commit(self) -> None:
        try:
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise translate_db_error(exc) from exc

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    async def list_models(self) -> List[ScoringModel]:
        return await self._models.list_all()

    async def get_model(self, model_id: UUID) -> ScoringModel:
        model = await self._models.get_by_id(model_id)
        if model is None:
            raise ScoringModelNotFoundError(f"Scoring model {model_id} not found")
        return model

    async def create_model(self, data: ScoringModelCreate) -> ScoringModel:
        try:
            if data.is_default:
                await self._models.clear_default()
            model = await self._models.create(
                rules=[_rule_values(rule) for rule in data.rules],
                **data.model_dump(exclude={"rules"}),
            )
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise translate_db_error(exc) from exc
        await self._commit()
        logger.info(
            "Created scoring model '%s' (%s) with %d rules%s",
            model.name,
            model.model_id,
            len(data.rules),
            " as default" if model.is_default else "",
        )
        return await self.get_model(model.model_id)

    async def update_model(
        self, model_id: UUID, data: ScoringModelUpdate
    ) -> ScoringModel:
        model = await self.get_model(model_id)
        changes = data.model_dump(exclude_unset=True)

        qualified = changes.get("qualified_threshold", model.qualified_threshold)
        customer = changes.get("customer_threshold", model.customer_threshold)
        if qualified is None or customer is None:
            raise ValidationError("Thresholds cannot be null")
        if customer < qualified:
            raise ValidationError(
                f"customer_threshold ({customer}) must be greater than or equal "
                f"to qualified_threshold ({qualified})"
            )
        for key in ("name", "is_active", "is_default"):
            if key in changes and changes[key] is None:
                raise ValidationError(f"{key} cannot be null")

        try:
            if changes.get("is_default") and not model.is_default:
                await self._models.clear_default(except_model_id=model_id)
            for key, value in changes.items():
                setattr(model, key, value)
            await self._models.bump_version(model)
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise translate_db_error(exc) from exc
        await self._commit()
        logger.info("Updated scoring model %s to v%d", model_id, model.version)
        return await self.get_model(model_id)

    async def delete_model(self, model_id: UUID) -> None:
        model = await self.get_model(model_id)
        await self._models.delete(model)
        await self._commit()
        self._rule_store.forget(model_id)
        logger.info("Deleted scoring model %s", model_id)

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    async def list_rules(self, model_id: UUID) -> List[ScoringRule]:
        model = await self.get_model(model_id)
        return list(model.rules)

    async def get_rule(self, model_id: UUID, rule_id: UUID) -> ScoringRule:
        await self.get_model(model_id)
        rule = await self._rules.get_for_model(model_id, rule_id)
        if rule is None:
            raise ScoringRuleNotFoundError(
                f"Scoring rule {rule_id} not found on model {model_id}"
            )
        return rule

    async def create_rule(
        self, model_id: UUID, data: ScoringRuleCreate
    ) -> ScoringRule:
        model = await self.get_model(model_id)
        try:
            rule = await self._rules.create(model_id=model_id, **_rule_values(data))
            await self._models.bump_version(model)
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise translate_db_error(exc) from exc
        await self._commit()
        logger.info(
            "Added rule '%s' (%+d on %s) to model %s",
            rule.name,
            rule.points,
            rule.event_type,
            model_id,
        )
        return rule

    async def update_rule(
        self, model_id: UUID, rule_id: UUID, data: ScoringRuleUpdate
    ) -> ScoringRule:
        rule = await self.get_rule(model_id, rule_id)
        changes = data.model_dump(exclude_unset=True)
        for key in ("name", "event_type", "points", "is_active", "conditions"):
            if key in changes and changes[key] is None:
                raise ValidationError(f"{key} cannot be null")

        decay_days = changes.get("decay_days", rule.decay_days)
        decay_points = changes.get("decay_points", rule.decay_points)
        if decay_points is not None and decay_days is None:
            raise ValidationError("decay_points requires decay_days")

        if "event_type" in changes:
            changes["event_type"] = data.event_type.value
        if "conditions" in changes:
            changes["conditions"] = [
                c.model_dump(mode="json") for c in data.conditions
            ]

        model = await self.get_model(model_id)
        try:
            for key, value in changes.items():
                setattr(rule, key, value)
            await self._models.bump_version(model)
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise translate_db_error(exc) from exc
        await self._commit()
        logger.info("Updated rule %s on model %s (v%d)", rule_id, model_id, model.version)
        return rule

    async def delete_rule(self, model_id: UUID, rule_id: UUID) -> None:
        rule = await self.get_rule(model_id, rule_id)
        model = await self.get_model(model_id)
        await self._rules.delete(rule)
        await self._models.bump_version(model)
        await self._commit()
        logger.info("Deleted rule %s from model %s", rule_id, model_id)
