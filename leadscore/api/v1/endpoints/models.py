from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response

from leadscore.schemas.scoring_model import (
    ScoringModelCreate,
    ScoringModelOut,
    ScoringModelUpdate,
    ScoringRuleCreate,
    ScoringRuleOut,
    ScoringRuleUpdate,
)
from leadscore.services.scoring_admin_service import ScoringAdminService
from leadscore.api.deps import get_scoring_admin_service

router = APIRouter(prefix="/scoring/models", tags=["Scoring Models"])


@router.get("", response_model=List[ScoringModelOut])
async def list_models(
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> List[ScoringModelOut]:
    models = await service.list_models()
    return [ScoringModelOut.model_validate(m) for m in models]


@router.post("", response_model=ScoringModelOut, status_code=201)
async def create_model(
    request_body: ScoringModelCreate,
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> ScoringModelOut:
    """Create a scoring model, optionally with its initial rules.

    Creating a model with ``is_default=true`` takes the default flag
    away from the current default model.
    """
    model = await service.create_model(request_body)
    return ScoringModelOut.model_validate(model)


@router.get("/{model_id}", response_model=ScoringModelOut)
async def get_model(
    model_id: UUID,
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> ScoringModelOut:
    return ScoringModelOut.model_validate(await service.get_model(model_id))


@router.patch("/{model_id}", response_model=ScoringModelOut)
async def update_model(
    model_id: UUID,
    request_body: ScoringModelUpdate,
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> ScoringModelOut:
    model = await service.update_model(model_id, request_body)
    return ScoringModelOut.model_validate(model)


@router.delete("/{model_id}", status_code=204)
async def delete_model(
    model_id: UUID,
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> Response:
    """Delete a model and its rules; pinned contacts fall back to the default."""
    await service.delete_model(model_id)
    return Response(status_code=204)


@router.get("/{model_id}/rules", response_model=List[ScoringRuleOut])
async def list_rules(
    model_id: UUID,
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> List[ScoringRuleOut]:
    rules = await service.list_rules(model_id)
    return [ScoringRuleOut.model_validate(r) for r in rules]


@router.post("/{model_id}/rules", response_model=ScoringRuleOut, status_code=201)
async def create_rule(
    model_id: UUID,
    request_body: ScoringRuleCreate,
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> ScoringRuleOut:
    rule = await service.create_rule(model_id, request_body)
    return ScoringRuleOut.model_validate(rule)


@router.get("/{model_id}/rules/{rule_id}", response_model=ScoringRuleOut)
async def get_rule(
    model_id: UUID,
    rule_id: UUID,
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> ScoringRuleOut:
    return ScoringRuleOut.model_validate(await service.get_rule(model_id, rule_id))


@router.patch("/{model_id}/rules/{rule_id}", response_model=ScoringRuleOut)
async def update_rule(
    model_id: UUID,
    rule_id: UUID,
    request_body: ScoringRuleUpdate,
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> ScoringRuleOut:
    """Edit a rule; past ledger entries and staged decays are untouched."""
    rule = await service.update_rule(model_id, rule_id, request_body)
    return ScoringRuleOut.model_validate(rule)


@router.delete("/{model_id}/rules/{rule_id}", status_code=204)
async def delete_rule(
    model_id: UUID,
    rule_id: UUID,
    service: ScoringAdminService = Depends(get_scoring_admin_service),
) -> Response:
    await service.delete_rule(model_id, rule_id)
    return Response(status_code=204)
