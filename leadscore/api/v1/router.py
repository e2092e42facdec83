from fastapi import APIRouter

from leadscore.api.v1.endpoints import health, models, scoring

router = APIRouter(prefix="/api/v1")

router.include_router(scoring.router)
router.include_router(models.router)
router.include_router(health.router)
