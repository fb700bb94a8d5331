from fastapi import APIRouter

from adcheck.api.v1.endpoints.health import router as health_router
from adcheck.api.v1.endpoints.summarize import router as summarize_router
from adcheck.api.v1.endpoints.compliance import router as compliance_router
from adcheck.api.v1.endpoints.policies import router as policies_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(summarize_router, tags=["summarize"])
router.include_router(compliance_router, tags=["compliance"])
router.include_router(policies_router, tags=["policies"])
