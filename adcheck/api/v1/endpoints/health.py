import time

from fastapi import APIRouter, Depends

from adcheck.api.deps import get_settings
from adcheck.core.config import Settings
from adcheck.services.media_types import EXTENSION_MIME_TYPES, media_kind


router = APIRouter()

_STARTED = time.monotonic()


@router.get("/health")
async def health(cfg: Settings = Depends(get_settings)):
    return {
        "status": "ok",
        "service": cfg.service_name,
        "uptimeSeconds": round(time.monotonic() - _STARTED, 3),
    }


@router.get("/")
async def describe(cfg: Settings = Depends(get_settings)):
    by_kind: dict[str, list[str]] = {"videos": [], "images": []}
    for ext, mime_type in EXTENSION_MIME_TYPES.items():
        by_kind["videos" if media_kind(mime_type) == "video" else "images"].append(ext)

    return {
        "service": cfg.service_name,
        "description": "Video/image summarization with advertising policy compliance checking",
        "endpoints": {
            "health": "GET /v1/health",
            "summarize": "POST /v1/summarize",
            "complianceCheck": "POST /v1/compliance/check",
            "policies": "GET /v1/policies",
            "invalidatePolicies": "POST /v1/policies/invalidate",
        },
        "supportedFormats": by_kind,
        "maxFileSize": f"{cfg.max_upload_mb}MB",
        "policySource": cfg.policy_source_mode,
    }
