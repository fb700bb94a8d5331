from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from adcheck.api.deps import build_pipeline_context
from adcheck.api.v1.router import router as v1_router
from adcheck.core.config import settings
from adcheck.core.errors import AdCheckError
from adcheck.core.telemetry import setup_telemetry
from adcheck.schemas.common import ErrorResponse
from adcheck.services.http_client import PageHttpClient
from adcheck.services.storage import MediaStore


log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = PageHttpClient(
        timeout_seconds=settings.fetch_timeout_seconds,
        max_redirects=settings.fetch_max_redirects,
    )
    try:
        app.state.pipeline = build_pipeline_context(settings, client)
        app.state.media_store = MediaStore(settings.upload_dir, max_bytes=settings.limits().max_media_bytes)
        log.info(
            "startup: policy source %s, summarizer=%s, policy=%s",
            app.state.pipeline.policy_source.describe(), settings.summarizer_provider, settings.policy_provider,
        )
        yield
    finally:
        await client.aclose()


app = FastAPI(title="Ad Policy Check API", version="0.1.0", lifespan=lifespan)

setup_telemetry(app, settings)
app.include_router(v1_router)


@app.exception_handler(AdCheckError)
async def adcheck_error_handler(request: Request, exc: AdCheckError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.details)
    body = ErrorResponse(message=exc.message, error=exc.code, details=exc.excerpt)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(by_alias=True, exclude_none=True))
