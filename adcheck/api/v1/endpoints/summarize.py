from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from adcheck.api.deps import get_media_store, get_pipeline_context, get_settings
from adcheck.core.config import Settings
from adcheck.core.errors import AdCheckError
from adcheck.schemas.pipeline import PipelineResult
from adcheck.services.pipeline import PipelineContext, run_media_pipeline
from adcheck.services.storage import MediaStore, UploadRejected


log = logging.getLogger(__name__)
router = APIRouter()


def pipeline_response(result: PipelineResult, *, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@router.post("/summarize", status_code=201)
async def summarize_upload(
    file: UploadFile | None = File(default=None),
    prompt: str | None = Form(default=None),
    ctx: PipelineContext = Depends(get_pipeline_context),
    store: MediaStore = Depends(get_media_store),
    cfg: Settings = Depends(get_settings),
) -> JSONResponse:
    """
    Upload one video or image, summarize it and policy-check the summary.

    - 201: summary + verdict, or summary + policyCheck.error when only the policy check failed
    - 400: upload rejected (NO_FILE_PROVIDED, FILE_TOO_LARGE, INVALID_FILE_TYPE, VALIDATION_ERROR)
    - 500: summarization failed (ANALYSIS_FAILED); fileInfo still included
    """
    if file is None or not file.filename:
        raise UploadRejected("NO_FILE_PROVIDED", "No file provided. Please upload a video or image file.")

    # Reject on declared size before buffering the body
    if file.size is not None:
        store.check_upload(original_name=file.filename, size=file.size)

    data = await file.read()
    asset = await asyncio.to_thread(
        store.save_upload,
        original_name=file.filename,
        data=data,
        content_type=file.content_type,
        accept=ctx.summarizer.accepts,
    )

    try:
        result = await run_media_pipeline(ctx, asset, prompt=prompt)
    except AdCheckError:
        store.remove(asset)
        raise

    if result.media_orphaned and cfg.cleanup_orphaned_media:
        store.remove(asset)

    return pipeline_response(result, status_code=201 if result.success else 500)
