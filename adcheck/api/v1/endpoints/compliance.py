from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from adcheck.api.deps import get_pipeline_context
from adcheck.api.v1.endpoints.summarize import pipeline_response
from adcheck.schemas.pipeline import ComplianceCheckRequest
from adcheck.services.pipeline import PipelineContext, run_text_pipeline


router = APIRouter()


@router.post("/compliance/check")
async def check_summary(
    body: ComplianceCheckRequest,
    ctx: PipelineContext = Depends(get_pipeline_context),
) -> JSONResponse:
    result = await run_text_pipeline(ctx, body.summary)
    return pipeline_response(result, status_code=200 if result.success else 502)
