from fastapi import APIRouter, Depends, Query

from adcheck.api.deps import get_pipeline_context
from adcheck.schemas.policy import InvalidateOut, PolicySetOut
from adcheck.services.pipeline import PipelineContext, resolve_policies


router = APIRouter()


@router.get("/policies", response_model=PolicySetOut)
async def get_policies(ctx: PipelineContext = Depends(get_pipeline_context)) -> PolicySetOut:
    """
    Current structured policy set (extracted on first use, then cached).
    """
    source_key, policies = await resolve_policies(ctx)
    entry = ctx.policy_cache.peek(source_key)
    return PolicySetOut(
        source_key=source_key,
        fetched_at=entry.fetched_at if entry else None,
        count=len(policies),
        policies=policies,
    )


@router.post("/policies/invalidate", response_model=InvalidateOut)
async def invalidate_policies(
    clear_all: bool = Query(default=False, alias="all"),
    ctx: PipelineContext = Depends(get_pipeline_context),
) -> InvalidateOut:
    source_key = await ctx.policy_source.cache_key()
    if clear_all:
        invalidated = ctx.policy_cache.clear()
    else:
        invalidated = ctx.policy_cache.invalidate(source_key)
    return InvalidateOut(invalidated=invalidated, source_key=source_key)
