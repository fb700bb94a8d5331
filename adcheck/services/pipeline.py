"""
Request orchestration: summarize -> load cached policies -> evaluate.

Stages per media request:

    received -> summarizing -> summarized -> evaluating -> completed
                                                        -> completed_with_evaluation_degraded
             (summarization failure)                    -> failed

Evaluation-side failures (policy source, extraction, evaluation) are absorbed
for media requests: the summary is still returned and the failure is reported
in policyCheck.error. Text-only requests have nothing partial to return, so
the same failures produce success=false.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial

from adcheck.core.config import DEFAULT_ANALYSIS_PROMPT, PipelineLimits
from adcheck.core.errors import AdCheckError, ValidationError
from adcheck.schemas.media import FileInfo, MediaAsset
from adcheck.schemas.pipeline import PipelineResult, PipelineStage, PolicyCheckError
from adcheck.schemas.policy import PolicySet
from adcheck.services.compliance import evaluate, validate_summary
from adcheck.services.generation import GenerationService
from adcheck.services.policy_cache import PolicyCache
from adcheck.services.policy_extractor import extract_policies
from adcheck.services.policy_source import PolicySource
from adcheck.services.summarizer import summarize_asset


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineContext:
    summarizer: GenerationService
    policy_service: GenerationService
    policy_source: PolicySource
    policy_cache: PolicyCache
    limits: PipelineLimits = field(default_factory=PipelineLimits)
    analysis_prompt: str = DEFAULT_ANALYSIS_PROMPT


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _stage(stage: PipelineStage, subject: str) -> PipelineStage:
    log.info("pipeline: %s -> %s", subject, stage.value)
    return stage


async def resolve_policies(ctx: PipelineContext) -> tuple[str, PolicySet]:
    """
    Returns (source_key, policies) for one consistent snapshot of the source.
    """
    snapshot = await ctx.policy_source.resolve()
    policies = await ctx.policy_cache.get_or_extract(
        snapshot.key,
        snapshot.load,
        partial(extract_policies, ctx.policy_service, limits=ctx.limits),
        family=snapshot.family,
    )
    return snapshot.key, policies


async def load_policies(ctx: PipelineContext) -> PolicySet:
    _, policies = await resolve_policies(ctx)
    return policies


async def run_media_pipeline(ctx: PipelineContext, asset: MediaAsset, *, prompt: str | None = None) -> PipelineResult:
    subject = asset.identifier
    file_info = FileInfo.from_asset(asset)
    label = asset.kind.capitalize()

    _stage(PipelineStage.RECEIVED, subject)
    _stage(PipelineStage.SUMMARIZING, subject)
    try:
        analysis = await summarize_asset(
            ctx.summarizer,
            asset,
            prompt=prompt or ctx.analysis_prompt,
            limits=ctx.limits,
        )
    except ValidationError:
        raise
    except AdCheckError as e:
        log.error("pipeline: summarization failed for %s: %s", subject, e.details)
        return PipelineResult(
            success=False,
            message="File uploaded successfully but analysis failed",
            error="ANALYSIS_FAILED",
            details=e.details,
            file_info=file_info,
            timestamp=_now(),
            stage=_stage(PipelineStage.FAILED, subject),
            media_orphaned=True,
        )

    _stage(PipelineStage.SUMMARIZED, subject)
    _stage(PipelineStage.EVALUATING, subject)
    try:
        policies = await load_policies(ctx)
        verdict = await evaluate(ctx.policy_service, analysis.summary, policies, limits=ctx.limits)
    except AdCheckError as e:
        log.warning("pipeline: policy check failed for %s (%s): %s", subject, e.code, e.details)
        return PipelineResult(
            success=True,
            message=f"{label} analyzed successfully, but policy check failed",
            file_info=file_info,
            analysis=analysis,
            policy_check=PolicyCheckError(details=e.details),
            timestamp=_now(),
            stage=_stage(PipelineStage.COMPLETED_WITH_EVALUATION_DEGRADED, subject),
        )

    return PipelineResult(
        success=True,
        message=f"{label} analyzed and policy-checked successfully",
        file_info=file_info,
        analysis=analysis,
        policy_check=verdict,
        timestamp=_now(),
        stage=_stage(PipelineStage.COMPLETED, subject),
    )


async def run_text_pipeline(ctx: PipelineContext, summary: str) -> PipelineResult:
    subject = "text summary"
    # Reject bad input before any policy fetch or model call
    summary = validate_summary(summary, limits=ctx.limits)

    _stage(PipelineStage.EVALUATING, subject)
    try:
        policies = await load_policies(ctx)
        verdict = await evaluate(ctx.policy_service, summary, policies, limits=ctx.limits)
    except ValidationError:
        raise
    except AdCheckError as e:
        log.error("pipeline: policy check failed for %s (%s): %s", subject, e.code, e.details)
        return PipelineResult(
            success=False,
            message="Policy check failed",
            error=e.code,
            details=e.details,
            timestamp=_now(),
            stage=_stage(PipelineStage.FAILED, subject),
        )

    return PipelineResult(
        success=True,
        message="Summary policy-checked successfully",
        policy_check=verdict,
        timestamp=_now(),
        stage=_stage(PipelineStage.COMPLETED, subject),
    )
