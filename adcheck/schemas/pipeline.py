from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import ConfigDict, Field

from adcheck.schemas.common import CamelModel
from adcheck.schemas.media import AnalysisResult, FileInfo
from adcheck.schemas.verdict import ComplianceVerdict


POLICY_CHECK_FAILED = "Policy analysis failed"


class PipelineStage(str, Enum):
    RECEIVED = "received"
    SUMMARIZING = "summarizing"
    SUMMARIZED = "summarized"
    EVALUATING = "evaluating"
    COMPLETED = "completed"
    COMPLETED_WITH_EVALUATION_DEGRADED = "completed_with_evaluation_degraded"
    FAILED = "failed"


class PolicyCheckError(CamelModel):
    error: str = POLICY_CHECK_FAILED
    details: str


class PipelineResult(CamelModel):
    """
    Final per-request result. stage and media_orphaned are for the caller
    (logging, upload cleanup) and are not serialized.
    """
    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    error: str | None = None
    details: str | None = None
    file_info: FileInfo | None = None
    analysis: AnalysisResult | None = None
    policy_check: ComplianceVerdict | PolicyCheckError | None = None
    timestamp: datetime

    stage: PipelineStage = Field(exclude=True)
    media_orphaned: bool = Field(default=False, exclude=True)


class ComplianceCheckRequest(CamelModel):
    summary: str
