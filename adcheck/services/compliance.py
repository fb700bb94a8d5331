from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from adcheck.core.config import PipelineLimits
from adcheck.core.errors import EvaluationError, ParseError, ResponseShapeError, ValidationError
from adcheck.schemas.policy import PolicySet
from adcheck.schemas.verdict import ComplianceVerdict
from adcheck.services.generation import GenerationService
from adcheck.services.structured_output import parse_structured


log = logging.getLogger(__name__)


EVALUATION_PROMPT = """
You are a Meta Ads policy compliance expert. Analyze the following content summary against Meta's advertising policies and determine if any policies are violated.

META ADS POLICY RULES:
{policies}

CONTENT SUMMARY TO ANALYZE:
"{summary}"

INSTRUCTIONS:
1. Carefully review the content summary against each policy category
2. Identify any specific policy violations
3. Return your analysis in the following JSON format:
{{
  "violated": true/false,
  "violations": [
    {{
      "category": "Policy category name",
      "name": "Specific policy name",
      "description": "Specific violation description",
      "severity": "high/medium/low"
    }}
  ],
  "reasoning": "Brief explanation of the analysis",
  "recommendations": "Suggestions for making the ad compliant (if applicable)"
}}

IMPORTANT:
- Be thorough but fair in your analysis
- Only flag actual policy violations
- Provide specific policy categories that are violated
- If no violations are found, set "violated" to false and "violations" to an empty array
- Ensure the response is valid JSON format only
"""


def validate_summary(summary: Any, *, limits: PipelineLimits) -> str:
    if not isinstance(summary, str):
        raise ValidationError("summary must be a non-empty string")
    if not summary.strip():
        raise ValidationError("summary cannot be empty")
    if len(summary) > limits.max_summary_chars:
        raise ValidationError(f"summary is too long (max {limits.max_summary_chars:,} characters)")
    return summary


def build_evaluation_prompt(summary: str, policies: PolicySet) -> str:
    rules = json.dumps([p.model_dump(exclude_none=True) for p in policies], indent=2, ensure_ascii=False)
    return EVALUATION_PROMPT.format(policies=rules, summary=summary)


def _shape_problem(e: SchemaValidationError) -> str:
    first = e.errors()[0]
    where = ".".join(str(p) for p in first["loc"]) or "verdict"
    return f"{where}: {first['msg']}"


async def evaluate(
    service: GenerationService,
    summary: str,
    policies: PolicySet,
    *,
    limits: PipelineLimits,
) -> ComplianceVerdict:
    """
    Judge a content summary against a policy set.

    Parse failures raise EvaluationError and bad shapes raise
    ResponseShapeError; neither is ever turned into a "no violation" verdict.
    """
    summary = validate_summary(summary, limits=limits)
    if not policies:
        raise ValidationError("policy set is empty")

    log.info("evaluator: checking %d-char summary against %d policies via %s", len(summary), len(policies), service.name)
    response = await service.generate(
        build_evaluation_prompt(summary, policies),
        max_output_tokens=limits.evaluation_max_tokens,
    )

    try:
        data = parse_structured(response, expect=dict, excerpt_chars=limits.excerpt_chars)
    except ParseError as e:
        log.error("evaluator: could not parse %s response: %s", service.name, e.message)
        raise EvaluationError(
            f"failed to parse compliance result JSON from {service.name} response",
            excerpt=(response or "").strip(),
            excerpt_chars=limits.excerpt_chars,
        ) from e

    if not isinstance(data.get("violations"), list):
        raise ResponseShapeError(
            "violations: must be an array",
            excerpt=json.dumps(data, ensure_ascii=False, default=str),
            excerpt_chars=limits.excerpt_chars,
        )

    # checkedAt comes from our clock, never from the model
    payload = {k: v for k, v in data.items() if k not in ("checkedAt", "checked_at")}
    try:
        verdict = ComplianceVerdict.model_validate({**payload, "checked_at": datetime.now(timezone.utc)})
    except SchemaValidationError as e:
        raise ResponseShapeError(
            f"invalid compliance result: {_shape_problem(e)}",
            excerpt=json.dumps(data, ensure_ascii=False, default=str),
            excerpt_chars=limits.excerpt_chars,
        ) from e

    log.info("evaluator: violated=%s violations=%d", verdict.violated, len(verdict.violations))
    return verdict
