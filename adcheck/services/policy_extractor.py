from __future__ import annotations

import json
import logging

from pydantic import ValidationError as SchemaValidationError

from adcheck.core.config import PipelineLimits
from adcheck.core.errors import ExtractionError, ParseError, ValidationError
from adcheck.schemas.policy import PolicyItem, PolicySet
from adcheck.services.generation import GenerationService
from adcheck.services.structured_output import parse_structured


log = logging.getLogger(__name__)


EXTRACTION_PROMPT = """You are an expert at analyzing Meta (Facebook) advertising policies. Please carefully read through the following policy content and extract ALL the specific advertising policies and rules.

For each policy, provide:
1. Policy Category (e.g., "Prohibited Content", "Restricted Content", "Community Standards", etc.)
2. Policy Name/Title
3. Brief Description of what is prohibited or restricted
4. Key details or examples if provided

Format your response as a JSON array where each policy is an object with these fields:
- category: string
- name: string
- description: string
- details: string (optional)

Content to analyze:
{content}

Please be thorough and extract every discrete policy mentioned, including but not limited to:
- Prohibited content types
- Restricted content requirements
- Community standards violations
- Discriminatory practices
- Misleading/fraudulent content
- Adult content restrictions
- Violence and safety policies
- Any other advertising restrictions

Return only the JSON array, no additional text."""


def build_extraction_prompt(content: str) -> str:
    return EXTRACTION_PROMPT.format(content=content)


async def extract_policies(service: GenerationService, raw_text: str, *, limits: PipelineLimits) -> PolicySet:
    """
    Turn unstructured policy text into an ordered, non-empty PolicySet.

    No fallback: an unparseable answer raises
    ExtractionError instead of being read as "no policies".
    """
    content = (raw_text or "").strip()
    if not content:
        raise ValidationError("policy text is empty")
    if len(content) > limits.max_policy_chars:
        log.warning(
            "policy extractor: policy text truncated from %d to %d chars", len(content), limits.max_policy_chars
        )
        content = content[: limits.max_policy_chars]

    log.info("policy extractor: extracting from %d chars via %s", len(content), service.name)
    response = await service.generate(
        build_extraction_prompt(content),
        max_output_tokens=limits.extraction_max_tokens,
    )

    try:
        items = parse_structured(response, expect=list, excerpt_chars=limits.excerpt_chars)
    except ParseError as e:
        log.error("policy extractor: could not parse %s response: %s", service.name, e.message)
        raise ExtractionError(
            f"failed to parse policies JSON from {service.name} response: {e.message}",
            excerpt=(response or "").strip(),
            excerpt_chars=limits.excerpt_chars,
        ) from e

    if not items:
        raise ExtractionError(f"{service.name} returned an empty policy list")

    policies: PolicySet = []
    for index, item in enumerate(items):
        try:
            policies.append(PolicyItem.model_validate(item))
        except SchemaValidationError as e:
            raise ExtractionError(
                f"policy #{index} has an invalid shape ({e.error_count()} errors)",
                excerpt=json.dumps(item, ensure_ascii=False, default=str),
                excerpt_chars=limits.excerpt_chars,
            ) from e

    log.info("policy extractor: extracted %d policies", len(policies))
    return policies
