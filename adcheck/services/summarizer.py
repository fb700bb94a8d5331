from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from adcheck.core.config import PipelineLimits
from adcheck.core.errors import ParseError, ServiceError, StorageError, ValidationError
from adcheck.schemas.media import (
    NO_KEY_POINTS,
    RAW_RESPONSE_KEY_POINT,
    RAW_RESPONSE_NOTE,
    AnalysisResult,
    FileMetadata,
    MediaAsset,
    MediaKind,
)
from adcheck.services.generation import GenerationService, MediaPayload
from adcheck.services.media_types import media_kind
from adcheck.services.structured_output import parse_structured


log = logging.getLogger(__name__)


SUMMARY_PROMPT = """
Please analyze the following {kind} and provide a comprehensive response based on this prompt: "{prompt}"

IMPORTANT: You must respond with ONLY a valid JSON object in this exact format:
{{
  "summary": "Your detailed analysis here",
  "keyPoints": ["point1", "point2", "point3"]
}}

Do not include any text before or after the JSON. Do not use markdown formatting. Return only the JSON object.
"""


def validate_summary_request(*, media: bytes, mime_type: str, prompt: str, limits: PipelineLimits) -> MediaKind:
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("prompt must be a non-empty string")
    if len(prompt) > limits.max_prompt_chars:
        raise ValidationError(f"prompt is too long (max {limits.max_prompt_chars} characters)")
    if not media:
        raise ValidationError("media payload is empty")
    if len(media) > limits.max_media_bytes:
        raise ValidationError(f"media exceeds maximum size of {limits.max_media_bytes // (1024 * 1024)}MB")

    kind = media_kind(mime_type)
    if kind is None:
        raise ValidationError(f"unsupported media type: {mime_type}")
    return kind


def build_summary_prompt(kind: MediaKind, prompt: str) -> str:
    return SUMMARY_PROMPT.format(kind=kind, prompt=prompt.strip())


def _clean_key_points(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(p).strip() for p in value if p is not None and str(p).strip()]


def read_summary_response(text: str, *, limits: PipelineLimits) -> tuple[str, list[str], str | None]:
    """
    Returns (summary, key_points, note). Never raises on formatting: if the
    model ignored the JSON instructions the raw text becomes the summary.
    """
    raw = text.strip()
    try:
        data = parse_structured(raw, expect=dict, excerpt_chars=limits.excerpt_chars)
    except ParseError:
        log.warning("summarizer: unstructured model output (%d chars), using raw text", len(raw))
        return raw[: limits.max_summary_chars], [RAW_RESPONSE_KEY_POINT], RAW_RESPONSE_NOTE

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        log.warning("summarizer: JSON without a usable summary field, using raw text")
        return raw[: limits.max_summary_chars], [RAW_RESPONSE_KEY_POINT], RAW_RESPONSE_NOTE

    key_points = _clean_key_points(data.get("keyPoints", data.get("key_points")))
    return summary.strip()[: limits.max_summary_chars], key_points or [NO_KEY_POINTS], None


async def summarize(
    service: GenerationService,
    *,
    media: bytes,
    mime_type: str,
    prompt: str,
    file_name: str,
    limits: PipelineLimits,
) -> AnalysisResult:
    kind = validate_summary_request(media=media, mime_type=mime_type, prompt=prompt, limits=limits)
    if not service.accepts(mime_type):
        raise ValidationError(f"{service.name}: unsupported media type: {mime_type}")

    log.info("summarizer: %s %s (%d bytes) via %s", kind, file_name, len(media), service.name)
    text = await service.generate(
        build_summary_prompt(kind, prompt),
        media=MediaPayload(data=media, mime_type=mime_type),
    )
    if not text or not text.strip():
        raise ServiceError(f"{service.name}: generation returned an empty response")

    summary, key_points, note = read_summary_response(text, limits=limits)

    return AnalysisResult(
        summary=summary,
        key_points=key_points,
        note=note,
        file_metadata=FileMetadata(
            file_name=file_name,
            file_size=len(media),
            mime_type=mime_type,
            media_type=kind,
            analyzed_at=datetime.now(timezone.utc),
        ),
    )


async def summarize_asset(
    service: GenerationService,
    asset: MediaAsset,
    *,
    prompt: str,
    limits: PipelineLimits,
) -> AnalysisResult:
    try:
        media = await asyncio.to_thread(asset.path.read_bytes)
    except OSError as e:
        raise StorageError(f"stored media is not readable: {asset.identifier}: {e}") from e

    return await summarize(
        service,
        media=media,
        mime_type=asset.mime_type,
        prompt=prompt,
        file_name=asset.original_name,
        limits=limits,
    )
