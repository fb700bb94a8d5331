from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Protocol

import anthropic
import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from adcheck.core.config import Provider, Settings
from adcheck.core.errors import ServiceError, ValidationError
from adcheck.services.media_types import media_kind


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaPayload:
    data: bytes
    mime_type: str


class GenerationService(Protocol):
    """
    "prompt (+ optional binary payload) -> text".
    Implementations enforce their own timeout and raise ServiceError on
    transport/auth failures. The returned text is untrusted: it may be empty
    or not JSON at all.
    """
    name: str

    def accepts(self, mime_type: str) -> bool:
        ...

    async def generate(
        self,
        prompt: str,
        *,
        media: MediaPayload | None = None,
        max_output_tokens: int | None = None,
    ) -> str:
        ...


class GeminiGenerationService:
    name = "gemini"

    def __init__(self, *, api_key: str, model: str, timeout_seconds: float = 60.0):
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._timeout = timeout_seconds

    def accepts(self, mime_type: str) -> bool:
        return media_kind(mime_type) is not None

    async def generate(
        self,
        prompt: str,
        *,
        media: MediaPayload | None = None,
        max_output_tokens: int | None = None,
    ) -> str:
        contents: list[types.Part | str] = [prompt]
        if media is not None:
            contents.append(types.Part.from_bytes(data=media.data, mime_type=media.mime_type))

        config = types.GenerateContentConfig(max_output_tokens=max_output_tokens) if max_output_tokens else None

        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(model=self._model, contents=contents, config=config),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ServiceError(f"gemini: request timed out after {self._timeout:g}s") from e
        except genai_errors.APIError as e:
            raise ServiceError(f"gemini: API error {e.code}: {e.message}") from e
        except httpx.HTTPError as e:
            raise ServiceError(f"gemini: transport error: {e}") from e

        return response.text or ""


class AnthropicGenerationService:
    name = "anthropic"

    # Anthropic accepts still images only
    IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

    def __init__(self, *, api_key: str, model: str, timeout_seconds: float = 60.0, max_output_tokens: int = 4000):
        # Retries are off: a timeout is reported, never silently repeated
        self._client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)
        self._model = model
        self._timeout = timeout_seconds
        self._default_max_tokens = max_output_tokens

    def accepts(self, mime_type: str) -> bool:
        return mime_type in self.IMAGE_TYPES

    async def generate(
        self,
        prompt: str,
        *,
        media: MediaPayload | None = None,
        max_output_tokens: int | None = None,
    ) -> str:
        content: list[dict] = [{"type": "text", "text": prompt}]
        if media is not None:
            if not self.accepts(media.mime_type):
                raise ValidationError(f"anthropic: unsupported media type for generation: {media.mime_type}")
            content.append({
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media.mime_type,
                    "data": base64.b64encode(media.data).decode("utf-8"),
                },
            })

        try:
            message = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._model,
                    max_tokens=max_output_tokens or self._default_max_tokens,
                    messages=[{"role": "user", "content": content}],
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ServiceError(f"anthropic: request timed out after {self._timeout:g}s") from e
        except anthropic.APIStatusError as e:
            raise ServiceError(f"anthropic: API error {e.status_code}: {e.message}") from e
        except anthropic.APIError as e:
            # connection failures and client-side timeouts
            raise ServiceError(f"anthropic: transport error: {e}") from e

        return "".join(block.text for block in message.content if block.type == "text")


def build_generation_service(provider: Provider, settings: Settings) -> GenerationService:
    api_key = settings.api_key_for(provider)
    if provider == "gemini":
        service: GenerationService = GeminiGenerationService(
            api_key=api_key,
            model=settings.gemini_model,
            timeout_seconds=settings.generation_timeout_seconds,
        )
    else:
        service = AnthropicGenerationService(
            api_key=api_key,
            model=settings.anthropic_model,
            timeout_seconds=settings.generation_timeout_seconds,
        )
    log.info("generation: %s service ready", service.name)
    return service
