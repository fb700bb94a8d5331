from __future__ import annotations

from fastapi import Request

from adcheck.core.config import Settings, settings
from adcheck.services.generation import build_generation_service
from adcheck.services.http_client import PageHttpClient
from adcheck.services.pipeline import PipelineContext
from adcheck.services.policy_cache import PolicyCache
from adcheck.services.policy_source import build_policy_source
from adcheck.services.storage import MediaStore


def build_pipeline_context(cfg: Settings, client: PageHttpClient) -> PipelineContext:
    """
    Raises ConfigurationError when a configured provider has no API key.
    """
    cfg.validate_credentials()
    summarizer = build_generation_service(cfg.summarizer_provider, cfg)
    if cfg.policy_provider == cfg.summarizer_provider:
        policy_service = summarizer
    else:
        policy_service = build_generation_service(cfg.policy_provider, cfg)

    return PipelineContext(
        summarizer=summarizer,
        policy_service=policy_service,
        policy_source=build_policy_source(cfg, client),
        policy_cache=PolicyCache(ttl_seconds=cfg.policy_cache_ttl_seconds),
        limits=cfg.limits(),
        analysis_prompt=cfg.analysis_prompt,
    )


def get_settings() -> Settings:
    return settings


def get_pipeline_context(request: Request) -> PipelineContext:
    return request.app.state.pipeline


def get_media_store(request: Request) -> MediaStore:
    return request.app.state.media_store
