from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from adcheck.core.errors import ConfigurationError


ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
DEFAULT_POLICY_FILE = Path(__file__).resolve().parents[1] / "resources" / "meta_ads_policy.txt"

Provider = Literal["gemini", "anthropic"]

DEFAULT_ANALYSIS_PROMPT = (
    "Analyze the provided video or image for potential Meta Ads policy violations and deliver a "
    "single-paragraph, 250-word descriptive summary. Detail the main visual content, actions, themes, "
    "and any visible text, symbols, logos, audio, and any other content. Clearly highlight any elements "
    "likely violating Meta Ads policies, such as prohibited products, misleading claims, violence, nudity, "
    "sensitive content, or controversial subjects. Assess the nature and likelihood of any potential "
    "violation based on Meta Ads guidelines, keeping the summary factual, objective, and focused on ad intention."
)


@dataclass(frozen=True)
class PipelineLimits:
    """
    Size and time bounds consumed by the pipeline functions.
    Built from Settings so the services never read global config directly.
    """
    max_media_bytes: int = 100 * 1024 * 1024
    max_prompt_chars: int = 1000
    max_summary_chars: int = 10_000
    max_policy_chars: int = 200_000
    excerpt_chars: int = 500
    extraction_max_tokens: int = 8000
    evaluation_max_tokens: int = 2000


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=ENV_PATH, env_file_encoding="utf-8", extra="ignore")

    # App
    env: str = "dev"
    service_name: str = "adcheck-api"

    # Generation providers
    gemini_api_key: SecretStr | None = None
    anthropic_api_key: SecretStr | None = None
    summarizer_provider: Provider = "gemini"
    policy_provider: Provider = "gemini"
    gemini_model: str = "gemini-2.0-flash"
    anthropic_model: str = "claude-3-7-sonnet-20250219"
    generation_timeout_seconds: float = 60.0

    # Policy source
    policy_source_mode: Literal["static", "live"] = "static"
    policy_file_path: Path = DEFAULT_POLICY_FILE
    policy_url: str = "https://transparency.meta.com/policies/ad-standards/"
    fetch_timeout_seconds: float = 30.0
    fetch_max_redirects: int = 5
    # None keeps extracted policies for the process lifetime
    policy_cache_ttl_seconds: float | None = None

    # Limits
    max_upload_mb: int = 100
    max_prompt_chars: int = 1000
    max_summary_chars: int = 10_000
    max_policy_chars: int = 200_000

    # Uploads
    upload_dir: str = "media"
    cleanup_orphaned_media: bool = False
    analysis_prompt: str = DEFAULT_ANALYSIS_PROMPT

    # Telemetry (disabled when unset)
    otlp_endpoint: str | None = None

    def limits(self) -> PipelineLimits:
        return PipelineLimits(
            max_media_bytes=self.max_upload_mb * 1024 * 1024,
            max_prompt_chars=self.max_prompt_chars,
            max_summary_chars=self.max_summary_chars,
            max_policy_chars=self.max_policy_chars,
        )

    def api_key_for(self, provider: Provider) -> str:
        secret = self.gemini_api_key if provider == "gemini" else self.anthropic_api_key
        value = secret.get_secret_value().strip() if secret else ""
        if not value:
            raise ConfigurationError(f"{provider.upper()}_API_KEY is not set (required by the {provider} provider)")
        return value

    def validate_credentials(self) -> None:
        """
        Fail fast at startup: every configured provider needs its key.
        """
        for provider in {self.summarizer_provider, self.policy_provider}:
            self.api_key_for(provider)


settings = Settings()
