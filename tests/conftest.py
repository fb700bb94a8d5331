import json

import pytest
import pytest_asyncio
import httpx

from adcheck.main import app
from adcheck.api.deps import get_media_store, get_pipeline_context, get_settings
from adcheck.core.config import PipelineLimits, Settings
from adcheck.services.pipeline import PipelineContext
from adcheck.services.policy_cache import PolicyCache
from adcheck.services.policy_source import StaticPolicySource
from adcheck.services.media_types import media_kind
from adcheck.services.storage import MediaStore


POLICY_TEXT = """
Prohibited Content

Unsafe supplements
Ads must not promote the sale or use of unsafe supplements such as ephedra or anabolic steroids.

Misleading claims
Ads must not contain deceptive, false or misleading claims, including unrealistic financial returns.
"""

POLICIES = [
    {
        "category": "Prohibited Content",
        "name": "Unsafe supplements",
        "description": "Ads must not promote unsafe supplements.",
        "details": ["ephedra", "anabolic steroids"],
    },
    {
        "category": "Deceptive Practices",
        "name": "Misleading claims",
        "description": "Ads must not contain deceptive, false or misleading claims.",
    },
]

COMPLIANT = {
    "violated": False,
    "violations": [],
    "reasoning": "Natural cleaning products with no prohibited claims.",
}

VIOLATING = {
    "violated": True,
    "violations": [
        {
            "category": "Deceptive Practices",
            "name": "Misleading claims",
            "description": "Promises guaranteed, unrealistic financial returns.",
            "severity": "high",
        }
    ],
    "reasoning": "Guaranteed returns with no risk are misleading.",
    "recommendations": "Remove the guarantee and add risk disclosures.",
}

SUMMARY_JSON = {
    "summary": "A bottle of cleaning spray on a kitchen counter with the text 'naturally clean'.",
    "keyPoints": ["cleaning product", "natural ingredients claim"],
}


class FakeGenerationService:
    """
    Scripted stand-in for a model provider.
    Each call consumes the next reply; an exception instance is raised instead of returned.
    """

    def __init__(self, *replies, name="fake", accepted=None):
        self.name = name
        self.accepted = accepted
        self.replies = list(replies)
        self.calls = []

    def accepts(self, mime_type):
        if self.accepted is None:
            return media_kind(mime_type) is not None
        return mime_type in self.accepted

    async def generate(self, prompt, *, media=None, max_output_tokens=None):
        self.calls.append({"prompt": prompt, "media": media, "max_output_tokens": max_output_tokens})
        if not self.replies:
            raise AssertionError(f"unexpected generate() call #{len(self.calls)}")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def as_json(value) -> str:
    return json.dumps(value)


@pytest.fixture
def limits():
    return PipelineLimits()


@pytest.fixture
def policy_file(tmp_path):
    path = tmp_path / "policies.txt"
    path.write_text(POLICY_TEXT, encoding="utf-8")
    return path


@pytest.fixture
def make_context(policy_file, limits):
    def _make(summarizer=None, policy_service=None, *, source=None, cache=None):
        return PipelineContext(
            summarizer=summarizer or FakeGenerationService(name="summarizer"),
            policy_service=policy_service or FakeGenerationService(name="policy"),
            policy_source=source or StaticPolicySource(policy_file),
            policy_cache=cache or PolicyCache(),
            limits=limits,
            analysis_prompt="Describe this ad.",
        )
    return _make


@pytest.fixture
def media_store(tmp_path):
    return MediaStore(tmp_path / "media", max_bytes=1024 * 1024)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(upload_dir=str(tmp_path / "media"), max_upload_mb=1, cleanup_orphaned_media=True)


@pytest_asyncio.fixture
async def api(make_context, media_store, test_settings):
    """
    Yields (client, set_context). Tests install the PipelineContext they need
    before making requests; lifespan does not run under ASGITransport.
    """
    state = {"ctx": make_context()}

    def set_context(ctx):
        state["ctx"] = ctx
        return ctx

    app.dependency_overrides[get_pipeline_context] = lambda: state["ctx"]
    app.dependency_overrides[get_media_store] = lambda: media_store
    app.dependency_overrides[get_settings] = lambda: test_settings

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac, set_context

    app.dependency_overrides.clear()
