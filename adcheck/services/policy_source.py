from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Protocol

from adcheck.core.config import Settings
from adcheck.core.errors import EmptyContentError, FetchError, NotFoundError, SourceError
from adcheck.services.html_text import html_to_text
from adcheck.services.http_client import PageHttpClient


log = logging.getLogger(__name__)


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class PolicySnapshot:
    """
    One consistent view of a source: the cache key, the key prefix shared by
    every version of the same document, and a loader that yields exactly the
    text the key was derived from.
    """
    key: str
    family: str
    load: Callable[[], Awaitable[str]]


class PolicySource(Protocol):
    """
    Supplies raw policy text plus a stable identity for caching.
    """

    async def resolve(self) -> PolicySnapshot:
        ...

    async def load(self) -> str:
        ...

    async def cache_key(self) -> str:
        ...

    def describe(self) -> str:
        ...


class StaticPolicySource:
    def __init__(self, path: Path | str):
        self._path = Path(path).expanduser().resolve()

    def describe(self) -> str:
        return f"file:{self._path}"

    def _read(self) -> str:
        if not self._path.is_file():
            raise NotFoundError(f"policy document not found: {self._path}")
        try:
            return self._path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise SourceError(f"policy document is not valid UTF-8: {self._path}") from e
        except OSError as e:
            raise NotFoundError(f"policy document is not readable: {self._path}: {e}") from e

    async def resolve(self) -> PolicySnapshot:
        # Single read: key and text always describe the same content
        text = (await asyncio.to_thread(self._read)).strip()

        async def load_text() -> str:
            if not text:
                raise EmptyContentError(f"policy document is empty: {self._path}")
            return text

        return PolicySnapshot(
            key=f"{self.describe()}#sha256:{sha256_text(text)}",
            family=self.describe(),
            load=load_text,
        )

    async def load(self) -> str:
        return await (await self.resolve()).load()

    async def cache_key(self) -> str:
        return (await self.resolve()).key


class LivePolicySource:
    def __init__(self, url: str, client: PageHttpClient):
        self._url = url
        self._client = client

    def describe(self) -> str:
        return f"url:{self._url}"

    async def load(self) -> str:
        log.info("policy source: fetching %s", self._url)
        result = await self._client.get_text(self._url)
        if not result.ok:
            raise FetchError(
                f"failed to fetch policies from {self._url}: {result.error_code}: {result.error_message}"
            )

        text = await asyncio.to_thread(html_to_text, result.text)
        if not text:
            raise EmptyContentError(f"no text content extracted from {self._url}")

        log.info(
            "policy source: fetched %s (status=%s, %d chars of text, %sms)",
            result.final_url, result.status_code, len(text), result.elapsed_ms,
        )
        return text

    async def resolve(self) -> PolicySnapshot:
        return PolicySnapshot(key=self.describe(), family=self.describe(), load=self.load)

    async def cache_key(self) -> str:
        return self.describe()


def build_policy_source(settings: Settings, client: PageHttpClient) -> PolicySource:
    if settings.policy_source_mode == "live":
        return LivePolicySource(settings.policy_url, client)
    return StaticPolicySource(settings.policy_file_path)
