from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import httpx

from adcheck.core.errors import cap_text


# The policy page serves a stripped shell to non-browser agents
BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Cache-Control": "max-age=0",
}


@dataclass(frozen=True)
class FetchResult:
    ok: bool
    status_code: int | None
    text: str = ""
    final_url: str | None = None

    error_code: str | None = None
    error_message: str | None = None

    elapsed_ms: int | None = None


class PageHttpClient:
    """
    Shared HTTP client for fetching policy pages.

    - One AsyncClient instance (connection pooling).
    - Follows a bounded number of redirects.
    - No retries: failures come back as a structured FetchResult.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        max_redirects: int = 5,
        max_error_body_chars: int = 500,
        default_headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._max_body = max_error_body_chars
        headers = dict(BROWSER_HEADERS)
        headers.update(dict(default_headers or {}))
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
            max_redirects=max_redirects,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_text(self, url: str, *, headers: Mapping[str, str] | None = None) -> FetchResult:
        try:
            resp = await self._client.get(url, headers=dict(headers or {}))
        except httpx.TimeoutException as e:
            return FetchResult(ok=False, status_code=None, error_code="TIMEOUT", error_message=str(e) or "timed out")
        except httpx.TooManyRedirects as e:
            return FetchResult(ok=False, status_code=None, error_code="TOO_MANY_REDIRECTS", error_message=str(e))
        except httpx.RequestError as e:
            # DNS errors, connection refused, TLS, etc.
            return FetchResult(ok=False, status_code=None, error_code="REQUEST_ERROR", error_message=str(e))

        elapsed_ms = int(resp.elapsed.total_seconds() * 1000) if resp.elapsed else None

        if 200 <= resp.status_code < 400:
            return FetchResult(
                ok=True,
                status_code=resp.status_code,
                text=resp.text,
                final_url=str(resp.url),
                elapsed_ms=elapsed_ms,
            )

        return FetchResult(
            ok=False,
            status_code=resp.status_code,
            final_url=str(resp.url),
            error_code="HTTP_STATUS",
            error_message=f"HTTP {resp.status_code}: {cap_text(resp.text, max_chars=self._max_body)}",
            elapsed_ms=elapsed_ms,
        )
