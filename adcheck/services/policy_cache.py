from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

from adcheck.schemas.policy import PolicyCacheEntry, PolicySet
from adcheck.services.policy_source import sha256_text


log = logging.getLogger(__name__)


Loader = Callable[[], Awaitable[str]]
Extractor = Callable[[str], Awaitable[PolicySet]]


@dataclass
class _Flight:
    task: asyncio.Task
    waiters: int = 0


class PolicyCache:
    """
    Process-wide, read-through cache of extracted policy sets.

    - Keyed by source identity; one entry per key.
    - Concurrent misses for the same key share a single load+extract task
      (single-flight); every waiter gets the same result or the same error.
    - Only a successful extraction writes an entry. Failures and
      cancellations leave the key empty so the next call starts over.
    - invalidate() also detaches a running extraction; its waiters still get
      the result but it is not stored.
    - Storing a key evicts older keys of the same family (earlier versions
      of the same policy document).
    - A waiter being cancelled does not affect the others; the shared task
      is cancelled only when its last waiter goes away.
    - Entries never expire unless ttl_seconds is set; invalidate() is the
      manual override.
    """

    def __init__(self, *, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[PolicyCacheEntry, float]] = {}
        self._inflight: dict[str, _Flight] = {}
        self._lock = asyncio.Lock()

    def _fresh(self, source_key: str) -> PolicyCacheEntry | None:
        hit = self._entries.get(source_key)
        if hit is None:
            return None
        entry, stored_at = hit
        if self._ttl is not None and self._clock() - stored_at >= self._ttl:
            log.info("policy cache: entry expired for %s", source_key)
            del self._entries[source_key]
            return None
        return entry

    async def get_or_extract(
        self,
        source_key: str,
        loader: Loader,
        extractor: Extractor,
        *,
        family: str | None = None,
    ) -> PolicySet:
        async with self._lock:
            entry = self._fresh(source_key)
            if entry is not None:
                return entry.policies

            flight = self._inflight.get(source_key)
            if flight is None:
                log.info("policy cache: miss for %s, extracting", source_key)
                flight = _Flight(task=asyncio.create_task(self._fill(source_key, loader, extractor, family)))
                self._inflight[source_key] = flight
            else:
                log.info("policy cache: joining in-flight extraction for %s", source_key)
            flight.waiters += 1

        try:
            return await asyncio.shield(flight.task)
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                log.info("policy cache: last waiter left, cancelling extraction for %s", source_key)
                self._forget(source_key, flight.task)
                flight.task.cancel()

    async def _fill(self, source_key: str, loader: Loader, extractor: Extractor, family: str | None) -> PolicySet:
        try:
            raw = await loader()
            policies = await extractor(raw)
            if not self._current(source_key):
                log.info("policy cache: %s was invalidated during extraction, result not stored", source_key)
                return policies
            entry = PolicyCacheEntry(
                source_key=source_key,
                policies=policies,
                fetched_at=datetime.now(timezone.utc),
                content_hash=sha256_text(raw),
            )
            self._entries[source_key] = (entry, self._clock())
            log.info("policy cache: stored %d policies for %s", len(policies), source_key)
            if family is not None:
                self._evict_family(family, keep=source_key)
            return policies
        finally:
            self._forget(source_key, asyncio.current_task())

    def _current(self, source_key: str) -> bool:
        flight = self._inflight.get(source_key)
        return flight is not None and flight.task is asyncio.current_task()

    def _evict_family(self, family: str, *, keep: str) -> None:
        stale = [k for k in self._entries if k != keep and (k == family or k.startswith(family + "#"))]
        for key in stale:
            del self._entries[key]
            log.info("policy cache: evicted superseded %s", key)

    def _forget(self, source_key: str, task: asyncio.Task | None) -> None:
        flight = self._inflight.get(source_key)
        if flight is not None and flight.task is task:
            del self._inflight[source_key]

    def peek(self, source_key: str) -> PolicyCacheEntry | None:
        return self._fresh(source_key)

    def entries(self) -> list[PolicyCacheEntry]:
        return [entry for entry, _ in self._entries.values()]

    def invalidate(self, source_key: str) -> bool:
        removed = self._entries.pop(source_key, None) is not None
        detached = self._inflight.pop(source_key, None) is not None
        if removed or detached:
            log.info("policy cache: invalidated %s (entry=%s, in-flight=%s)", source_key, removed, detached)
        return removed or detached

    def clear(self) -> bool:
        had_any = bool(self._entries or self._inflight)
        self._entries.clear()
        self._inflight.clear()
        return had_any
