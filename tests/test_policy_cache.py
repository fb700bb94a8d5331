import asyncio

import pytest

from adcheck.core.errors import ExtractionError
from adcheck.schemas.policy import PolicyItem
from adcheck.services.policy_cache import PolicyCache


POLICY_SET = [PolicyItem(category="Prohibited Content", name="Weapons", description="No weapons.")]


class Counter:
    def __init__(self):
        self.loads = 0
        self.extractions = 0

    async def load(self):
        self.loads += 1
        return "raw policy text"

    async def extract(self, raw):
        self.extractions += 1
        return POLICY_SET


@pytest.mark.asyncio
async def test_miss_then_hit():
    cache = PolicyCache()
    counter = Counter()

    first = await cache.get_or_extract("k", counter.load, counter.extract)
    second = await cache.get_or_extract("k", counter.load, counter.extract)

    assert first == second == POLICY_SET
    assert counter.extractions == 1
    entry = cache.peek("k")
    assert entry.source_key == "k"
    assert entry.content_hash
    assert len(entry.content_hash) == 64


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_extraction():
    cache = PolicyCache()
    release = asyncio.Event()
    calls = 0

    async def load():
        return "raw"

    async def extract(raw):
        nonlocal calls
        calls += 1
        await release.wait()
        return POLICY_SET

    waiters = [asyncio.create_task(cache.get_or_extract("k", load, extract)) for _ in range(5)]
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*waiters)

    assert calls == 1
    assert all(r == POLICY_SET for r in results)


@pytest.mark.asyncio
async def test_concurrent_waiters_share_the_same_failure():
    cache = PolicyCache()
    release = asyncio.Event()
    calls = 0

    async def load():
        return "raw"

    async def extract(raw):
        nonlocal calls
        calls += 1
        await release.wait()
        raise ExtractionError("bad json")

    waiters = [asyncio.create_task(cache.get_or_extract("k", load, extract)) for _ in range(3)]
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert calls == 1
    assert all(isinstance(r, ExtractionError) for r in results)


@pytest.mark.asyncio
async def test_failure_is_not_cached():
    cache = PolicyCache()
    attempts = 0

    async def load():
        return "raw"

    async def flaky(raw):
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise ExtractionError("bad json")
        return POLICY_SET

    with pytest.raises(ExtractionError):
        await cache.get_or_extract("k", load, flaky)
    assert cache.peek("k") is None

    assert await cache.get_or_extract("k", load, flaky) == POLICY_SET
    assert attempts == 2


@pytest.mark.asyncio
async def test_keys_are_independent():
    cache = PolicyCache()
    counter = Counter()
    await cache.get_or_extract("a", counter.load, counter.extract)
    await cache.get_or_extract("b", counter.load, counter.extract)
    assert counter.extractions == 2
    assert {e.source_key for e in cache.entries()} == {"a", "b"}


@pytest.mark.asyncio
async def test_invalidate_forces_reextraction():
    cache = PolicyCache()
    counter = Counter()
    await cache.get_or_extract("k", counter.load, counter.extract)

    assert cache.invalidate("k") is True
    assert cache.invalidate("k") is False

    await cache.get_or_extract("k", counter.load, counter.extract)
    assert counter.extractions == 2


@pytest.mark.asyncio
async def test_ttl_expiry():
    now = [1000.0]
    cache = PolicyCache(ttl_seconds=60, clock=lambda: now[0])
    counter = Counter()

    await cache.get_or_extract("k", counter.load, counter.extract)
    now[0] += 59
    await cache.get_or_extract("k", counter.load, counter.extract)
    assert counter.extractions == 1

    now[0] += 1
    assert cache.peek("k") is None
    await cache.get_or_extract("k", counter.load, counter.extract)
    assert counter.extractions == 2


@pytest.mark.asyncio
async def test_no_ttl_never_expires():
    now = [0.0]
    cache = PolicyCache(clock=lambda: now[0])
    counter = Counter()
    await cache.get_or_extract("k", counter.load, counter.extract)
    now[0] += 10 ** 9
    await cache.get_or_extract("k", counter.load, counter.extract)
    assert counter.extractions == 1


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_break_others():
    cache = PolicyCache()
    release = asyncio.Event()

    async def load():
        return "raw"

    async def extract(raw):
        await release.wait()
        return POLICY_SET

    first = asyncio.create_task(cache.get_or_extract("k", load, extract))
    second = asyncio.create_task(cache.get_or_extract("k", load, extract))
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    first.cancel()
    await asyncio.sleep(0)
    release.set()

    assert await second == POLICY_SET
    with pytest.raises(asyncio.CancelledError):
        await first
    assert cache.peek("k") is not None


@pytest.mark.asyncio
async def test_last_waiter_cancel_leaves_key_empty():
    cache = PolicyCache()
    started = asyncio.Event()
    counter = Counter()

    async def load():
        return "raw"

    async def hang(raw):
        started.set()
        await asyncio.Event().wait()

    waiter = asyncio.create_task(cache.get_or_extract("k", load, hang))
    await started.wait()
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    assert cache.peek("k") is None
    assert await cache.get_or_extract("k", counter.load, counter.extract) == POLICY_SET
    assert counter.extractions == 1


@pytest.mark.asyncio
async def test_invalidate_during_extraction_discards_result():
    cache = PolicyCache()
    started = asyncio.Event()
    release = asyncio.Event()

    async def load():
        return "raw"

    async def slow(raw):
        started.set()
        await release.wait()
        return POLICY_SET

    waiter = asyncio.create_task(cache.get_or_extract("k", load, slow))
    await started.wait()

    assert cache.invalidate("k") is True
    release.set()

    assert await waiter == POLICY_SET
    assert cache.peek("k") is None


@pytest.mark.asyncio
async def test_extraction_started_after_invalidate_is_stored():
    cache = PolicyCache()
    started = asyncio.Event()
    release = asyncio.Event()
    fresh = [PolicyItem(category="Prohibited Content", name="Weapons v2", description="Still no weapons.")]

    async def load():
        return "raw"

    async def old(raw):
        started.set()
        await release.wait()
        return POLICY_SET

    async def new(raw):
        await release.wait()
        return fresh

    stale = asyncio.create_task(cache.get_or_extract("k", load, old))
    await started.wait()
    cache.invalidate("k")
    current = asyncio.create_task(cache.get_or_extract("k", load, new))
    await asyncio.sleep(0)
    release.set()

    assert await stale == POLICY_SET
    assert await current == fresh
    assert cache.peek("k").policies == fresh


@pytest.mark.asyncio
async def test_clear_reports_whether_anything_was_dropped():
    cache = PolicyCache()
    counter = Counter()
    assert cache.clear() is False
    await cache.get_or_extract("k", counter.load, counter.extract)
    assert cache.clear() is True
    assert cache.entries() == []


@pytest.mark.asyncio
async def test_new_version_evicts_older_versions_of_same_document():
    cache = PolicyCache()
    counter = Counter()
    family = "file:/srv/policies.txt"

    await cache.get_or_extract(f"{family}#sha256:aaa", counter.load, counter.extract, family=family)
    await cache.get_or_extract("file:/srv/other.txt#sha256:aaa", counter.load, counter.extract, family="file:/srv/other.txt")
    await cache.get_or_extract(f"{family}#sha256:bbb", counter.load, counter.extract, family=family)

    keys = {e.source_key for e in cache.entries()}
    assert keys == {f"{family}#sha256:bbb", "file:/srv/other.txt#sha256:aaa"}
