import asyncio

import pytest

from icreactor.cache import QueryCache, QueryOptions


def test_prefix_invalidation():
    cache = QueryCache()
    cache.set(("c1", "greet", "a"), 1)
    cache.set(("c1", "greet", "b"), 2)
    cache.set(("c1", "balance"), 3)
    cache.set(("c2", "greet"), 4)
    assert cache.invalidate(("c1", "greet")) == 2
    assert ("c1", "balance") in cache
    assert cache.invalidate(("c1",)) == 1
    assert cache.keys() == [("c2", "greet")]
    assert cache.invalidate() == 1
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_concurrent_fetches_share_one_call():
    cache = QueryCache()
    calls = 0
    release = asyncio.Event()

    async def _fetch():
        nonlocal calls
        calls += 1
        await release.wait()
        return "value"

    first = asyncio.create_task(cache.get_or_fetch(("k",), _fetch))
    second = asyncio.create_task(cache.get_or_fetch(("k",), _fetch))
    await asyncio.sleep(0)
    release.set()
    assert await asyncio.gather(first, second) == ["value", "value"]
    assert calls == 1
    assert cache.get(("k",)) == "value"


@pytest.mark.asyncio
async def test_failures_are_not_cached():
    cache = QueryCache()

    async def _fail():
        raise RuntimeError("down")

    with pytest.raises(RuntimeError):
        await cache.get_or_fetch(("k",), _fail)
    assert ("k",) not in cache


@pytest.mark.asyncio
async def test_ensure_query_data_hits_cache():
    cache = QueryCache()
    cache.set(("k",), "cached")

    async def _never():
        raise AssertionError("should not fetch")

    assert await cache.ensure_query_data(QueryOptions(("k",), _never)) == "cached"
