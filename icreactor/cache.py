"""In-memory query cache: the caching collaborator the reactor hands keys to.

Keys are tuples (``(canister_id, method, args_key, *extra)``). Invalidation
works on key prefixes so a whole canister, a method or one argument set can be
dropped at once. Concurrent ``get_or_fetch`` calls for the same key share one
in-flight fetch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable

from loguru import logger

QueryKey = tuple[Hashable, ...]
Fetcher = Callable[[], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class QueryOptions:
    """A cache key plus the deferred call that produces its value."""

    query_key: QueryKey
    query_fn: Fetcher


def _has_prefix(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    def __init__(self) -> None:
        self._data: dict[QueryKey, Any] = {}
        self._pending: dict[QueryKey, asyncio.Future[Any]] = {}

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: QueryKey, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: QueryKey, value: Any) -> None:
        self._data[key] = value

    def keys(self) -> list[QueryKey]:
        return list(self._data)

    def invalidate(self, prefix: QueryKey = ()) -> int:
        """Drop every entry whose key starts with ``prefix``; returns how many."""
        stale = [key for key in self._data if _has_prefix(key, prefix)]
        for key in stale:
            del self._data[key]
        if stale:
            logger.debug("Invalidated {} cached queries under {}", len(stale), prefix)
        return len(stale)

    def clear(self) -> None:
        self._data.clear()

    async def get_or_fetch(self, key: QueryKey, fetcher: Fetcher) -> Any:
        """
        Run ``fetcher`` and cache its value under ``key``.

        A second caller arriving while the first fetch is running awaits the
        same future instead of issuing another call. Failures are not cached.
        """
        pending = self._pending.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        fut: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[key] = fut
        try:
            value = await fetcher()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as exc:
            fut.set_exception(exc)
            # Mark retrieved so an unshared failure does not warn on GC.
            fut.exception()
            raise
        else:
            self._data[key] = value
            fut.set_result(value)
            return value
        finally:
            self._pending.pop(key, None)

    async def ensure_query_data(self, options: QueryOptions) -> Any:
        """Cached value for ``options.query_key``, fetching it on a miss."""
        if options.query_key in self._data:
            return self._data[options.query_key]
        return await self.get_or_fetch(options.query_key, options.query_fn)
