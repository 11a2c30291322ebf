"""
Cached query layer: server data keyed by ordered segment tuples.

Provides:
  - read(key, fetcher) with fetch-if-stale semantics
  - one shared in-flight request per key (concurrent readers wait for it)
  - per-query gating (enabled=False never fetches)
  - tag-based invalidation: every entry carries a set of tags (its first
    key segment plus any declared tags); mutations declare which keys or
    tags they dirty

Entries are only ever replaced wholesale by a refetch, never merged.
Cached values stay fresh until invalidated; there is no TTL.

Usage:
    cache = QueryCache()
    result = cache.read(("users", user_id, "pto"), lambda: gw.get_json(...))
    cache.invalidate(exact("users", user_id, "pto"), tagged("workstreams"))
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from strategicflow.core.exceptions import ApiRequestError

logger = logging.getLogger(__name__)


# ── Keys & invalidation declarations ─────────────────────────────────────


def normalize_key(key) -> tuple:
    """Turn a key (tuple, list or single segment) into a hashable tuple."""
    if isinstance(key, (list, tuple)):
        segments = tuple(key)
    else:
        segments = (key,)
    if not segments:
        raise ValueError("cache key must have at least one segment")
    for seg in segments:
        if seg is not None and not isinstance(seg, (str, int, float, bool)):
            raise TypeError(f"cache key segments must be primitives, got {type(seg).__name__}")
    return segments


@dataclass(frozen=True)
class Invalidation:
    """One invalidation target: an exact key or a tag."""

    key: tuple | None = None
    tag: str | None = None

    def matches(self, entry_key: tuple, entry_tags: frozenset) -> bool:
        if self.key is not None:
            return entry_key == self.key
        return self.tag in entry_tags


def exact(*segments) -> Invalidation:
    """Invalidate exactly one key."""
    return Invalidation(key=normalize_key(segments))


def tagged(tag: str) -> Invalidation:
    """Invalidate every entry carrying *tag*."""
    return Invalidation(tag=tag)


# ── Results & entries ────────────────────────────────────────────────────


@dataclass
class QueryResult:
    """Outcome of a read.

    status is "idle" (disabled query), "success" or "error".
    """

    key: tuple
    data: Any = None
    status: str = "idle"
    error: Exception | None = None
    is_loading: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "success"


class _InFlight:
    def __init__(self):
        self.done = threading.Event()
        self.result: QueryResult | None = None


class _CacheEntry:
    __slots__ = ("key", "tags", "data", "has_data", "fresh", "generation", "fetched_at", "inflight")

    def __init__(self, key: tuple, tags: Iterable[str]):
        self.key = key
        self.tags = frozenset({str(key[0]), *tags})
        self.data: Any = None
        self.has_data = False
        self.fresh = False
        self.generation = 0
        self.fetched_at: float | None = None
        self.inflight: _InFlight | None = None


# ── Cache ────────────────────────────────────────────────────────────────


class QueryCache:
    """In-memory query cache shared by all panels of one console."""

    def __init__(self) -> None:
        self._entries: dict[tuple, _CacheEntry] = {}
        self._lock = threading.Lock()

    def read(
        self,
        key,
        fetcher: Callable[[], Any],
        *,
        enabled: bool = True,
        tags: Iterable[str] = (),
    ) -> QueryResult:
        """Return cached data for *key*, fetching it first if stale.

        Readers that arrive while another reader is fetching the same key
        block until that fetch finishes and receive its result.
        """
        key = normalize_key(key)
        if not enabled:
            return QueryResult(key=key, status="idle")

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _CacheEntry(key, tags)
            elif tags:
                entry.tags = entry.tags | frozenset(tags)

            if entry.fresh:
                return QueryResult(key=key, data=entry.data, status="success")

            if entry.inflight is not None:
                waiter, owner = entry.inflight, False
            else:
                waiter = entry.inflight = _InFlight()
                owner = True
            generation = entry.generation

        if not owner:
            waiter.done.wait()
            return waiter.result

        result = QueryResult(key=key, status="error", error=RuntimeError("fetch aborted"))
        try:
            data = fetcher()
        except ApiRequestError as exc:
            logger.warning("Query %s failed: %s", key, exc)
            with self._lock:
                stale = entry.data if entry.has_data else None
            result = QueryResult(key=key, data=stale, status="error", error=exc)
        else:
            with self._lock:
                entry.data = data
                entry.has_data = True
                entry.fetched_at = time.time()
                # An invalidation during the fetch leaves the value stale.
                entry.fresh = entry.generation == generation
            result = QueryResult(key=key, data=data, status="success")
            logger.debug("Query %s fetched", key)
        finally:
            with self._lock:
                entry.inflight = None
            waiter.result = result
            waiter.done.set()
        return result

    def peek(self, key) -> QueryResult:
        """Return the current state of *key* without fetching."""
        key = normalize_key(key)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return QueryResult(key=key, status="idle")
            return QueryResult(
                key=key,
                data=entry.data,
                status="success" if entry.has_data else "idle",
                is_loading=entry.inflight is not None,
            )

    def is_fresh(self, key) -> bool:
        key = normalize_key(key)
        with self._lock:
            entry = self._entries.get(key)
            return bool(entry and entry.fresh)

    def invalidate(self, *invalidations: Invalidation) -> list[tuple]:
        """Mark every entry matching any declaration stale.

        Returns the keys that were invalidated.
        """
        hit = []
        with self._lock:
            for entry in self._entries.values():
                if any(inv.matches(entry.key, entry.tags) for inv in invalidations):
                    entry.fresh = False
                    entry.generation += 1
                    hit.append(entry.key)
        if hit:
            logger.debug("Invalidated %d cache key(s): %s", len(hit), hit)
        return hit

    def keys(self) -> list[tuple]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        """Drop every entry (mainly for testing)."""
        with self._lock:
            self._entries.clear()
