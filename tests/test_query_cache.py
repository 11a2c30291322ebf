"""
Unit tests for strategicflow.services.query_cache.

Coverage
--------
    - fetch-if-stale and cached reads
    - disabled queries never fetch
    - exact and tag invalidation (first-segment tags and declared tags)
    - errors are not cached
    - an invalidation during a fetch leaves the value stale
    - concurrent readers share one in-flight fetch
"""

import threading

import pytest

from strategicflow.core.exceptions import ApiRequestError
from strategicflow.services.query_cache import QueryCache, exact, normalize_key, tagged


class Counter:
    def __init__(self, value="v"):
        self.calls = 0
        self.value = value

    def __call__(self):
        self.calls += 1
        return f"{self.value}{self.calls}"


@pytest.fixture()
def cache():
    return QueryCache()


class TestKeys:
    def test_list_and_scalar_keys_normalised(self):
        assert normalize_key(["users", 1]) == ("users", 1)
        assert normalize_key("holidays") == ("holidays",)

    def test_non_primitive_segment_rejected(self):
        with pytest.raises(TypeError):
            normalize_key(("users", {"id": 1}))

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            normalize_key(())


class TestRead:
    def test_second_read_served_from_cache(self, cache):
        fetch = Counter()
        assert cache.read(("holidays",), fetch).data == "v1"
        assert cache.read(["holidays"], fetch).data == "v1"
        assert fetch.calls == 1
        assert cache.is_fresh(("holidays",))

    def test_disabled_query_never_fetches(self, cache):
        fetch = Counter()
        result = cache.read(("users", None, "pto"), fetch, enabled=False)
        assert result.status == "idle"
        assert result.data is None
        assert fetch.calls == 0

    def test_error_not_cached(self, cache):
        calls = []

        def failing():
            calls.append(1)
            raise ApiRequestError("500: boom", status_code=500)

        first = cache.read(("users",), failing)
        assert first.status == "error"
        assert not first.ok
        cache.read(("users",), failing)
        assert len(calls) == 2

    def test_error_keeps_previous_data(self, cache):
        cache.read(("users",), lambda: ["ada"])
        cache.invalidate(exact("users"))

        def failing():
            raise ApiRequestError("boom")

        result = cache.read(("users",), failing)
        assert result.status == "error"
        assert result.data == ["ada"]

    def test_peek_does_not_fetch(self, cache):
        assert cache.peek(("users",)).status == "idle"
        cache.read(("users",), lambda: [1])
        assert cache.peek(("users",)).data == [1]


class TestInvalidation:
    def test_exact_only_hits_one_key(self, cache):
        a, b = Counter("a"), Counter("b")
        cache.read(("workstreams", "s1"), a)
        cache.read(("workstreams", "s2"), b)
        assert cache.invalidate(exact("workstreams", "s1")) == [("workstreams", "s1")]
        cache.read(("workstreams", "s1"), a)
        cache.read(("workstreams", "s2"), b)
        assert (a.calls, b.calls) == (2, 1)

    def test_tag_hits_every_key_with_first_segment(self, cache):
        fetch = Counter()
        cache.read(("users",), fetch)
        cache.read(("users", "u1", "pto"), fetch)
        cache.read(("holidays",), fetch)
        hit = cache.invalidate(tagged("users"))
        assert set(hit) == {("users",), ("users", "u1", "pto")}

    def test_declared_tags(self, cache):
        cache.read(("users", "u1", "team-tags"), Counter(), tags=("team-tags",))
        cache.read(("team-tags",), Counter())
        hit = cache.invalidate(tagged("team-tags"))
        assert set(hit) == {("users", "u1", "team-tags"), ("team-tags",)}

    def test_refetch_replaces_wholesale(self, cache):
        values = iter([{"a": 1, "b": 2}, {"a": 3}])
        cache.read(("org",), lambda: next(values))
        cache.invalidate(exact("org"))
        assert cache.read(("org",), lambda: next(values)).data == {"a": 3}

    def test_invalidation_during_fetch_leaves_value_stale(self, cache):
        def fetch_and_invalidate():
            cache.invalidate(exact("users"))
            return ["stale"]

        result = cache.read(("users",), fetch_and_invalidate)
        assert result.data == ["stale"]
        assert not cache.is_fresh(("users",))
        assert cache.read(("users",), lambda: ["fresh"]).data == ["fresh"]


class TestConcurrency:
    def test_concurrent_readers_share_one_fetch(self, cache):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_fetch():
            calls.append(1)
            started.set()
            release.wait(5)
            return ["shared"]

        results = []
        owner = threading.Thread(target=lambda: results.append(cache.read(("users",), slow_fetch)))
        owner.start()
        started.wait(5)
        assert cache.peek(("users",)).is_loading

        waiter = threading.Thread(target=lambda: results.append(cache.read(("users",), slow_fetch)))
        waiter.start()
        release.set()
        owner.join(5)
        waiter.join(5)

        assert len(calls) == 1
        assert [r.data for r in results] == [["shared"], ["shared"]]
