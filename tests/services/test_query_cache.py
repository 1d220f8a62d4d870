import threading

import pytest

from guardlens.services import query_cache
from guardlens.services.query_cache import QueryCache, make_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.calls


def test_key_is_stable_across_dict_order():
    a = make_key(["inferences", "k", {"page": 0, "page_size": 10}])
    b = make_key(["inferences", "k", {"page_size": 10, "page": 0}])
    assert a == b
    assert a != make_key(["inferences", "other", {"page": 0, "page_size": 10}])


def test_key_does_not_contain_credential():
    assert "secret" not in make_key(["inferences", "secret", {}])


def test_fresh_entry_skips_fetch():
    clock = FakeClock()
    cache = QueryCache(stale_time_s=30, time_fn=clock)
    fn = Counter()

    assert cache.fetch(["k"], fn) == 1
    clock.now += 29
    assert cache.fetch(["k"], fn) == 1
    assert fn.calls == 1


def test_stale_entry_is_refetched():
    clock = FakeClock()
    cache = QueryCache(stale_time_s=30, time_fn=clock)
    values = iter(["first", "second"])

    assert cache.fetch(["k"], lambda: next(values)) == "first"
    clock.now += 31
    assert cache.fetch(["k"], lambda: next(values)) == "second"


def test_expired_entries_are_dropped():
    clock = FakeClock()
    cache = QueryCache(stale_time_s=30, time_fn=clock)
    for i in range(50):
        cache.fetch(["page", i], lambda: "rows")

    clock.now += 10_000
    cache.fetch(["page", "latest"], lambda: "rows")

    assert len(cache._entries) == 1


def test_least_recently_used_entry_is_evicted_past_maxsize():
    cache = QueryCache(stale_time_s=30, maxsize=2)
    fn = Counter()

    cache.fetch(["a"], fn)
    cache.fetch(["b"], fn)
    cache.fetch(["a"], fn)
    cache.fetch(["c"], fn)

    assert len(cache._entries) == 2
    assert fn.calls == 3
    cache.fetch(["a"], fn)
    assert fn.calls == 3
    cache.fetch(["b"], fn)
    assert fn.calls == 4


def test_zero_window_always_refetches():
    cache = QueryCache(stale_time_s=0)
    fn = Counter()

    cache.fetch(["k"], fn)
    cache.fetch(["k"], fn)

    assert fn.calls == 2
    assert len(cache._entries) == 0


def test_errors_are_not_cached():
    cache = QueryCache(stale_time_s=30)

    def boom():
        raise RuntimeError("down")

    with pytest.raises(RuntimeError):
        cache.fetch(["k"], boom)

    assert len(cache._entries) == 0
    assert cache._inflight == {}
    assert cache.fetch(["k"], lambda: "ok") == "ok"


def test_invalidate_one_key_or_all():
    cache = QueryCache(stale_time_s=30)
    fn = Counter()
    cache.fetch(["a"], fn)
    cache.fetch(["b"], fn)

    cache.invalidate(["a"])
    assert cache.fetch(["a"], fn) == 3
    assert cache.fetch(["b"], fn) == 2

    cache.invalidate()
    assert cache.fetch(["b"], fn) == 4


@pytest.fixture
def future_events(monkeypatch):
    """Events set when the shared Future is created and when a second caller waits on it."""
    created = threading.Event()
    joined = threading.Event()

    class SpyFuture(query_cache.Future):
        def __init__(self):
            super().__init__()
            created.set()

        def result(self, timeout=None):
            joined.set()
            return super().result(timeout)

    monkeypatch.setattr(query_cache, "Future", SpyFuture)
    return created, joined


def test_concurrent_callers_share_one_fetch(future_events):
    created, joined = future_events
    cache = QueryCache(stale_time_s=30)
    calls = []

    def slow_fetch():
        calls.append(1)
        # Hold the fetch open until the second caller is waiting on it.
        assert joined.wait(timeout=5)
        return "page"

    results = []
    owner = threading.Thread(target=lambda: results.append(cache.fetch(["k"], slow_fetch)))
    owner.start()
    assert created.wait(timeout=5)
    results.append(cache.fetch(["k"], slow_fetch))
    owner.join(timeout=5)

    assert results == ["page", "page"]
    assert calls == [1]


def test_waiters_see_the_owner_exception(future_events):
    created, joined = future_events
    cache = QueryCache(stale_time_s=30)

    def failing_fetch():
        assert joined.wait(timeout=5)
        raise RuntimeError("down")

    errors = []

    def owner_call():
        try:
            cache.fetch(["k"], failing_fetch)
        except RuntimeError as e:
            errors.append(str(e))

    owner = threading.Thread(target=owner_call)
    owner.start()
    assert created.wait(timeout=5)
    with pytest.raises(RuntimeError, match="down"):
        cache.fetch(["k"], failing_fetch)
    owner.join(timeout=5)

    assert errors == ["down"]
