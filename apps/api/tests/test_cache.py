import threading

import pytest

from ticketdesk.stores.cached import CachedTicketStore, TTLCache
from ticketdesk.stores.memory import MemoryTicketStore
from ticketdesk.stores.records import NewTicket


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class CountingStore(MemoryTicketStore):
    def __init__(self):
        super().__init__()
        self.calls = {"get": 0, "count_by_status": 0}

    def get(self, ticket_id):
        self.calls["get"] += 1
        return super().get(ticket_id)

    def count_by_status(self):
        self.calls["count_by_status"] += 1
        return super().count_by_status()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def inner():
    return CountingStore()


@pytest.fixture
def store(inner, clock):
    return CachedTicketStore(inner, ticket_ttl=30, stats_ttl=30, cache=TTLCache(clock=clock))


def make(store):
    return store.create(NewTicket(title="t", description="d", type="Bug", department="IT"), [], "New")


def test_ttl_cache_expiry(clock):
    cache = TTLCache(clock=clock)
    cache.set("k", 1, ttl=10)
    assert cache.get("k") == 1
    clock.now += 10
    assert cache.get("k") != 1
    assert len(cache) == 0


def test_get_is_cached_until_ttl(store, inner, clock):
    ticket = make(store)
    store.get(ticket.id)
    store.get(ticket.id)
    assert inner.calls["get"] == 1
    clock.now += 31
    store.get(ticket.id)
    assert inner.calls["get"] == 2


def test_misses_are_not_cached(store, inner):
    assert store.get("missing") is None
    assert store.get("missing") is None
    assert inner.calls["get"] == 2


def test_status_change_invalidates(store, inner):
    ticket = make(store)
    assert store.get(ticket.id).status == "New"
    assert store.count_by_status() == [("New", 1)]

    store.set_status(ticket.id, "Resolved")
    assert store.get(ticket.id).status == "Resolved"
    assert store.count_by_status() == [("Resolved", 1)]
    assert inner.calls["count_by_status"] == 2


def test_comment_invalidates(store):
    ticket = make(store)
    store.get(ticket.id)
    store.append_comment(ticket.id, "Alice", "hello")
    assert len(store.get(ticket.id).comments) == 1


def test_create_invalidates_stats(store, inner):
    make(store)
    assert store.count_by_status() == [("New", 1)]
    make(store)
    assert store.count_by_status() == [("New", 2)]


def test_zero_ttl_disables_caching(inner):
    store = CachedTicketStore(inner, ticket_ttl=0, stats_ttl=0)
    ticket = make(store)
    store.get(ticket.id)
    store.get(ticket.id)
    assert inner.calls["get"] == 2


def test_injected_cache_is_used(inner, clock):
    cache = TTLCache(clock=clock)
    store = CachedTicketStore(inner, ticket_ttl=30, stats_ttl=30, cache=cache)
    assert store.cache is cache
    store.get(make(store).id)
    assert len(cache) == 1


def test_expired_entries_are_purged_on_set(clock):
    cache = TTLCache(clock=clock)
    for i in range(50):
        cache.set(f"k{i}", i, ttl=10)
    clock.now += 11
    cache.set("fresh", 1, ttl=10)
    assert len(cache) == 1


def test_size_is_bounded_least_recently_used_first(clock):
    cache = TTLCache(clock=clock, max_size=3)
    for key in ("a", "b", "c"):
        cache.set(key, key, ttl=60)
    assert cache.get("a") == "a"
    cache.set("d", "d", ttl=60)
    assert len(cache) == 3
    assert cache.get("b") != "b"
    assert cache.get("a") == "a"


def test_set_with_outdated_generation_is_dropped(clock):
    cache = TTLCache(clock=clock)
    seen = cache.generation
    cache.invalidate("k")
    assert not cache.set("k", "old", ttl=10, generation=seen)
    assert len(cache) == 0
    assert cache.set("k", "new", ttl=10, generation=cache.generation)


class PausingStore(MemoryTicketStore):
    """Holds the next ``get`` after it has read the record, until released."""

    def __init__(self):
        super().__init__()
        self.pause_next = False
        self.loaded = threading.Event()
        self.resume = threading.Event()

    def get(self, ticket_id):
        record = super().get(ticket_id)
        if self.pause_next:
            self.pause_next = False
            self.loaded.set()
            self.resume.wait(timeout=5)
        return record


def test_slow_read_does_not_recache_value_older_than_a_write():
    inner = PausingStore()
    store = CachedTicketStore(inner, ticket_ttl=30, stats_ttl=30)
    ticket = make(store)

    results = []
    inner.pause_next = True
    reader = threading.Thread(target=lambda: results.append(store.get(ticket.id)))
    reader.start()
    assert inner.loaded.wait(timeout=5)

    store.set_status(ticket.id, "Resolved")
    inner.resume.set()
    reader.join(timeout=5)

    # the reader raced the write and saw the old record, but must not keep it
    assert results[0].status == "New"
    assert store.get(ticket.id).status == "Resolved"
