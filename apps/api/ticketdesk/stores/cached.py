from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable
import logging
import threading
import time

from .base import DEPARTMENT_STATS_LIMIT, TicketStore
from .records import (
    AttachmentFile,
    CommentRecord,
    NewTicket,
    OwnerCounts,
    TicketFilter,
    TicketPage,
    TicketRecord,
)

logger = logging.getLogger(__name__)

_MISSING = object()

STATS_KEYS = ("stats:type", "stats:status", "stats:department")


class TTLCache:
    """Thread-safe LRU map whose entries expire after a per-entry TTL.

    ``generation`` moves on every ``invalidate``. A loader that read the
    generation before going to the backend passes it back to ``set``; if a
    write invalidated anything in between, the possibly stale value is dropped.
    """

    DEFAULT_MAX_SIZE = 1000

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_size: int = DEFAULT_MAX_SIZE):
        self._clock = clock
        self.max_size = max_size
        self._lock = threading.Lock()
        self._items: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return _MISSING
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._items[key]
                return _MISSING
            self._items.move_to_end(key)
            return value

    def set(self, key: str, value: Any, ttl: float, generation: int | None = None) -> bool:
        """Store ``value``; returns False when it was skipped as stale."""
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            now = self._clock()
            self._purge_expired(now)
            self._items[key] = (now + ttl, value)
            self._items.move_to_end(key)
            while len(self._items) > self.max_size:
                evicted, _ = self._items.popitem(last=False)
                logger.debug("cache full, evicted %s", evicted)
            return True

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._items.items() if expires_at <= now]
        for key in expired:
            del self._items[key]

    def invalidate(self, *keys: str) -> None:
        with self._lock:
            self._generation += 1
            for key in keys:
                self._items.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class CachedTicketStore(TicketStore):
    """Caches single-ticket reads and aggregations of another ``TicketStore``.

    Writes go straight through and drop the touched ticket plus every
    aggregation key. Listing and attachment bytes are never cached.
    """

    def __init__(
        self,
        inner: TicketStore,
        *,
        ticket_ttl: float,
        stats_ttl: float,
        cache: TTLCache | None = None,
    ):
        self.inner = inner
        self.ticket_ttl = ticket_ttl
        self.stats_ttl = stats_ttl
        self.cache = cache if cache is not None else TTLCache()

    def _cached(self, key: str, ttl: float, load: Callable[[], Any]) -> Any:
        if ttl <= 0:
            return load()
        value = self.cache.get(key)
        if value is _MISSING:
            generation = self.cache.generation
            value = load()
            # misses are not cached; a ticket created later must show up
            if value is not None:
                self.cache.set(key, value, ttl, generation=generation)
        return value

    def _invalidate(self, ticket_id: str | None = None) -> None:
        keys = list(STATS_KEYS)
        if ticket_id:
            keys.append(f"ticket:{ticket_id}")
        self.cache.invalidate(*keys)

    # writes

    def create(self, data: NewTicket, attachments: list[AttachmentFile], status: str) -> TicketRecord:
        ticket = self.inner.create(data, attachments, status)
        self._invalidate(ticket.id)
        return ticket

    def set_status(self, ticket_id: str, status: str) -> TicketRecord | None:
        try:
            return self.inner.set_status(ticket_id, status)
        finally:
            self._invalidate(ticket_id)

    def append_comment(self, ticket_id: str, author: str, text: str) -> list[CommentRecord] | None:
        try:
            return self.inner.append_comment(ticket_id, author, text)
        finally:
            self._invalidate(ticket_id)

    # reads

    def get(self, ticket_id: str) -> TicketRecord | None:
        return self._cached(f"ticket:{ticket_id}", self.ticket_ttl, lambda: self.inner.get(ticket_id))

    def list_page(self, filters: TicketFilter, *, offset: int, limit: int) -> TicketPage:
        return self.inner.list_page(filters, offset=offset, limit=limit)

    def get_attachment(self, ticket_id: str, index: int) -> AttachmentFile | None:
        return self.inner.get_attachment(ticket_id, index)

    def count_by_type(self) -> list[tuple[str, int]]:
        return self._cached("stats:type", self.stats_ttl, self.inner.count_by_type)

    def count_by_status(self) -> list[tuple[str, int]]:
        return self._cached("stats:status", self.stats_ttl, self.inner.count_by_status)

    def top_departments(self, limit: int = DEPARTMENT_STATS_LIMIT) -> list[tuple[str, int]]:
        if limit != DEPARTMENT_STATS_LIMIT:
            return self.inner.top_departments(limit)
        return self._cached("stats:department", self.stats_ttl, self.inner.top_departments)

    def owner_counts(self) -> dict[str, OwnerCounts]:
        return self.inner.owner_counts()

    def ping(self) -> None:
        self.inner.ping()
