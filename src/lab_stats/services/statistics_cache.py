"""
Reactive cache for statistics snapshots.

Snapshots are memoized per laboratory and reporting window for a limited time
and dropped as soon as an InvalidationBus reports a change to the cases of
that laboratory. The statistics engine itself holds no subscription.
"""
import copy
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import logging
import threading
import time

from sqlalchemy import event

from lab_stats.core.config import STATS_CACHE_TTL_SECONDS
from lab_stats.models import MedicalCase
from lab_stats.services.record_store import RecordStore
from lab_stats.services.statistics_service import compute_statistics

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]
CacheKey = Tuple[str, Optional[DateLike], Optional[DateLike], Optional[int]]


@dataclass(frozen=True)
class CaseChangeEvent:
    """A case of a laboratory was inserted, updated or deleted."""
    tenant_id: str
    operation: str


Subscriber = Callable[[CaseChangeEvent], None]


class InvalidationBus:
    """
    In-process publish/subscribe channel for case change events.

    A failing subscriber is logged and does not prevent delivery to the others.
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that removes it again."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, change: CaseChangeEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(change)
            except Exception as e:
                logger.exception(f"Error delivering {change} to subscriber: {e}")


def register_case_change_events(bus: InvalidationBus) -> Callable[[], None]:
    """
    Publish a CaseChangeEvent whenever a MedicalCase is written through the ORM.

    Returns a function that removes the listeners.
    """
    def make_listener(operation: str):
        def listener(mapper, connection, target: MedicalCase) -> None:
            bus.publish(CaseChangeEvent(tenant_id=target.laboratory_id, operation=operation))
        return listener

    listeners = [
        ('after_insert', make_listener('insert')),
        ('after_update', make_listener('update')),
        ('after_delete', make_listener('delete')),
    ]
    for name, listener in listeners:
        event.listen(MedicalCase, name, listener)

    def remove() -> None:
        for name, listener in listeners:
            if event.contains(MedicalCase, name, listener):
                event.remove(MedicalCase, name, listener)

    return remove


class StatisticsCache:
    """
    Memoizes statistics snapshots.

    Entries expire after ttl_seconds and are invalidated per laboratory by bus
    events. All access to the entries is serialized by a lock; computation
    happens outside the lock. A snapshot computed while its laboratory was
    invalidated is returned to the caller but not stored. Callers receive
    their own copy of the snapshot.
    """

    def __init__(
        self,
        store: RecordStore,
        bus: Optional[InvalidationBus] = None,
        ttl_seconds: float = STATS_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, Dict[str, Any]]] = {}
        # Bumped on every invalidation of a laboratory; None counts invalidate()
        self._generations: Dict[Optional[str], int] = {}
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None
        if bus is not None:
            self._unsubscribe = bus.subscribe(self._on_case_change)

    def get(
        self,
        tenant_id: str,
        filter_start: Optional[DateLike] = None,
        filter_end: Optional[DateLike] = None,
        selected_year: Optional[int] = None
    ) -> Dict[str, Any]:
        """Return a fresh cached snapshot or compute a new one."""
        key: CacheKey = (tenant_id, filter_start, filter_end, selected_year)

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None and now - entry[0] < self.ttl_seconds:
                logger.debug(f"Statistics cache hit for {key}")
                return copy.deepcopy(entry[1])
            self._evict_expired(now)
            generation = self._generation(tenant_id)

        logger.debug(f"Statistics cache miss for {key}")
        snapshot = compute_statistics(self.store, tenant_id, filter_start, filter_end, selected_year)

        with self._lock:
            if self._generation(tenant_id) == generation:
                self._entries[key] = (self._clock(), snapshot)
            else:
                logger.debug(f"Laboratory {tenant_id} changed during computation; not caching {key}")
        return copy.deepcopy(snapshot)

    def invalidate(self, tenant_id: Optional[str] = None) -> None:
        """Drop the entries of one laboratory, or every entry when tenant_id is None."""
        with self._lock:
            self._generations[tenant_id] = self._generations.get(tenant_id, 0) + 1
            if tenant_id is None:
                self._entries.clear()
                return
            for key in [key for key in self._entries if key[0] == tenant_id]:
                del self._entries[key]

    def close(self) -> None:
        """Stop listening to the invalidation bus."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _generation(self, tenant_id: str) -> Tuple[int, int]:
        return self._generations.get(None, 0), self._generations.get(tenant_id, 0)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]

    def _on_case_change(self, change: CaseChangeEvent) -> None:
        logger.debug(f"Invalidating statistics of laboratory {change.tenant_id} after {change.operation}")
        self.invalidate(change.tenant_id)
