"""
In-process change feed.

Services publish a small event after every committed mutation; dashboards
subscribe per shop and receive the events in order. This replaces polling
for the front desk screens (active devices, customer directory, today's
POS transactions).

Usage:
    with change_feed.subscribe(shop_id, {"devices"}) as sub:
        for event in sub.iter(timeout=15):
            if event is None:
                ...  # heartbeat
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from typing import Any, Iterable, Iterator

logger = logging.getLogger(__name__)

COLLECTIONS = ("devices", "slots", "customers", "pos_transactions", "shop")

# Per-subscriber backlog before events are dropped
DEFAULT_MAX_PENDING = 256


class Subscription:
    """A single consumer's view of one shop's feed."""

    def __init__(
        self,
        feed: "ChangeFeed",
        subscription_id: int,
        shop_id: int,
        collections: frozenset[str],
        max_pending: int,
    ) -> None:
        self.id = subscription_id
        self.shop_id = shop_id
        self.collections = collections
        self._feed = feed
        self._queue: queue.Queue = queue.Queue(maxsize=max_pending)
        self._overflowed = False
        self.closed = False

    def wants(self, shop_id: int, collection: str) -> bool:
        return shop_id == self.shop_id and (not self.collections or collection in self.collections)

    def offer(self, event: dict[str, Any]) -> None:
        if self._overflowed:
            return
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            # Consumer fell behind; it must reload state instead of replaying
            self._overflowed = True
            logger.warning("Change feed subscriber %s overflowed; sending resync", self.id)

    def get(self, timeout: float | None = None) -> dict[str, Any] | None:
        """Next event, or None when nothing arrived within timeout."""
        if self._overflowed and self._queue.empty():
            self._overflowed = False
            return {"collection": "*", "action": "resync", "shop_id": self.shop_id, "record": None}
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def iter(self, timeout: float | None = None) -> Iterator[dict[str, Any] | None]:
        while not self.closed:
            yield self.get(timeout=timeout)

    def unsubscribe(self) -> None:
        if not self.closed:
            self.closed = True
            self._feed._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class ChangeFeed:
    """Thread-safe registry of subscriptions keyed by shop."""

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self.max_pending = max_pending
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._subscriptions: dict[int, Subscription] = {}

    def subscribe(self, shop_id: int, collections: Iterable[str] | None = None) -> Subscription:
        wanted = frozenset(collections or ())
        unknown = wanted.difference(COLLECTIONS)
        if unknown:
            raise ValueError(f"Unknown collections: {', '.join(sorted(unknown))}")

        with self._lock:
            sub = Subscription(self, next(self._ids), shop_id, wanted, self.max_pending)
            self._subscriptions[sub.id] = sub
        return sub

    def publish(self, shop_id: int, collection: str, action: str, record: dict | None = None) -> int:
        """Deliver an event to every matching subscriber; returns delivery count."""
        event = {"collection": collection, "action": action, "shop_id": shop_id, "record": record}
        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.wants(shop_id, collection)]
        for sub in targets:
            sub.offer(event)
        return len(targets)

    def subscriber_count(self, shop_id: int | None = None) -> int:
        with self._lock:
            if shop_id is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions.values() if s.shop_id == shop_id)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(sub.id, None)
