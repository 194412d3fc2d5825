# Overview: In-process live queries; push a fresh snapshot to subscribers after every committed change.

"""
Live query feeds.

A subscription pairs a partition ("items", "incoming", "sales", "borrowed",
"returns") with a fetch function and a callback. The callback receives the
fetch result once at subscribe time and again after every committed write
to that partition. Deliveries to one subscription never overlap across
threads; a write made from inside a callback is delivered nested, on the
same thread, before the outer callback returns.

Writers call notify() after commit, never before, so subscribers cannot
observe rolled-back state.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable


logger = logging.getLogger(__name__)

PARTITIONS = ("items", "incoming", "sales", "borrowed", "returns")

PARTITION_BY_KIND = {
    "incoming": "incoming",
    "sale": "sales",
    "borrow": "borrowed",
    "return": "returns",
}


class SubscriptionError(ValueError):
    """Raised for unknown partitions."""


class Subscription:
    def __init__(self, registry: "SubscriptionRegistry", partition: str, fetch: Callable[[], Any], callback: Callable[[Any], None]):
        self.registry = registry
        self.partition = partition
        self.fetch = fetch
        self.callback = callback
        self.active = True
        self.last_snapshot: Any = None
        # re-entrant: a callback may write to its own partition and trigger
        # a nested delivery on the same thread
        self._delivery_lock = threading.RLock()

    def deliver(self) -> None:
        with self._delivery_lock:
            if not self.active:
                return
            snapshot = self.fetch()
            self.last_snapshot = snapshot
            self.callback(snapshot)

    def unsubscribe(self) -> None:
        self.active = False
        self.registry.remove(self)

    def __repr__(self) -> str:
        return f"<Subscription partition={self.partition} active={self.active}>"


class SubscriptionRegistry:
    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()

    def add(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions[subscription.partition].append(subscription)

    def remove(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(subscription.partition, [])
            if subscription in subs:
                subs.remove(subscription)

    def for_partition(self, partition: str) -> list[Subscription]:
        with self._lock:
            return list(self._subscriptions.get(partition, []))

    def count(self, partition: str | None = None) -> int:
        with self._lock:
            if partition is not None:
                return len(self._subscriptions.get(partition, []))
            return sum(len(v) for v in self._subscriptions.values())

    def clear(self) -> None:
        with self._lock:
            for subs in self._subscriptions.values():
                for sub in subs:
                    sub.active = False
            self._subscriptions.clear()


registry = SubscriptionRegistry()


def subscribe(partition: str, fetch: Callable[[], Any], callback: Callable[[Any], None]) -> Subscription:
    if partition not in PARTITIONS:
        raise SubscriptionError(f"Unknown partition: {partition}")
    subscription = Subscription(registry, partition, fetch, callback)
    registry.add(subscription)
    subscription.deliver()
    return subscription


def notify(*partitions: str) -> int:
    """
    Re-deliver snapshots to every subscriber of the given partitions.

    Returns the number of deliveries made. A failing subscriber is logged
    and skipped; the write that triggered the notification has already
    committed.
    """
    delivered = 0
    for partition in dict.fromkeys(partitions):
        for subscription in registry.for_partition(partition):
            try:
                subscription.deliver()
                delivered += 1
            except Exception:
                logger.exception("Live query delivery failed for %r", subscription)
    return delivered
