"""
Module: delivery/dedup.py
Description: Bounded memory of message ids already surfaced to the application.

The window is insertion-ordered and capped; once it exceeds its ceiling the
oldest ids are evicted. A duplicate older than the eviction horizon is
treated as new. This bounds memory under indefinite runtime at the cost of
perfect dedup history.

Ids move through two states. claim() reserves an id while it is being
handed to the application, so a concurrent arrival over the other transport
is reported as in flight instead of delivered twice. commit() records the
id after a successful handoff; release() drops the reservation after a
failed one so the message can be delivered again later.
"""

import threading
from collections import OrderedDict
from enum import Enum
from typing import Iterable, List, Set

DEFAULT_CAPACITY = 1000


class ClaimResult(str, Enum):
    CLAIMED = "claimed"
    SEEN = "seen"
    IN_FLIGHT = "in_flight"


class SeenMessageWindow:
    """
    Thread-safe bounded set of delivered message ids.

    All operations hold the lock only for dictionary updates, so the window
    can be shared by the poll loop and concurrent webhook requests.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._seen: "OrderedDict[str, None]" = OrderedDict()
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    def __contains__(self, message_id: object) -> bool:
        with self._lock:
            return message_id in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def claim(self, message_id: str) -> ClaimResult:
        """Reserve ``message_id`` for delivery unless already seen or in flight."""
        with self._lock:
            if message_id in self._seen:
                return ClaimResult.SEEN
            if message_id in self._in_flight:
                return ClaimResult.IN_FLIGHT
            self._in_flight.add(message_id)
            return ClaimResult.CLAIMED

    def commit(self, message_id: str) -> None:
        """Record a successful handoff and evict the oldest ids past capacity."""
        with self._lock:
            self._in_flight.discard(message_id)
            self._add_locked(message_id)

    def release(self, message_id: str) -> None:
        """Drop a reservation after a failed handoff."""
        with self._lock:
            self._in_flight.discard(message_id)

    def add(self, message_id: str) -> None:
        """Record an id as seen without a prior claim."""
        with self._lock:
            self._add_locked(message_id)

    def update(self, message_ids: Iterable[str]) -> None:
        with self._lock:
            for message_id in message_ids:
                self._add_locked(message_id)

    def snapshot(self) -> List[str]:
        """Seen ids, oldest first."""
        with self._lock:
            return list(self._seen)

    def _add_locked(self, message_id: str) -> None:
        if message_id in self._seen:
            return
        self._seen[message_id] = None
        while len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
