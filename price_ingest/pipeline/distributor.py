"""
Work distributor: the bounded queue between the stream producer and the workers.

`put` blocks while the queue is full, which is what keeps memory flat when
parsing outpaces persistence. `close` is the only termination signal; it is
pushed through the queue as a sentinel after the last Record, so consumers
always drain every Record that was put before it.
"""

from __future__ import annotations

import queue
import threading
from typing import Iterator

from price_ingest.domain.models import InsuranceService

_CLOSED = object()


class DistributorClosedError(RuntimeError):
    """Raised on `put` after `close`, or on a second `close`."""


class NoConsumersError(RuntimeError):
    """Raised by `put` once every consumer has detached."""


class WorkDistributor:
    """
    Bounded multi-producer/multi-consumer queue of Records.

    Parameters
    ----------
    capacity : int
        Maximum number of queued Records (reference: 2x the worker count).
    consumers : int
        Number of consumers expected to drain the queue.
    poll_interval : float
        How often a blocked `put` re-checks that consumers are still alive.
    """

    def __init__(self, capacity: int, consumers: int, poll_interval: float = 0.5) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if consumers < 1:
            raise ValueError("consumers must be >= 1")
        self.capacity = capacity
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=capacity)
        self._consumers = consumers
        self._poll_interval = poll_interval
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def consumers(self) -> int:
        return self._consumers

    @property
    def pending(self) -> int:
        """Approximate number of queued Records."""
        return self._queue.qsize()

    def put(self, record: InsuranceService) -> None:
        """Queue a Record, blocking while the queue is full."""
        if self._closed:
            raise DistributorClosedError("put() called on a closed distributor")
        self._blocking_put(record)

    def close(self) -> None:
        """Signal that no more Records will be put. Must be called exactly once."""
        with self._lock:
            if self._closed:
                raise DistributorClosedError("distributor already closed")
            self._closed = True
        self._blocking_put(_CLOSED)

    def detach(self) -> None:
        """Called by a consumer that stops pulling before the queue is drained."""
        with self._lock:
            self._consumers = max(self._consumers - 1, 0)

    def __iter__(self) -> Iterator[InsuranceService]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                # Hand the sentinel on so every other consumer stops too.
                self._queue.put(item)
                return
            yield item  # type: ignore[misc]

    def _blocking_put(self, item: object) -> None:
        while True:
            if self._consumers == 0:
                if item is _CLOSED:
                    return
                raise NoConsumersError("every consumer has detached; nothing drains the queue")
            try:
                self._queue.put(item, timeout=self._poll_interval)
                return
            except queue.Full:
                continue


__all__ = ["DistributorClosedError", "NoConsumersError", "WorkDistributor"]
