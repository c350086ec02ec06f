from __future__ import annotations

import threading
import time
from typing import List

import pytest

from price_ingest.domain.models import InsuranceService
from price_ingest.pipeline.distributor import (
    DistributorClosedError,
    NoConsumersError,
    WorkDistributor,
)
from tests.payloads import service_payload

CAPACITY = 2
RECORD_COUNT = 50
CONSUMER_COUNT = 4


def _record(name: str) -> InsuranceService:
    return InsuranceService.model_validate(service_payload(name))


def _drain(distributor: WorkDistributor, sink: List[str]) -> None:
    for record in distributor:
        sink.append(record.name)


def test_constructor_rejects_non_positive_sizes() -> None:
    with pytest.raises(ValueError):
        WorkDistributor(capacity=0, consumers=1)
    with pytest.raises(ValueError):
        WorkDistributor(capacity=1, consumers=0)


def test_put_blocks_while_queue_is_full() -> None:
    distributor = WorkDistributor(capacity=CAPACITY, consumers=1, poll_interval=0.05)
    for index in range(CAPACITY):
        distributor.put(_record(f"svc-{index}"))

    done = threading.Event()

    def _producer() -> None:
        distributor.put(_record("overflow"))
        done.set()

    thread = threading.Thread(target=_producer, daemon=True)
    thread.start()

    assert not done.wait(timeout=0.3)
    assert distributor.pending == CAPACITY

    next(iter(distributor))
    assert done.wait(timeout=2)
    thread.join(timeout=2)


def test_every_record_is_delivered_exactly_once_across_consumers() -> None:
    distributor = WorkDistributor(capacity=CAPACITY, consumers=CONSUMER_COUNT)
    sinks: List[List[str]] = [[] for _ in range(CONSUMER_COUNT)]
    threads = [
        threading.Thread(target=_drain, args=(distributor, sink)) for sink in sinks
    ]
    for thread in threads:
        thread.start()

    for index in range(RECORD_COUNT):
        distributor.put(_record(f"svc-{index}"))
    distributor.close()

    for thread in threads:
        thread.join(timeout=5)
        assert not thread.is_alive()

    delivered = sorted(name for sink in sinks for name in sink)
    assert delivered == sorted(f"svc-{index}" for index in range(RECORD_COUNT))


def test_consumers_drain_records_put_before_close() -> None:
    distributor = WorkDistributor(capacity=CAPACITY + 1, consumers=1)
    distributor.put(_record("a"))
    distributor.put(_record("b"))
    distributor.close()

    assert [record.name for record in distributor] == ["a", "b"]
    # A later consumer sees the close signal immediately.
    assert list(distributor) == []


def test_close_twice_is_an_error() -> None:
    distributor = WorkDistributor(capacity=CAPACITY, consumers=1)
    distributor.close()

    assert distributor.closed
    with pytest.raises(DistributorClosedError):
        distributor.close()


def test_put_after_close_is_an_error() -> None:
    distributor = WorkDistributor(capacity=CAPACITY, consumers=1)
    distributor.close()

    with pytest.raises(DistributorClosedError):
        distributor.put(_record("late"))


def test_put_fails_once_every_consumer_has_detached() -> None:
    distributor = WorkDistributor(capacity=1, consumers=2, poll_interval=0.05)
    distributor.put(_record("queued"))
    distributor.detach()
    distributor.detach()

    assert distributor.consumers == 0
    started = time.perf_counter()
    with pytest.raises(NoConsumersError):
        distributor.put(_record("stuck"))
    assert time.perf_counter() - started < 2

    # Closing with nobody left to drain must not block either.
    distributor.close()
