"""Concurrent acquirers on one file-backed table.

Each thread plays a separate scheduler process: its own LeaseBackend, its
own connection. Nothing but the conditional updates keeps them apart.
"""

import threading
from collections import Counter

import pytest

from schedspine.scheduling.backend import LeaseBackend

T0 = 1704067200
WORKERS = 6
SCHEDULES = 40


@pytest.fixture
def populated_url(file_url):
    with LeaseBackend(file_url, "schedules") as b:
        for i in range(SCHEDULES):
            b.add(f"job{i:02d}", "t", "0 * * * *", start=T0)
    return file_url


def run_workers(url, target):
    results = []
    errors = []
    barrier = threading.Barrier(WORKERS)

    def worker():
        try:
            with LeaseBackend(url, "schedules", retry_delay=0.01) as backend:
                barrier.wait()
                results.extend(target(backend))
        except Exception as e:  # surfaced by the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert errors == []
    return results


@pytest.mark.slow
class TestConcurrentAcquire:
    def test_each_occurrence_claimed_once(self, populated_url):
        """At most one claim per occurrence across all workers."""

        def drain(backend):
            claimed = []
            while (task := backend.acquire(300, now=T0)) is not None:
                claimed.append((task.key, task.token.scheduled_time))
            return claimed

        claims = run_workers(populated_url, drain)

        counts = Counter(claims)
        assert all(n == 1 for n in counts.values())
        assert len(counts) == SCHEDULES

    def test_each_occurrence_finished_once(self, populated_url):
        """Claim-and-finish by many workers advances every schedule exactly one hour."""

        def work(backend):
            finished = []
            while (task := backend.acquire(300, now=T0)) is not None:
                backend.finish(task.token)
                finished.append(task.key)
            return finished

        finished = run_workers(populated_url, work)

        assert sorted(finished) == [f"job{i:02d}" for i in range(SCHEDULES)]
        with LeaseBackend(populated_url, "schedules") as b:
            assert {int(m.next_time.timestamp()) for m in b.list()} == {T0 + 3600}
