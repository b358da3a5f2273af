"""Unit tests for the in-memory metrics store."""
import threading
from contextlib import contextmanager
from datetime import date

import pytest

from funnelsync.core.events import DATE_FILTER_SKIP
from funnelsync.models.metric_models import ReconciledMetricRow
from funnelsync.storage.memory import MetricsStore, RWLock


def _row(day, channel="google_ads", utm_campaign="x", clicks=1):
    return ReconciledMetricRow(
        date=day, channel=channel, utm_campaign=utm_campaign, clicks=clicks
    )


@pytest.fixture
def store(events):
    store = MetricsStore(events=events)
    store.append(
        [
            _row("2024-01-01"),
            _row("2024-01-02"),
            _row("2024-01-02", channel="facebook_ads", utm_campaign="y"),
            _row("2024-01-03", utm_campaign="y"),
            _row("not-a-date"),
        ]
    )
    return store


def test_append_and_count(store):
    """Test append returns the batch size and rows accumulate."""
    assert store.count() == 5
    assert store.append([_row("2024-01-04")]) == 1
    assert store.count() == 6


def test_by_channel_inclusive_range(store):
    """Test both bounds are inclusive."""
    rows = store.by_channel("google_ads", date(2024, 1, 1), date(2024, 1, 2))

    assert sorted(r.date for r in rows) == ["2024-01-01", "2024-01-02"]


def test_single_day_range(store, events):
    """Test from == to == d returns exactly the rows dated d."""
    rows = store.by_channel("google_ads", date(2024, 1, 2), date(2024, 1, 2))

    assert [r.date for r in rows] == ["2024-01-02"]
    assert {"date": "not-a-date"} in events.of(DATE_FILTER_SKIP)


def test_by_campaign(store):
    """Test campaign filter spans channels."""
    rows = store.by_campaign("y", date(2024, 1, 1), date(2024, 1, 31))

    assert sorted((r.date, r.channel) for r in rows) == [
        ("2024-01-02", "facebook_ads"),
        ("2024-01-03", "google_ads"),
    ]


def test_by_exact_date(store):
    """Test exact date matching across channels."""
    rows = store.by_exact_date(date(2024, 1, 2))

    assert len(rows) == 2


def test_unparseable_dates_never_raise(store):
    """Test rows with bad dates are excluded from every date query."""
    wide = (date(1900, 1, 1), date(2999, 12, 31))

    assert all(r.date != "not-a-date" for r in store.by_channel("google_ads", *wide))
    assert all(r.date != "not-a-date" for r in store.by_campaign("x", *wide))
    # The generic query still sees it.
    assert len(store.query(lambda r: r.date == "not-a-date")) == 1


def test_inverted_range_is_empty(store):
    """Test from after to matches nothing."""
    assert store.by_channel("google_ads", date(2024, 1, 3), date(2024, 1, 1)) == []


def test_append_failure_leaves_store_untouched(store):
    """Test a batch whose iteration fails is not partially appended."""

    def broken_batch():
        yield _row("2024-02-01")
        raise RuntimeError("source exhausted")

    with pytest.raises(RuntimeError):
        store.append(broken_batch())

    assert store.count() == 5


def test_clear(store):
    store.clear()
    assert store.count() == 0


def test_injected_lock_is_used():
    """Test the store runs under the concurrency discipline it is given."""

    class CountingLock:
        def __init__(self):
            self.reads = 0
            self.writes = 0

        @contextmanager
        def read(self):
            self.reads += 1
            yield

        @contextmanager
        def write(self):
            self.writes += 1
            yield

    lock = CountingLock()
    store = MetricsStore(lock=lock)
    store.append([_row("2024-01-01")])
    store.by_exact_date(date(2024, 1, 1))
    store.count()

    assert lock.writes == 1
    assert lock.reads == 2


def test_readers_never_see_partial_batches():
    """Test concurrent readers only observe whole appended batches."""
    store = MetricsStore()
    batch_size = 50
    batches = 40
    stop = threading.Event()
    observed = []

    def writer():
        for _ in range(batches):
            store.append(_row("2024-01-01") for _ in range(batch_size))
        stop.set()

    def reader():
        while not stop.is_set():
            observed.append(len(store.query(lambda r: True)))

    readers = [threading.Thread(target=reader) for _ in range(4)]
    for t in readers:
        t.start()
    writer_thread = threading.Thread(target=writer)
    writer_thread.start()
    writer_thread.join(timeout=30)
    for t in readers:
        t.join(timeout=30)

    assert store.count() == batch_size * batches
    assert all(n % batch_size == 0 for n in observed)


def test_rwlock_readers_share_writers_exclude():
    """Test two readers can hold the lock together while a writer waits."""
    lock = RWLock()
    both_reading = threading.Barrier(2, timeout=5)
    writer_done = threading.Event()

    def read_together():
        with lock.read():
            both_reading.wait()

    def write():
        with lock.write():
            writer_done.set()

    with lock.read():
        t = threading.Thread(target=read_together)
        t.start()
        both_reading.wait()
        t.join(timeout=5)

        w = threading.Thread(target=write)
        w.start()
        assert not writer_done.wait(timeout=0.2)

    w.join(timeout=5)
    assert writer_done.is_set()
