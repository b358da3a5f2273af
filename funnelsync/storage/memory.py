"""FunnelSync - In-Memory Metrics Store.

Process-lifetime collection of reconciled rows. Readers run concurrently;
an append excludes every reader and writer for its duration, so a reader
never observes half of a batch.
"""

import threading
from contextlib import contextmanager
from datetime import date
from typing import Callable, ContextManager, Iterable, Iterator, List, Protocol

from funnelsync.core.events import DATE_FILTER_SKIP, EventSink, default_sink
from funnelsync.models.dates import parse_day
from funnelsync.models.metric_models import ReconciledMetricRow

RowPredicate = Callable[[ReconciledMetricRow], bool]


class ReadWriteLock(Protocol):
    """Concurrency discipline the store runs under."""

    def read(self) -> ContextManager[None]: ...

    def write(self) -> ContextManager[None]: ...


class RWLock:
    """Writer-preferring reader/writer lock.

    New readers wait while a writer is waiting, so a steady stream of
    queries cannot starve an append.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class MetricsStore:
    """Thread-safe, append-only store of ReconciledMetricRows."""

    def __init__(self, lock: ReadWriteLock | None = None, events: EventSink | None = None):
        self._lock = lock or RWLock()
        self._rows: List[ReconciledMetricRow] = []
        self.events = events or default_sink

    # ── Writes ──

    def append(self, rows: Iterable[ReconciledMetricRow]) -> int:
        """Append a batch atomically. Returns the number of rows added."""
        # Materialize outside the lock; iterating the input may raise.
        batch = tuple(rows)
        with self._lock.write():
            self._rows.extend(batch)
        return len(batch)

    def clear(self) -> None:
        with self._lock.write():
            self._rows.clear()

    # ── Reads ──

    def count(self) -> int:
        with self._lock.read():
            return len(self._rows)

    def query(self, predicate: RowPredicate) -> List[ReconciledMetricRow]:
        """Return every row matching ``predicate``, in append order."""
        with self._lock.read():
            return [row for row in self._rows if predicate(row)]

    def _in_range(self, row: ReconciledMetricRow, start: date, end: date) -> bool:
        day = parse_day(row.date)
        if day is None:
            self.events.emit(DATE_FILTER_SKIP, date=row.date)
            return False
        return start <= day <= end

    def by_channel(self, channel: str, start: date, end: date) -> List[ReconciledMetricRow]:
        """Rows for ``channel`` dated within [start, end]."""
        return self.query(
            lambda row: row.channel == channel and self._in_range(row, start, end)
        )

    def by_campaign(
        self, utm_campaign: str, start: date, end: date
    ) -> List[ReconciledMetricRow]:
        """Rows for ``utm_campaign`` dated within [start, end]."""
        return self.query(
            lambda row: row.utm_campaign == utm_campaign
            and self._in_range(row, start, end)
        )

    def by_exact_date(self, day: date) -> List[ReconciledMetricRow]:
        """Rows dated exactly ``day``."""
        return self.query(lambda row: self._in_range(row, day, day))
