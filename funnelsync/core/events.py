"""FunnelSync - Pipeline Event Interface.

Extraction, reconciliation and export report what happened through an
``EventSink`` instead of logging directly, so the algorithms stay free of
output concerns and tests can assert on emitted events.
"""

import logging
import threading
from typing import Any, Dict, List, Protocol, Tuple

from funnelsync.core.logging import get_logger

# ── Event names ──
FETCH_OK = "fetch_ok"
FETCH_RETRY = "fetch_retry"
FETCH_EXHAUSTED = "fetch_exhausted"
DECODE_FAILED = "decode_failed"
DATE_PARSE_FALLBACK = "date_parse_fallback"
DATE_FILTER_SKIP = "date_filter_skip"
RECONCILE_COMPLETE = "reconcile_complete"
INGEST_COMPLETE = "ingest_complete"
EXPORT_DELIVERED = "export_delivered"
EXPORT_FAILED = "export_failed"

# Data-quality and failure events are logged as warnings
WARNING_EVENTS = frozenset(
    {FETCH_RETRY, FETCH_EXHAUSTED, DECODE_FAILED, DATE_PARSE_FALLBACK, EXPORT_FAILED}
)


class EventSink(Protocol):
    """Anything that accepts named pipeline events."""

    def emit(self, event: str, **fields: Any) -> None: ...


class LoggingEventSink:
    """Writes every event as a structured JSON log line."""

    def __init__(self, name: str = "events"):
        self.logger = get_logger(name)

    def emit(self, event: str, **fields: Any) -> None:
        level = logging.WARNING if event in WARNING_EVENTS else logging.INFO
        if event == DATE_FILTER_SKIP:
            level = logging.DEBUG
        self.logger.log(level, event, extra={"event": event, **fields})


class RecordingEventSink:
    """Keeps events in memory for assertions in tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        with self._lock:
            self.events.append((event, fields))

    def names(self) -> List[str]:
        with self._lock:
            return [name for name, _ in self.events]

    def of(self, event: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [fields for name, fields in self.events if name == event]


default_sink = LoggingEventSink()
