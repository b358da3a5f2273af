"""FunnelSync - Export Service.

store.by_exact_date → consolidate → canonical payload → sign → deliver.
With no sink configured the consolidated snapshot is returned undelivered.
"""

from datetime import date
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from funnelsync.core.events import EXPORT_DELIVERED, EXPORT_FAILED, EventSink, default_sink
from funnelsync.core.exceptions import NoDataForDate, SinkDeliveryFailure
from funnelsync.export.consolidator import build_payload, consolidate, sign
from funnelsync.export.sink import SinkClient
from funnelsync.models.dates import format_day
from funnelsync.models.metric_models import ReconciledMetricRow
from funnelsync.storage.memory import MetricsStore


class ExportResult(BaseModel):
    """Outcome of one export run."""

    date: str
    metrics: List[ReconciledMetricRow] = []
    delivered: bool = False
    sink_url: str = ""
    signature: str = ""

    @property
    def total_records(self) -> int:
        return len(self.metrics)


class ExportService:
    """Consolidates one stored day and pushes it to the sink, if any."""

    def __init__(
        self,
        store: MetricsStore,
        secret: str,
        sink: Optional[SinkClient] = None,
        events: EventSink | None = None,
    ):
        self.store = store
        self.secret = secret
        self.sink = sink
        self.events = events or default_sink

    async def run_export(self, day: date) -> ExportResult:
        day_str = format_day(day)
        rows = await run_in_threadpool(self.store.by_exact_date, day)
        if not rows:
            raise NoDataForDate(day_str)

        consolidated = consolidate(rows)

        if self.sink is None or not self.sink.sink_url:
            return ExportResult(date=day_str, metrics=consolidated, delivered=False)

        payload = build_payload(day_str, consolidated)
        signature = sign(payload, self.secret)

        try:
            await self.sink.deliver(payload, signature)
        except SinkDeliveryFailure as e:
            self.events.emit(
                EXPORT_FAILED,
                date=day_str,
                count=len(consolidated),
                url=e.sink_url,
                status_code=e.status_code,
                error=str(e),
            )
            raise

        self.events.emit(
            EXPORT_DELIVERED, date=day_str, count=len(consolidated), url=self.sink.sink_url
        )
        return ExportResult(
            date=day_str,
            metrics=consolidated,
            delivered=True,
            sink_url=self.sink.sink_url,
            signature=signature,
        )
