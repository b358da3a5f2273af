"""FunnelSync - Ingest Pipeline Orchestrator.

Runs one ingest:
  fetch ads ∥ fetch CRM → reconcile → filter since → append to store

A run is all-or-nothing. If either feed fails, the other fetch is cancelled
and nothing is reconciled or stored.
"""

import asyncio
from datetime import date
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from funnelsync.connectors.feeds.extractor import Extractor
from funnelsync.core.events import INGEST_COMPLETE, EventSink, default_sink
from funnelsync.core.logging import get_logger
from funnelsync.etl.transformer import JoinAggregator, filter_since
from funnelsync.models.dates import format_day
from funnelsync.storage.memory import MetricsStore

logger = get_logger("etl.pipeline")

DEFAULT_SINCE = date(2000, 1, 1)


class IngestResult(BaseModel):
    """Outcome of one ingest run."""

    ads_records: int
    crm_records: int
    metrics_processed: int
    since: str
    date_fallbacks: int = 0


class IngestPipeline:
    """Wires the extractor, join aggregator and store together."""

    def __init__(
        self,
        extractor: Extractor,
        aggregator: JoinAggregator,
        store: MetricsStore,
        events: EventSink | None = None,
    ):
        self.extractor = extractor
        self.aggregator = aggregator
        self.store = store
        self.events = events or default_sink

    async def run(self, since: Optional[date] = None) -> IngestResult:
        since = since or DEFAULT_SINCE
        logger.info(f"Starting ingest run (since={format_day(since)})")

        ads_task = asyncio.create_task(self.extractor.extract_ads())
        crm_task = asyncio.create_task(self.extractor.extract_crm())
        try:
            ads, crm = await asyncio.gather(ads_task, crm_task)
        except BaseException:
            for task in (ads_task, crm_task):
                task.cancel()
            # Retrieve the sibling's outcome so its error is not reported as unhandled
            await asyncio.gather(ads_task, crm_task, return_exceptions=True)
            raise

        rows = self.aggregator.reconcile(ads, crm)
        rows = filter_since(rows, since, self.events)
        stored = await run_in_threadpool(self.store.append, rows)

        result = IngestResult(
            ads_records=len(ads),
            crm_records=len(crm),
            metrics_processed=stored,
            since=format_day(since),
            date_fallbacks=sum(1 for r in crm if r.created_at_fallback),
        )
        self.events.emit(
            INGEST_COMPLETE,
            ads_count=result.ads_records,
            crm_count=result.crm_records,
            rows=stored,
        )
        return result
