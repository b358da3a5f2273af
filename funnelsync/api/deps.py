"""FunnelSync - Shared API Dependencies.

The store lives for the whole process. HTTP clients are created per request
and closed afterwards, like the connectors elsewhere in the service.
"""

from datetime import date, datetime
from functools import lru_cache
from typing import AsyncIterator, Optional

from fastapi import Depends, HTTPException

from funnelsync.config import settings
from funnelsync.connectors.feeds.client import FeedClient
from funnelsync.connectors.feeds.extractor import Extractor
from funnelsync.etl.pipeline import IngestPipeline
from funnelsync.etl.transformer import JoinAggregator
from funnelsync.export.service import ExportService
from funnelsync.export.sink import SinkClient
from funnelsync.storage.memory import MetricsStore


@lru_cache
def get_store() -> MetricsStore:
    """Process-wide metrics store."""
    return MetricsStore()


def build_extractor() -> Extractor:
    client = FeedClient(
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        backoff=settings.backoff,
    )
    return Extractor(client, settings.ads_api_url, settings.crm_api_url)


def build_pipeline(store: MetricsStore, extractor: Extractor) -> IngestPipeline:
    aggregator = JoinAggregator(ignore_campaign_id=settings.join_ignore_campaign_id)
    return IngestPipeline(extractor, aggregator, store)


def build_export_service(store: MetricsStore) -> ExportService:
    sink = SinkClient(settings.sink_url, settings.timeout) if settings.sink_url else None
    return ExportService(store, settings.sink_secret, sink)


async def get_extractor() -> AsyncIterator[Extractor]:
    extractor = build_extractor()
    try:
        yield extractor
    finally:
        await extractor.close()


def get_pipeline(
    store: MetricsStore = Depends(get_store),
    extractor: Extractor = Depends(get_extractor),
) -> IngestPipeline:
    return build_pipeline(store, extractor)


async def get_export_service(
    store: MetricsStore = Depends(get_store),
) -> AsyncIterator[ExportService]:
    service = build_export_service(store)
    try:
        yield service
    finally:
        if service.sink is not None:
            await service.sink.close()


def parse_date_param(value: Optional[str], name: str) -> date:
    """Parse a required YYYY-MM-DD query parameter or fail with 400."""
    if not value:
        raise HTTPException(status_code=400, detail=f"{name} parameter is required")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(
            status_code=400, detail=f"Invalid {name} date format. Use YYYY-MM-DD"
        )
