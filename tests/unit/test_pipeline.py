"""Unit tests for the all-or-nothing ingest pipeline."""
import asyncio
import threading
from datetime import date

import httpx
import pytest

from conftest import ADS_URL, CRM_URL, ThreadRecordingLock, ads_body, crm_body
from funnelsync.connectors.feeds.client import FeedClient
from funnelsync.connectors.feeds.extractor import Extractor
from funnelsync.core.events import INGEST_COMPLETE
from funnelsync.core.exceptions import DecodeError, FetchExhausted
from funnelsync.etl.pipeline import IngestPipeline
from funnelsync.etl.transformer import JoinAggregator
from funnelsync.storage.memory import MetricsStore


def _pipeline(transport, events, store=None):
    client = FeedClient(
        timeout=5.0, max_retries=2, backoff=0.0, events=events, transport=transport
    )
    extractor = Extractor(client, ADS_URL, CRM_URL)
    store = store or MetricsStore(events=events)
    return IngestPipeline(extractor, JoinAggregator(events=events), store, events=events)


@pytest.mark.asyncio
async def test_ingest_run_stores_reconciled_rows(
    feed_transport, sample_ads_payload, sample_crm_payload, events
):
    """Test a full run reconciles both feeds into the store."""
    transport = feed_transport(
        {
            ADS_URL: (200, ads_body(sample_ads_payload)),
            CRM_URL: (200, crm_body(sample_crm_payload)),
        }
    )
    pipeline = _pipeline(transport, events)

    result = await pipeline.run()

    assert result.ads_records == 2
    assert result.crm_records == 2
    assert result.since == "2000-01-01"
    # google ad (campaign C-1001) stays alone; facebook ad meets both CRM records.
    assert result.metrics_processed == 2
    assert pipeline.store.count() == 2

    (facebook,) = pipeline.store.by_channel("facebook_ads", date(2024, 1, 1), date(2024, 1, 1))
    assert facebook.clicks == 40
    assert facebook.leads == 1
    assert facebook.closed_won == 1
    assert facebook.revenue == 200.0
    assert facebook.roas == 10.0
    assert facebook.cpa == 20.0

    assert events.of(INGEST_COMPLETE) == [{"ads_count": 2, "crm_count": 2, "rows": 2}]


@pytest.mark.asyncio
async def test_ingest_since_filters_rows(
    feed_transport, sample_ads_payload, sample_crm_payload, events
):
    """Test rows dated before since are not stored."""
    transport = feed_transport(
        {
            ADS_URL: (200, ads_body(sample_ads_payload)),
            CRM_URL: (200, crm_body(sample_crm_payload)),
        }
    )
    pipeline = _pipeline(transport, events)

    result = await pipeline.run(since=date(2024, 1, 2))

    assert result.metrics_processed == 0
    assert pipeline.store.count() == 0


@pytest.mark.asyncio
async def test_ingest_fetch_failure_stores_nothing(feed_transport, sample_ads_payload, events):
    """Test a failing CRM feed discards the successfully fetched ads."""
    transport = feed_transport(
        {ADS_URL: (200, ads_body(sample_ads_payload)), CRM_URL: (500, b"")}
    )
    pipeline = _pipeline(transport, events)

    with pytest.raises(FetchExhausted):
        await pipeline.run()

    assert pipeline.store.count() == 0
    assert INGEST_COMPLETE not in events.names()


@pytest.mark.asyncio
async def test_ingest_decode_failure_stores_nothing(
    feed_transport, sample_crm_payload, events
):
    """Test a malformed ads body aborts the run."""
    transport = feed_transport(
        {ADS_URL: (200, b"<html>oops</html>"), CRM_URL: (200, crm_body(sample_crm_payload))}
    )
    pipeline = _pipeline(transport, events)

    with pytest.raises(DecodeError):
        await pipeline.run()

    assert pipeline.store.count() == 0


@pytest.mark.asyncio
async def test_ingest_runs_accumulate(
    feed_transport, sample_ads_payload, sample_crm_payload, events
):
    """Test repeated runs append rather than replace."""
    transport = feed_transport(
        {
            ADS_URL: (200, ads_body(sample_ads_payload)),
            CRM_URL: (200, crm_body(sample_crm_payload)),
        }
    )
    pipeline = _pipeline(transport, events)

    await pipeline.run()
    await pipeline.run()

    assert pipeline.store.count() == 4


def _slow_crm_transport(ads_status, ads_content, crm_started, crm_cancelled):
    """Ads answer once the CRM request is in flight; the CRM request hangs until cancelled."""

    async def handler(request):
        if str(request.url) == ADS_URL:
            await crm_started.wait()
            return httpx.Response(ads_status, content=ads_content)
        crm_started.set()
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            crm_cancelled.set()
            raise
        return httpx.Response(200, content=crm_body([]))

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_ingest_cancelled_mid_flight_stores_nothing(sample_ads_payload, events):
    """Test cancelling a run aborts the in-flight fetch and stores nothing."""
    crm_started, crm_cancelled = asyncio.Event(), asyncio.Event()
    transport = _slow_crm_transport(
        200, ads_body(sample_ads_payload), crm_started, crm_cancelled
    )
    pipeline = _pipeline(transport, events)

    run = asyncio.create_task(pipeline.run())
    await asyncio.wait_for(crm_started.wait(), timeout=5)
    run.cancel()

    with pytest.raises(asyncio.CancelledError):
        await run

    assert crm_cancelled.is_set()
    assert pipeline.store.count() == 0
    assert INGEST_COMPLETE not in events.names()


@pytest.mark.asyncio
async def test_ingest_failure_settles_sibling_fetch(events):
    """Test the other fetch is fully torn down before the failure propagates."""
    crm_started, crm_cancelled = asyncio.Event(), asyncio.Event()
    transport = _slow_crm_transport(500, b"", crm_started, crm_cancelled)
    pipeline = _pipeline(transport, events)

    with pytest.raises(FetchExhausted):
        await pipeline.run()

    assert crm_started.is_set()
    assert crm_cancelled.is_set()
    assert pipeline.store.count() == 0


@pytest.mark.asyncio
async def test_ingest_appends_off_the_event_loop(
    feed_transport, sample_ads_payload, sample_crm_payload, events
):
    """Test the store's write lock is taken in a worker thread."""
    transport = feed_transport(
        {
            ADS_URL: (200, ads_body(sample_ads_payload)),
            CRM_URL: (200, crm_body(sample_crm_payload)),
        }
    )
    lock = ThreadRecordingLock()
    pipeline = _pipeline(transport, events, store=MetricsStore(lock=lock, events=events))

    await pipeline.run()

    assert lock.threads
    assert threading.get_ident() not in lock.threads
