"""Shared fixtures for FunnelSync tests."""
import json
import threading
from contextlib import contextmanager

import httpx
import pytest

from funnelsync.core.events import RecordingEventSink
from funnelsync.models.raw_models import AdPerformanceRecord, CRMOpportunityRecord

ADS_URL = "https://feeds.test/ads"
CRM_URL = "https://feeds.test/crm"
SINK_URL = "https://sink.test/metrics"


@pytest.fixture
def events():
    """In-memory event sink."""
    return RecordingEventSink()


@pytest.fixture
def make_ad():
    """Factory for ads records with sensible defaults."""

    def _make(**overrides):
        fields = {
            "date": "2024-01-01",
            "channel": "google_ads",
            "campaign_id": "",
            "clicks": 100,
            "impressions": 5000,
            "cost": 50.0,
            "utm_campaign": "x",
            "utm_source": "google",
            "utm_medium": "cpc",
        }
        fields.update(overrides)
        return AdPerformanceRecord(**fields)

    return _make


@pytest.fixture
def make_crm():
    """Factory for CRM records with sensible defaults."""

    def _make(**overrides):
        fields = {
            "opportunity_id": "O-1",
            "contact_email": "lead@example.com",
            "stage": "lead",
            "amount": 0.0,
            "created_at": "2024-01-01T10:00:00Z",
            "utm_campaign": "x",
            "utm_source": "google",
            "utm_medium": "cpc",
        }
        fields.update(overrides)
        return CRMOpportunityRecord(**fields)

    return _make


def ads_body(records):
    return json.dumps({"external": {"ads": {"performance": records}}}).encode()


def crm_body(records):
    return json.dumps({"external": {"crm": {"opportunities": records}}}).encode()


@pytest.fixture
def feed_transport():
    """Build an httpx.MockTransport serving fixed bodies per URL.

    ``routes`` maps URL to (status, body bytes). Every request is recorded
    on the returned transport's ``calls`` list.
    """

    def _build(routes):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            calls.append(url)
            status, body = routes[url]
            return httpx.Response(status, content=body)

        transport = httpx.MockTransport(handler)
        transport.calls = calls
        return transport

    return _build


@pytest.fixture
def sample_ads_payload():
    return [
        {
            "date": "2024-01-01",
            "campaign_id": "C-1001",
            "channel": "google_ads",
            "clicks": 100,
            "impressions": 5000,
            "cost": 50.0,
            "utm_campaign": "back_to_school",
            "utm_source": "google",
            "utm_medium": "cpc",
        },
        {
            "date": "2024-01-01",
            "campaign_id": "",
            "channel": "facebook_ads",
            "clicks": 40,
            "impressions": 2000,
            "cost": 20.0,
            "utm_campaign": "spring",
            "utm_source": "facebook",
            "utm_medium": "paid_social",
        },
    ]


@pytest.fixture
def sample_crm_payload():
    return [
        {
            "opportunity_id": "O-9001",
            "contact_email": "a@example.com",
            "stage": "lead",
            "amount": 0,
            "created_at": "2024-01-01T09:00:00Z",
            "utm_campaign": "spring",
            "utm_source": "facebook",
            "utm_medium": "paid_social",
        },
        {
            "opportunity_id": "O-9002",
            "contact_email": "b@example.com",
            "stage": "closed_won",
            "amount": 200,
            "created_at": "2024/01/01 15:30:00",
            "utm_campaign": "spring",
            "utm_source": "facebook",
            "utm_medium": "paid_social",
        },
    ]


class ThreadRecordingLock:
    """Store lock that records which thread took it."""

    def __init__(self):
        self.threads = []

    @contextmanager
    def read(self):
        self.threads.append(threading.get_ident())
        yield

    @contextmanager
    def write(self):
        self.threads.append(threading.get_ident())
        yield
