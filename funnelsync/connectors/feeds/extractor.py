"""FunnelSync - Feed Extractor.

Fetches both upstream feeds and decodes them against their documented
envelopes. A run either gets every record of a feed or an error: records
are never returned from a body that failed to decode.
"""

from typing import Any, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from funnelsync.connectors.feeds.client import FeedClient
from funnelsync.core.events import DECODE_FAILED, EventSink
from funnelsync.core.exceptions import DecodeError
from funnelsync.core.logging import get_logger
from funnelsync.models.raw_models import (
    AdPerformanceRecord,
    AdsResponse,
    CRMOpportunityRecord,
    CRMResponse,
)

logger = get_logger("feeds.extractor")

EnvelopeT = TypeVar("EnvelopeT", bound=BaseModel)


def decode_envelope(
    payload: Any, model: Type[EnvelopeT], source: str, events: EventSink
) -> EnvelopeT:
    """Validate a decoded JSON payload against a feed envelope model."""
    if not isinstance(payload, dict):
        events.emit(DECODE_FAILED, source=source, error="top-level value is not an object")
        raise DecodeError(source, f"expected a JSON object, got {type(payload).__name__}")
    try:
        return model.model_validate(payload, context={"events": events})
    except ValidationError as e:
        events.emit(
            DECODE_FAILED, source=source, error=f"{e.error_count()} validation errors"
        )
        raise DecodeError(source, str(e)) from e


class Extractor:
    """Pulls the ads and CRM feeds through a shared FeedClient."""

    def __init__(self, client: FeedClient, ads_url: str, crm_url: str):
        self.client = client
        self.ads_url = ads_url
        self.crm_url = crm_url

    @property
    def events(self) -> EventSink:
        return self.client.events

    async def extract_ads(self) -> List[AdPerformanceRecord]:
        """Fetch and decode ``external.ads.performance[]``."""
        payload = await self.client.fetch_json(self.ads_url, source="ads")
        response = decode_envelope(payload, AdsResponse, "ads", self.events)
        records = response.records
        logger.info(
            f"Extracted {len(records)} ads records",
            extra={"source": "ads", "count": len(records)},
        )
        return records

    async def extract_crm(self) -> List[CRMOpportunityRecord]:
        """Fetch and decode ``external.crm.opportunities[]``."""
        payload = await self.client.fetch_json(self.crm_url, source="crm")
        response = decode_envelope(payload, CRMResponse, "crm", self.events)
        records = response.records
        fallbacks = sum(1 for r in records if r.created_at_fallback)
        if fallbacks:
            logger.warning(
                f"{fallbacks} of {len(records)} CRM records had unparseable created_at",
                extra={"source": "crm", "count": fallbacks},
            )
        logger.info(
            f"Extracted {len(records)} CRM records",
            extra={"source": "crm", "count": len(records)},
        )
        return records

    async def close(self) -> None:
        await self.client.close()
