"""FunnelSync - Raw Feed Models (Immutable).

Records exactly as extracted from the two upstream feeds, plus the
ingestion timestamp stamped at decode time. Never modified after decode.
"""

from datetime import datetime, timezone
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, model_validator

from funnelsync.core.events import DATE_PARSE_FALLBACK
from funnelsync.models.dates import parse_created_at


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _drop_nulls(data: Any) -> Any:
    """Upstream feeds send null for missing values; treat them as absent."""
    if isinstance(data, dict):
        return {k: v for k, v in data.items() if v is not None}
    return data


class AdPerformanceRecord(BaseModel):
    """One day of spend for one campaign on one ad channel."""

    model_config = ConfigDict(frozen=True)

    date: str = Field(default="", description="YYYY-MM-DD, kept verbatim")
    channel: str = ""
    campaign_id: str = ""
    clicks: int = Field(default=0, ge=0)
    impressions: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0)
    utm_campaign: str = ""
    utm_source: str = ""
    utm_medium: str = ""
    ingested_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="before")
    @classmethod
    def _stamp(cls, data: Any) -> Any:
        data = _drop_nulls(data)
        if isinstance(data, dict):
            data.pop("ingested_at", None)
        return data


class CRMOpportunityRecord(BaseModel):
    """One CRM opportunity at its current funnel stage."""

    model_config = ConfigDict(frozen=True)

    opportunity_id: str = ""
    contact_email: str = ""
    stage: str = ""
    amount: float = Field(default=0.0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    created_at_fallback: bool = Field(
        default=False,
        description="True when created_at could not be parsed and defaulted to now",
    )
    utm_campaign: str = ""
    utm_source: str = ""
    utm_medium: str = ""
    ingested_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="before")
    @classmethod
    def _parse_created_at(cls, data: Any, info: ValidationInfo) -> Any:
        """Lenient created_at: unparseable values fall back to now.

        The fallback is a data-quality degradation, not a decode failure. It is
        flagged on the record and reported to the ``events`` sink passed in the
        validation context.
        """
        data = _drop_nulls(data)
        if not isinstance(data, dict):
            return data
        data.pop("ingested_at", None)
        data.pop("created_at_fallback", None)

        raw = data.get("created_at")
        if isinstance(raw, datetime):
            return data

        parsed = parse_created_at(raw) if isinstance(raw, str) else None
        if parsed is None:
            data["created_at"] = _utcnow()
            data["created_at_fallback"] = True
            events = (info.context or {}).get("events")
            if events is not None:
                events.emit(
                    DATE_PARSE_FALLBACK,
                    source="crm",
                    raw_value=raw,
                    opportunity_id=data.get("opportunity_id", ""),
                )
        else:
            data["created_at"] = parsed
        return data


# ─────────────────────────────────────────────
# FEED ENVELOPES
# ─────────────────────────────────────────────


class _AdsSection(BaseModel):
    performance: List[AdPerformanceRecord] = []


class _AdsExternal(BaseModel):
    ads: _AdsSection = _AdsSection()


class AdsResponse(BaseModel):
    """``{"external": {"ads": {"performance": [...]}}}``"""

    external: _AdsExternal = _AdsExternal()

    @property
    def records(self) -> List[AdPerformanceRecord]:
        return self.external.ads.performance


class _CRMSection(BaseModel):
    opportunities: List[CRMOpportunityRecord] = []


class _CRMExternal(BaseModel):
    crm: _CRMSection = _CRMSection()


class CRMResponse(BaseModel):
    """``{"external": {"crm": {"opportunities": [...]}}}``"""

    external: _CRMExternal = _CRMExternal()

    @property
    def records(self) -> List[CRMOpportunityRecord]:
        return self.external.crm.opportunities
