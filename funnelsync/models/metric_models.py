"""FunnelSync - Reconciled Metric Models.

A ``ReconciledMetricRow`` is identified by its ``JoinKey`` and carries only
additive totals. The derived KPIs are pydantic computed fields: they are
recomputed from the totals whenever they are read or serialized, so two rows
can never be merged without re-deriving them.
"""

import math
from typing import Dict, List, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from funnelsync.analyzer import kpi_engine
from funnelsync.core.metric_registry import ADDITIVE_FIELDS, MONETARY_FIELDS, get_metric

# Float totals are summed with math.fsum so the result is independent of
# the order contributions arrived in.
FLOAT_FIELDS = frozenset(MONETARY_FIELDS)


class JoinKey(NamedTuple):
    """Composite identity shared by the ads and CRM sides of a join."""

    date: str
    channel: str
    campaign_id: str
    utm_campaign: str
    utm_source: str
    utm_medium: str


class ConsolidationKey(NamedTuple):
    """Coarser identity used when consolidating one day for export."""

    channel: str
    campaign_id: str
    utm_campaign: str


class ReconciledMetricRow(BaseModel):
    """Unified per-day, per-channel, per-campaign marketing metric."""

    model_config = ConfigDict(frozen=True)

    # ── Identity ──
    date: str
    channel: str
    campaign_id: str = ""
    utm_campaign: str = ""
    utm_source: str = ""
    utm_medium: str = ""

    # ── Additive ──
    clicks: int = Field(default=0, ge=0)
    impressions: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0)
    leads: int = Field(default=0, ge=0)
    opportunities: int = Field(default=0, ge=0)
    closed_won: int = Field(default=0, ge=0)
    revenue: float = Field(default=0.0, ge=0)

    # ── Derived ──

    @computed_field
    @property
    def cpc(self) -> float:
        return kpi_engine.cpc(self.cost, self.clicks)

    @computed_field
    @property
    def cpa(self) -> float:
        return kpi_engine.cpa(self.cost, self.leads)

    @computed_field
    @property
    def cvr_lead_to_opp(self) -> float:
        return kpi_engine.cvr_lead_to_opp(self.opportunities, self.leads)

    @computed_field
    @property
    def cvr_opp_to_won(self) -> float:
        return kpi_engine.cvr_opp_to_won(self.closed_won, self.opportunities)

    @computed_field
    @property
    def roas(self) -> float:
        return kpi_engine.roas(self.revenue, self.cost)

    @property
    def key(self) -> JoinKey:
        return JoinKey(
            self.date,
            self.channel,
            self.campaign_id,
            self.utm_campaign,
            self.utm_source,
            self.utm_medium,
        )

    def additive_totals(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in ADDITIVE_FIELDS}


class MetricAccumulator:
    """Mutable running totals for one key.

    Contributions are collected first and only summed by ``totals()``, after
    every merge for the key has happened.
    """

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {
            name: 0 for name in ADDITIVE_FIELDS if name not in FLOAT_FIELDS
        }
        self._amounts: Dict[str, List[float]] = {name: [] for name in FLOAT_FIELDS}

    def add(self, **contributions: float) -> None:
        for name, value in contributions.items():
            metric = get_metric(name)
            if metric is None:
                raise KeyError(f"Unknown metric: {name}")
            if not metric.additive:
                raise KeyError(f"Derived metric {name} is recomputed, not accumulated")
            if name in FLOAT_FIELDS:
                self._amounts[name].append(float(value))
            else:
                self._counts[name] += int(value)

    def add_row(self, row: ReconciledMetricRow) -> None:
        self.add(**row.additive_totals())

    def totals(self) -> Dict[str, float]:
        totals: Dict[str, float] = dict(self._counts)
        for name, values in self._amounts.items():
            totals[name] = math.fsum(values)
        return totals

    def freeze(self, **identity: str) -> ReconciledMetricRow:
        """Build the immutable row for ``identity`` from the final totals."""
        return ReconciledMetricRow(**identity, **self.totals())
