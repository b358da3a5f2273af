"""FunnelSync - Reconciled Metric Registry.

Defines the canonical set of metrics carried by a reconciled row and their
classifications. Merging code sums exactly the metrics registered as additive
here, so a new additive field only has to be registered once.
"""

from enum import Enum
from typing import Dict


class MetricType(str, Enum):
    """How a metric is categorised."""

    VOLUME = "volume"  # Ad delivery counts: clicks, impressions
    COST = "cost"  # Monetary spend
    FUNNEL = "funnel"  # CRM stage counts: leads, opportunities, closed_won
    REVENUE = "revenue"  # Closed-won amount
    DERIVED = "derived"  # Ratios computed from the additive fields


class MetricDefinition:
    """Describes a single metric."""

    def __init__(
        self, name: str, metric_type: MetricType, unit: str = "", description: str = ""
    ):
        self.name = name
        self.metric_type = metric_type
        self.unit = unit
        self.description = description

    @property
    def additive(self) -> bool:
        return self.metric_type != MetricType.DERIVED

    def __repr__(self) -> str:
        return f"<Metric {self.name} ({self.metric_type.value})>"


# ─────────────────────────────────────────────
# ADDITIVE METRICS - summed on every merge
# ─────────────────────────────────────────────

ADDITIVE_METRICS: Dict[str, MetricDefinition] = {
    # Ads feed
    "clicks": MetricDefinition("clicks", MetricType.VOLUME, "count", "Total clicks"),
    "impressions": MetricDefinition(
        "impressions", MetricType.VOLUME, "count", "Number of times ad was shown"
    ),
    "cost": MetricDefinition("cost", MetricType.COST, "currency", "Total ad spend"),
    # CRM feed
    "leads": MetricDefinition("leads", MetricType.FUNNEL, "count", "Opportunities in lead stage"),
    "opportunities": MetricDefinition(
        "opportunities", MetricType.FUNNEL, "count", "Opportunities in opportunity stage"
    ),
    "closed_won": MetricDefinition(
        "closed_won", MetricType.FUNNEL, "count", "Opportunities closed as won"
    ),
    "revenue": MetricDefinition(
        "revenue", MetricType.REVENUE, "currency", "Sum of closed-won amounts"
    ),
}


# ─────────────────────────────────────────────
# DERIVED METRICS - never stored, always recomputed
# ─────────────────────────────────────────────

DERIVED_METRICS: Dict[str, MetricDefinition] = {
    "cpc": MetricDefinition("cpc", MetricType.DERIVED, "currency", "Cost per click"),
    "cpa": MetricDefinition("cpa", MetricType.DERIVED, "currency", "Cost per lead"),
    "cvr_lead_to_opp": MetricDefinition(
        "cvr_lead_to_opp", MetricType.DERIVED, "ratio", "Opportunities / leads"
    ),
    "cvr_opp_to_won": MetricDefinition(
        "cvr_opp_to_won", MetricType.DERIVED, "ratio", "Closed won / opportunities"
    ),
    "roas": MetricDefinition("roas", MetricType.DERIVED, "ratio", "Return on ad spend"),
}


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

ALL_METRICS = {**ADDITIVE_METRICS, **DERIVED_METRICS}


def get_metric(name: str) -> MetricDefinition | None:
    """Look up a metric by name."""
    return ALL_METRICS.get(name)


def metrics_by_type(metric_type: MetricType) -> list[MetricDefinition]:
    """Return all metrics of a given type."""
    return [m for m in ALL_METRICS.values() if m.metric_type == metric_type]


ADDITIVE_FIELDS = tuple(name for name, m in ALL_METRICS.items() if m.additive)

# Monetary totals, summed as floats
MONETARY_FIELDS = tuple(
    m.name for m in metrics_by_type(MetricType.COST) + metrics_by_type(MetricType.REVENUE)
)
