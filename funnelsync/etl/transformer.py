"""FunnelSync - Ads + CRM → Reconciled Transformer.

Joins the two feeds under a composite ``JoinKey``. Ads records contribute
clicks, impressions and cost; CRM records contribute funnel stage counts and
closed-won revenue. Derived KPIs are computed only once every record has
been merged.
"""

from datetime import date
from typing import Dict, Iterable, List, Sequence

from funnelsync.core.events import (
    DATE_FILTER_SKIP,
    RECONCILE_COMPLETE,
    EventSink,
    default_sink,
)
from funnelsync.etl.channels import infer_channel
from funnelsync.models.dates import format_day, parse_day
from funnelsync.models.metric_models import (
    JoinKey,
    MetricAccumulator,
    ReconciledMetricRow,
)
from funnelsync.models.raw_models import AdPerformanceRecord, CRMOpportunityRecord

# CRM stage → accumulator contribution. Other stages are ignored.
STAGE_COUNTERS: Dict[str, str] = {
    "lead": "leads",
    "opportunity": "opportunities",
    "closed_won": "closed_won",
}


def ad_key(ad: AdPerformanceRecord, ignore_campaign_id: bool = False) -> JoinKey:
    return JoinKey(
        date=ad.date,
        channel=ad.channel,
        campaign_id="" if ignore_campaign_id else ad.campaign_id,
        utm_campaign=ad.utm_campaign,
        utm_source=ad.utm_source,
        utm_medium=ad.utm_medium,
    )


def crm_key(crm: CRMOpportunityRecord) -> JoinKey:
    # The CRM feed carries no campaign id.
    return JoinKey(
        date=format_day(crm.created_at),
        channel=infer_channel(crm.utm_source, crm.utm_medium),
        campaign_id="",
        utm_campaign=crm.utm_campaign,
        utm_source=crm.utm_source,
        utm_medium=crm.utm_medium,
    )


class JoinAggregator:
    """Reconciles ads and CRM records into ReconciledMetricRows.

    Args:
        events: Sink for the ``reconcile_complete`` event.
        ignore_campaign_id: Key ads rows on an empty campaign id so they can
            meet CRM rows, which never carry one.
    """

    def __init__(self, events: EventSink | None = None, ignore_campaign_id: bool = False):
        self.events = events or default_sink
        self.ignore_campaign_id = ignore_campaign_id

    def reconcile(
        self,
        ads: Iterable[AdPerformanceRecord],
        crm: Iterable[CRMOpportunityRecord],
    ) -> List[ReconciledMetricRow]:
        accumulators: Dict[JoinKey, MetricAccumulator] = {}
        ads_count = 0
        crm_count = 0

        for ad in ads:
            ads_count += 1
            key = ad_key(ad, self.ignore_campaign_id)
            acc = accumulators.setdefault(key, MetricAccumulator())
            acc.add(clicks=ad.clicks, impressions=ad.impressions, cost=ad.cost)

        for opp in crm:
            crm_count += 1
            key = crm_key(opp)
            acc = accumulators.setdefault(key, MetricAccumulator())
            counter = STAGE_COUNTERS.get(opp.stage)
            if counter is None:
                continue
            acc.add(**{counter: 1})
            if opp.stage == "closed_won":
                acc.add(revenue=opp.amount)

        # All merges are done; freezing computes the derived KPIs.
        rows = [acc.freeze(**key._asdict()) for key, acc in accumulators.items()]

        self.events.emit(
            RECONCILE_COMPLETE, ads_count=ads_count, crm_count=crm_count, rows=len(rows)
        )
        return rows


def filter_since(
    rows: Sequence[ReconciledMetricRow],
    since: date,
    events: EventSink | None = None,
) -> List[ReconciledMetricRow]:
    """Keep rows dated on or after ``since``. Unparseable dates are dropped."""
    events = events or default_sink
    kept: List[ReconciledMetricRow] = []
    for row in rows:
        day = parse_day(row.date)
        if day is None:
            events.emit(DATE_FILTER_SKIP, date=row.date)
            continue
        if day >= since:
            kept.append(row)
    return kept
