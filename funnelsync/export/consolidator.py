"""FunnelSync - Daily Export Consolidation and Signing.

One day's stored rows are re-aggregated by (channel, campaign_id,
utm_campaign), serialized to canonical JSON and signed with HMAC-SHA256.
The signature covers the exact bytes that are transmitted.
"""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from funnelsync.models.metric_models import (
    ConsolidationKey,
    MetricAccumulator,
    ReconciledMetricRow,
)


def consolidation_key(row: ReconciledMetricRow) -> ConsolidationKey:
    return ConsolidationKey(row.channel, row.campaign_id, row.utm_campaign)


def consolidate(rows: Iterable[ReconciledMetricRow]) -> List[ReconciledMetricRow]:
    """Sum rows sharing a ConsolidationKey and re-derive their KPIs.

    ``date`` is kept from the first row of each group. ``utm_source`` and
    ``utm_medium`` are kept only when every row in the group agrees on them,
    otherwise they are blanked. Consolidating the output again is a no-op.
    """
    accumulators: Dict[ConsolidationKey, MetricAccumulator] = {}
    identities: Dict[ConsolidationKey, Dict[str, str]] = {}

    for row in rows:
        key = consolidation_key(row)
        acc = accumulators.get(key)
        if acc is None:
            acc = accumulators[key] = MetricAccumulator()
            identities[key] = {
                "date": row.date,
                "utm_source": row.utm_source,
                "utm_medium": row.utm_medium,
            }
        else:
            identity = identities[key]
            if identity["utm_source"] != row.utm_source:
                identity["utm_source"] = ""
            if identity["utm_medium"] != row.utm_medium:
                identity["utm_medium"] = ""
        acc.add_row(row)

    return [
        acc.freeze(**key._asdict(), **identities[key])
        for key, acc in accumulators.items()
    ]


def format_exported_at(moment: Optional[datetime] = None) -> str:
    """RFC3339 UTC timestamp with second precision and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_payload(
    day: str,
    rows: Iterable[ReconciledMetricRow],
    exported_at: Optional[datetime] = None,
) -> bytes:
    """Serialize ``{date, metrics, exported_at}`` as canonical JSON bytes."""
    document = {
        "date": day,
        "metrics": [row.model_dump(mode="json") for row in rows],
        "exported_at": format_exported_at(exported_at),
    }
    return json.dumps(
        document, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def sign(payload: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``payload`` under ``secret``."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify(payload: bytes, secret: str, signature: str) -> bool:
    """Constant-time check of a received signature."""
    return hmac.compare_digest(sign(payload, secret), signature)
