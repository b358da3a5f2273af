"""FunnelSync - Metrics Query Routes.

Plain ``def`` handlers: FastAPI runs them on its worker threadpool, and the
store's reader/writer lock keeps concurrent reads consistent with appends.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from funnelsync.api.deps import get_store, parse_date_param
from funnelsync.storage.memory import MetricsStore

router = APIRouter(prefix="/metrics", tags=["Metrics"])

DEFAULT_LIMIT = 100


@router.get("/channel")
def get_channel_metrics(
    channel: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    store: MetricsStore = Depends(get_store),
):
    """Rows for one channel within an inclusive date range, paginated."""
    if not channel or not date_from or not date_to:
        raise HTTPException(
            status_code=400, detail="channel, from, and to parameters are required"
        )
    start = parse_date_param(date_from, "from")
    end = parse_date_param(date_to, "to")

    limit = limit if limit is not None and limit > 0 else DEFAULT_LIMIT
    offset = offset if offset is not None and offset >= 0 else 0

    rows = store.by_channel(channel, start, end)
    total = len(rows)
    offset = min(offset, total)
    end_index = min(offset + limit, total)

    return {
        "data": rows[offset:end_index],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": end_index < total,
        },
    }


@router.get("/funnel")
def get_funnel_metrics(
    utm_campaign: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    store: MetricsStore = Depends(get_store),
):
    """Rows for one UTM campaign within an inclusive date range."""
    if not utm_campaign or not date_from or not date_to:
        raise HTTPException(
            status_code=400, detail="utm_campaign, from, and to parameters are required"
        )
    start = parse_date_param(date_from, "from")
    end = parse_date_param(date_to, "to")
    return store.by_campaign(utm_campaign, start, end)
