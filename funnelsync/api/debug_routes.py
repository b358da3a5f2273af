"""FunnelSync - Debug Routes.

Inspect live upstream feed slices without reconciling or storing them.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from funnelsync.api.deps import get_extractor, parse_date_param
from funnelsync.connectors.feeds.extractor import Extractor
from funnelsync.core.exceptions import FunnelSyncError
from funnelsync.etl.channels import infer_channel
from funnelsync.models.dates import format_day

router = APIRouter(prefix="/debug", tags=["Debug"])


@router.get("/ads")
async def debug_ads(
    date: Optional[str] = Query(None),
    extractor: Extractor = Depends(get_extractor),
):
    """Ads records for one day, straight from the feed."""
    day = format_day(parse_date_param(date, "date"))
    try:
        ads = await extractor.extract_ads()
    except FunnelSyncError as e:
        raise HTTPException(status_code=502, detail=f"Failed to extract ads data: {e}")

    matching = [ad for ad in ads if ad.date == day]
    return {"date": day, "ads_data": matching, "total_records": len(matching)}


@router.get("/crm")
async def debug_crm(
    date: Optional[str] = Query(None),
    extractor: Extractor = Depends(get_extractor),
):
    """CRM records created on one day, straight from the feed."""
    day = format_day(parse_date_param(date, "date"))
    try:
        crm = await extractor.extract_crm()
    except FunnelSyncError as e:
        raise HTTPException(status_code=502, detail=f"Failed to extract CRM data: {e}")

    matching = [opp for opp in crm if format_day(opp.created_at) == day]
    return {"date": day, "crm_data": matching, "total_records": len(matching)}


@router.get("/matches")
async def debug_matches(
    utm_campaign: Optional[str] = Query(None),
    extractor: Extractor = Depends(get_extractor),
):
    """Both feeds' records for one UTM campaign, with the CRM side's inferred channel."""
    if not utm_campaign:
        raise HTTPException(status_code=400, detail="utm_campaign parameter is required")
    try:
        ads = await extractor.extract_ads()
        crm = await extractor.extract_crm()
    except FunnelSyncError as e:
        raise HTTPException(status_code=502, detail=f"Failed to extract data: {e}")

    ads_matches = [ad for ad in ads if ad.utm_campaign == utm_campaign]
    crm_matches = [
        {**opp.model_dump(mode="json"), "inferred_channel": infer_channel(opp.utm_source, opp.utm_medium)}
        for opp in crm
        if opp.utm_campaign == utm_campaign
    ]
    return {
        "utm_campaign": utm_campaign,
        "ads_matches": ads_matches,
        "crm_matches": crm_matches,
        "ads_count": len(ads_matches),
        "crm_count": len(crm_matches),
    }
