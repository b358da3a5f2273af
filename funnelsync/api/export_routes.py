"""FunnelSync - Export API Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from funnelsync.api.deps import get_export_service, parse_date_param
from funnelsync.core.exceptions import NoDataForDate, SinkDeliveryFailure
from funnelsync.core.logging import get_logger
from funnelsync.export.service import ExportService

logger = get_logger("api.export")

router = APIRouter(prefix="/export", tags=["Export"])


@router.post("/run")
async def run_export(
    date: Optional[str] = Query(None, description="Day to export, YYYY-MM-DD"),
    service: ExportService = Depends(get_export_service),
):
    """Consolidate one day's metrics and push them, signed, to the sink.

    Without a configured sink the consolidated snapshot is returned instead.
    """
    day = parse_date_param(date, "date")

    try:
        result = await service.run_export(day)
    except NoDataForDate as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SinkDeliveryFailure as e:
        logger.error(f"Export failed: {e}", extra={"date": date})
        raise HTTPException(status_code=502, detail=f"Failed to export to sink: {e}")

    if not result.delivered:
        return {
            "message": "Export data prepared (no SINK_URL configured)",
            "date": result.date,
            "metrics": result.metrics,
            "total_records": result.total_records,
            "delivered": False,
        }

    return {
        "message": "Export completed successfully",
        "date": result.date,
        "total_records": result.total_records,
        "sink_url": result.sink_url,
        "delivered": True,
    }
