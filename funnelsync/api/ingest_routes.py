"""FunnelSync - Ingest API Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from funnelsync.api.deps import get_pipeline, parse_date_param
from funnelsync.core.exceptions import DecodeError, FetchExhausted
from funnelsync.core.logging import get_logger
from funnelsync.etl.pipeline import IngestPipeline

logger = get_logger("api.ingest")

router = APIRouter(prefix="/ingest", tags=["Ingest"])


@router.post("/run")
async def run_ingest(
    since: Optional[str] = Query(None, description="Keep rows on or after YYYY-MM-DD"),
    pipeline: IngestPipeline = Depends(get_pipeline),
):
    """Fetch both feeds, reconcile them and store the resulting rows.

    The run is all-or-nothing: a failure on either feed stores nothing.
    """
    since_date = parse_date_param(since, "since") if since else None

    try:
        result = await pipeline.run(since_date)
    except FetchExhausted as e:
        logger.error(f"Ingest aborted: {e}", extra={"url": e.url})
        raise HTTPException(status_code=502, detail=f"Failed to extract data: {e}")
    except DecodeError as e:
        logger.error(f"Ingest aborted: {e}", extra={"source": e.source})
        raise HTTPException(status_code=502, detail=f"Failed to decode data: {e}")

    return {
        "message": "Ingestion completed successfully",
        "metrics_processed": result.metrics_processed,
        "since": result.since,
        "ads_records": result.ads_records,
        "crm_records": result.crm_records,
        "date_fallbacks": result.date_fallbacks,
    }
