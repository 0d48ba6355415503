"""Pocket CSV import endpoints."""

import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from ..core.engine import BookmarkEngine
from ..core.errors import FormatError, ImportInProgressError
from ..core.import_pipeline import ImportJob, ImportRow, parse_pocket_csv
from .dependencies import get_engine

logger = logging.getLogger(__name__)

router = APIRouter()


class PocketImportRequest(BaseModel):
    csv_text: str = Field(..., description="Contents of a Pocket CSV export")


def _job_payload(job: Optional[ImportJob], running: bool) -> dict:
    if job is None:
        return {"running": running, "job": None}

    payload = asdict(job)
    payload["progress"] = job.progress
    return {"running": running, "job": payload}


async def _run_import(engine: BookmarkEngine, rows: List[ImportRow]) -> None:
    try:
        await engine.pipeline.run(rows)
    except ImportInProgressError as e:
        logger.warning(f"Import not started: {e}")
    except Exception as e:
        logger.error(f"Import failed: {e}", exc_info=True)


@router.post("/imports/pocket", status_code=202)
async def start_pocket_import(
    request: PocketImportRequest,
    background_tasks: BackgroundTasks,
    engine: BookmarkEngine = Depends(get_engine),
):
    """Parse the CSV and import its rows in the background."""
    if engine.pipeline.is_running:
        raise HTTPException(status_code=409, detail="An import is already running")

    try:
        rows = parse_pocket_csv(request.csv_text)
    except FormatError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if not rows:
        raise HTTPException(status_code=422, detail="No valid bookmarks found in CSV")

    background_tasks.add_task(_run_import, engine, rows)
    logger.info(f"Queued Pocket import of {len(rows)} rows")

    return {"accepted": len(rows)}


@router.get("/imports/current")
async def current_import(engine: BookmarkEngine = Depends(get_engine)):
    """State of the running or most recent import."""
    return _job_payload(engine.pipeline.current_job, engine.pipeline.is_running)


@router.post("/imports/cancel")
async def cancel_import(engine: BookmarkEngine = Depends(get_engine)):
    """Request cancellation; the batch in flight still completes."""
    if not engine.pipeline.is_running:
        raise HTTPException(status_code=409, detail="No import is running")

    engine.pipeline.cancel()
    return {"cancelling": True}
