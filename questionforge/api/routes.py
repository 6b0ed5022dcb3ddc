"""
Worker API Routes

On-demand trigger and status endpoints:
- GET|POST /run   one synchronous processing pass
- GET /stats      job counts by status
- GET /logs       recent buffered log entries
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from questionforge.config import config
from questionforge.database.jobs import JobQueueService
from questionforge.jobs.runner import JobRunner
from questionforge.utils.logging import LogLevel, api_logger as logger, get_log_buffer

router = APIRouter(tags=["worker"])


def get_runner() -> JobRunner:
    return JobRunner(config)


def get_job_service() -> JobQueueService:
    return JobQueueService()


# ===== On-demand Trigger =====

@router.api_route("/run", methods=["GET", "POST"])
async def run_pass(runner: JobRunner = Depends(get_runner)):
    """
    Run one poll+process pass synchronously.

    Returns 200 whenever the pass itself ran, however many individual jobs
    failed; 500 when the pass could not run (config, poll or internal error).
    """
    logger.info("On-demand pass requested")

    try:
        summary = await runner.run_pass()
    except Exception as e:
        logger.exception("On-demand pass crashed")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    status_code = 200 if summary.success else 500
    return JSONResponse(status_code=status_code, content=summary.to_dict())


# ===== Status =====

@router.get("/stats")
async def queue_stats(job_service: JobQueueService = Depends(get_job_service)):
    """Job counts by status."""
    try:
        return await job_service.get_queue_stats()
    except Exception as e:
        logger.error("Failed to fetch queue stats", error=str(e))
        raise HTTPException(status_code=503, detail="Job store unavailable")


@router.get("/logs")
async def recent_logs(
    limit: int = Query(default=100, ge=1, le=1000),
    level: Optional[LogLevel] = None,
    source: Optional[str] = None,
    job_id: Optional[str] = None
):
    """Recent worker log entries, newest first."""
    buffer = get_log_buffer()
    return {
        "entries": buffer.get_recent(limit=limit, level=level, source=source, job_id=job_id),
        "errors": buffer.get_errors(limit=20),
        "stats": buffer.get_stats(),
    }
