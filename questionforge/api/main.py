"""
FastAPI application for the QuestionForge worker.

Serves the on-demand trigger and status endpoints. Set WORKER_EMBEDDED=true
to also run the interval scheduler inside the web process.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from questionforge import __version__
from questionforge.config import config
from questionforge.jobs.scheduler import get_worker, start_question_worker, stop_question_worker
from questionforge.utils.logging import configure_logging, api_logger as logger
from .routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(config.LOG_LEVEL)
    if config.WORKER_EMBEDDED:
        start_question_worker(config)
    yield
    stop_question_worker()


app = FastAPI(
    title="QuestionForge Worker",
    description="Background worker that generates exam questions from queued jobs",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(router)


# ===== Root Endpoints =====

@app.get("/")
async def root():
    """Worker status."""
    worker = get_worker()
    summary = worker.last_summary if worker else None
    return {
        "status": "Worker active",
        "message": "Use /run to process pending jobs now",
        "scheduler": {
            "embedded": worker is not None,
            "processing": worker.is_processing if worker else False,
            "last_pass": summary.to_dict() if summary else None,
        },
    }


@app.get("/health")
async def health():
    """Liveness plus whether the credentials a pass needs are present."""
    missing = config.missing_settings
    if missing:
        logger.warning("Health check: configuration incomplete", missing=missing)
    return {
        "status": "healthy",
        "version": __version__,
        "environment": config.ENVIRONMENT,
        "configured": not missing,
        "missing": missing,
    }
