"""
Fixed-interval trigger for question generation passes.
"""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from questionforge.config import WorkerConfig, config as default_config
from questionforge.utils.logging import job_logger as logger
from .models import PassSummary
from .runner import JobRunner


class QuestionWorker:
    """
    Background worker that runs a processing pass every poll interval.

    The scheduler never overlaps its own runs (max_instances=1); an
    on-demand pass from the HTTP trigger can still overlap a scheduled one.
    """

    def __init__(
        self,
        worker_config: Optional[WorkerConfig] = None,
        runner: Optional[JobRunner] = None,
        poll_interval_seconds: Optional[int] = None
    ):
        self.config = worker_config or default_config
        self.runner = runner or JobRunner(self.config)
        self.poll_interval = poll_interval_seconds or self.config.WORKER_POLL_INTERVAL_SECONDS

        self.scheduler = AsyncIOScheduler()
        self._is_processing = False
        self.last_summary: Optional[PassSummary] = None

    async def tick(self) -> Optional[PassSummary]:
        """
        One scheduled pass. Called by the scheduler every poll_interval seconds.

        Returns None when a previous tick is still running.
        """
        if self._is_processing:
            return None

        self._is_processing = True
        try:
            summary = await self.runner.run_pass()
            self.last_summary = summary
            if not summary.success:
                logger.error("Scheduled pass failed", error=summary.error)
            return summary
        finally:
            self._is_processing = False

    def start(self):
        """Start the background worker. Requires a running event loop."""
        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.poll_interval),
            id="question_generation_worker",
            name="Process question generation jobs",
            replace_existing=True,
            max_instances=1
        )

        self.scheduler.start()
        logger.info("Question worker started", poll_interval=self.poll_interval)

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Question worker stopped")

    @property
    def is_processing(self) -> bool:
        return self._is_processing


# Global worker instance
_worker_instance: Optional[QuestionWorker] = None


def start_question_worker(worker_config: Optional[WorkerConfig] = None) -> QuestionWorker:
    """
    Start the background worker.
    Call this during FastAPI startup when the web process also polls.
    """
    global _worker_instance

    if _worker_instance is None:
        _worker_instance = QuestionWorker(worker_config)
        _worker_instance.start()
    return _worker_instance


def stop_question_worker():
    global _worker_instance

    if _worker_instance is not None:
        _worker_instance.shutdown()
        _worker_instance = None


def get_worker() -> Optional[QuestionWorker]:
    """Get the current worker instance (for status checks)"""
    return _worker_instance
