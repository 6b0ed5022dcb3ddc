"""
One processing pass: validate config, poll both partitions, process the jobs.

Both triggers (the interval scheduler and the on-demand HTTP endpoint) run
exactly this.
"""

import asyncio
from typing import Any, Dict, List, Optional

from questionforge.config import WorkerConfig, config as default_config
from questionforge.database.jobs import JobQueueService
from questionforge.errors import ClaimError, ConfigError
from questionforge.utils.logging import job_logger as logger
from .models import JobOutcome, Partition, PassSummary
from .processor import JobProcessor


class JobRunner:
    """
    Runs poll+process passes.

    Jobs are polled from both partitions before any is claimed, so a query
    failure aborts the pass without touching job state.
    """

    def __init__(
        self,
        worker_config: Optional[WorkerConfig] = None,
        job_service: Optional[JobQueueService] = None,
        processor: Optional[JobProcessor] = None
    ):
        self.config = worker_config or default_config
        self._job_service = job_service
        self._processor = processor

    @property
    def jobs(self) -> JobQueueService:
        if self._job_service is None:
            self._job_service = JobQueueService()
        return self._job_service

    @property
    def processor(self) -> JobProcessor:
        if self._processor is None:
            self._processor = JobProcessor(self.config, job_service=self.jobs)
        return self._processor

    async def run_pass(self) -> PassSummary:
        """
        Run one full pass.

        Returns:
            PassSummary with success=False only for pass-level failures
            (missing config, poll failure, unexpected error). Individual
            job failures still count as a successful pass.
        """
        try:
            self.config.validate_required()
        except ConfigError as e:
            logger.error("Pass aborted: configuration incomplete", error=str(e))
            return PassSummary(success=False, error=str(e))

        try:
            polled = await self.poll()
        except ClaimError as e:
            logger.error("Pass aborted: could not fetch pending jobs", error=str(e))
            return PassSummary(success=False, error=str(e))

        partitions = {partition.value: len(jobs) for partition, jobs in polled.items()}
        pending = [job for jobs in polled.values() for job in jobs]

        if not pending:
            logger.debug("No pending jobs")
            return PassSummary(success=True, partitions=partitions)

        logger.info("Found pending jobs", **partitions)
        outcomes = await self._process_all(pending)

        processed = sum(1 for outcome in outcomes if outcome.claimed)
        summary = PassSummary(
            success=True,
            processed=processed,
            skipped=len(outcomes) - processed,
            partitions=partitions,
            outcomes=outcomes,
        )
        logger.info("Pass finished", processed=summary.processed, skipped=summary.skipped)
        return summary

    async def poll(self) -> Dict[Partition, List[Dict[str, Any]]]:
        limit = self.config.WORKER_POLL_LIMIT
        return {
            Partition.PLAIN: await self.jobs.get_pending_jobs(Partition.PLAIN, limit=limit),
            Partition.DOCUMENT: await self.jobs.get_pending_jobs(Partition.DOCUMENT, limit=limit),
        }

    async def _process_all(self, pending: List[Dict[str, Any]]) -> List[JobOutcome]:
        max_concurrent = self.config.WORKER_MAX_CONCURRENT_JOBS

        if max_concurrent <= 1:
            return [await self._process_one(job) for job in pending]

        semaphore = asyncio.Semaphore(max_concurrent)

        async def bounded(job: Dict[str, Any]) -> JobOutcome:
            async with semaphore:
                return await self._process_one(job)

        return list(await asyncio.gather(*(bounded(job) for job in pending)))

    async def _process_one(self, job: Dict[str, Any]) -> JobOutcome:
        # A job must never take the rest of the pass down with it
        try:
            return await self.processor.process(job)
        except Exception as e:
            logger.exception("Job crashed outside the processor's handling", job_id=job.get("id"))
            return JobOutcome(job_id=job.get("id"), status="error", error=str(e))
