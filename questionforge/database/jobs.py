"""
Job Queue Service

Handles question generation job queue operations using Supabase:
partitioned FIFO polling, claiming, progress counters and terminal
transitions.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Sequence

from supabase import Client

from questionforge.errors import ClaimError, PersistenceError
from questionforge.jobs.models import JobStatus, Partition, compute_progress
from .client import get_supabase_admin_client


JOBS_TABLE = "question_generation_jobs"

# JSON path of the partition flag inside the config column
SOURCE_DOCUMENT_PATH = "config->>source_document_id"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobQueueService:
    """
    Service class for job queue operations.

    Status only moves forward: pending -> processing -> completed | failed.
    Every write below filters on the status it expects to move away from,
    so a late writer can never drag a finished job backwards.
    """

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_admin_client()
        return self._client

    # =========================================================================
    # Polling
    # =========================================================================

    async def get_pending_jobs(
        self,
        partition: Optional[Partition] = None,
        limit: int = 3
    ) -> List[Dict[str, Any]]:
        """
        Get pending jobs ordered by creation time (FIFO).

        Args:
            partition: PLAIN selects jobs without a source document,
                       DOCUMENT selects jobs with one, None selects both.
            limit: Max number of jobs returned

        Raises:
            ClaimError: if the query fails
        """
        try:
            query = (
                self.client.table(JOBS_TABLE)
                .select("*")
                .eq("status", JobStatus.PENDING.value)
            )

            if partition == Partition.PLAIN:
                query = query.is_(SOURCE_DOCUMENT_PATH, "null")
            elif partition == Partition.DOCUMENT:
                query = query.not_.is_(SOURCE_DOCUMENT_PATH, "null")

            result = query.order("created_at").limit(limit).execute()
        except Exception as e:
            raise ClaimError(f"Failed to fetch pending jobs: {e}") from e

        return result.data or []

    # =========================================================================
    # Claiming
    # =========================================================================

    async def claim_job(self, job_id: Any, exclusive: bool = True) -> Optional[Dict[str, Any]]:
        """
        Move a job to processing and stamp started_at.

        With exclusive=True the update only matches a job that is still
        pending, so of two overlapping passes exactly one gets the row back.
        With exclusive=False a job already in processing is claimed again
        (at-least-once); terminal jobs are never reclaimed.

        Returns:
            The claimed job row, or None if the job was not claimable.

        Raises:
            PersistenceError: if the update itself fails
        """
        claimable = [JobStatus.PENDING.value]
        if not exclusive:
            claimable.append(JobStatus.PROCESSING.value)

        try:
            result = (
                self.client.table(JOBS_TABLE)
                .update({
                    "status": JobStatus.PROCESSING.value,
                    "started_at": _now(),
                })
                .eq("id", job_id)
                .in_("status", claimable)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to claim job {job_id}: {e}", table=JOBS_TABLE) from e

        return result.data[0] if result.data else None

    # =========================================================================
    # Progress
    # =========================================================================

    async def update_progress(
        self,
        job_id: Any,
        question_ids: Sequence[Any],
        requested: int
    ) -> Optional[Dict[str, Any]]:
        """
        Write generated count, percentage and id list in one update.

        Raises:
            PersistenceError: if the update fails
        """
        ids = list(question_ids)
        update_data = {
            "questions_generated": len(ids),
            "progress_percentage": compute_progress(len(ids), requested),
            "question_ids": ids,
        }

        try:
            result = (
                self.client.table(JOBS_TABLE)
                .update(update_data)
                .eq("id", job_id)
                .eq("status", JobStatus.PROCESSING.value)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to update progress for job {job_id}: {e}", table=JOBS_TABLE) from e

        return result.data[0] if result.data else None

    # =========================================================================
    # Terminal Transitions
    # =========================================================================

    async def mark_completed(
        self,
        job_id: Any,
        question_ids: Sequence[Any],
        requested: int
    ) -> Optional[Dict[str, Any]]:
        """
        Mark a processing job as completed with its final counters.

        Returns None when the job was no longer in processing (another
        pass already finished it).
        """
        ids = list(question_ids)
        update_data = {
            "status": JobStatus.COMPLETED.value,
            "completed_at": _now(),
            "questions_generated": len(ids),
            "progress_percentage": compute_progress(len(ids), requested),
            "question_ids": ids,
        }

        try:
            result = (
                self.client.table(JOBS_TABLE)
                .update(update_data)
                .eq("id", job_id)
                .eq("status", JobStatus.PROCESSING.value)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to complete job {job_id}: {e}", table=JOBS_TABLE) from e

        return result.data[0] if result.data else None

    async def mark_failed(self, job_id: Any, error_message: str) -> Optional[Dict[str, Any]]:
        """Mark a processing job as failed. Failed jobs are never retried."""
        update_data = {
            "status": JobStatus.FAILED.value,
            "error_message": error_message,
            "completed_at": _now(),
        }

        try:
            result = (
                self.client.table(JOBS_TABLE)
                .update(update_data)
                .eq("id", job_id)
                .eq("status", JobStatus.PROCESSING.value)
                .execute()
            )
        except Exception as e:
            raise PersistenceError(f"Failed to mark job {job_id} as failed: {e}", table=JOBS_TABLE) from e

        return result.data[0] if result.data else None

    # =========================================================================
    # Dashboard Queries
    # =========================================================================

    async def get_queue_stats(self) -> Dict[str, Any]:
        """Get job counts by status."""
        all_jobs = (
            self.client.table(JOBS_TABLE)
            .select("status")
            .execute()
        )

        status_counts = {status.value: 0 for status in JobStatus}

        for job in all_jobs.data:
            status = job.get("status")
            if status in status_counts:
                status_counts[status] += 1

        return {
            "total": len(all_jobs.data),
            **status_counts,
        }
