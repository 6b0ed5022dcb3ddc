"""
Terminal notifications for question generation jobs.

The processor calls exactly one of these per job, after the job's terminal
status has been written.
"""

from typing import Any, Optional, Sequence
from urllib.parse import urlencode

from questionforge.database.notifications import NotificationService
from questionforge.errors import PersistenceError
from questionforge.utils.logging import notification_logger as logger


NOTIFICATION_TYPE = "question_generation"


class JobNotifier:
    def __init__(self, notification_service: Optional[NotificationService] = None):
        self.notifications = notification_service or NotificationService()

    @staticmethod
    def solve_link(context_id: Any) -> str:
        """Where the web app lists a context's questions."""
        return f"/questions/solve?{urlencode({'context': context_id})}"

    async def notify_completed(
        self,
        job: dict,
        question_ids: Sequence[Any],
        requested: int,
        context_id: Any,
        document_name: Optional[str] = None
    ) -> bool:
        """Tell the owner how many of the requested questions were generated."""
        generated = len(question_ids)

        if document_name:
            title = "Questions from your document are ready!"
            message = f'{generated} of {requested} questions were generated from "{document_name}"!'
        else:
            title = "Questions generated!"
            message = f"{generated} of {requested} questions were generated successfully!"

        metadata = {
            "job_id": job["id"],
            "status": "completed",
            "question_ids": list(question_ids),
            "context_id": context_id,
        }
        if document_name:
            metadata["document_name"] = document_name

        return await self._send(
            job,
            title=title,
            message=message,
            metadata=metadata,
            link=self.solve_link(context_id),
            icon="CheckCircle2",
        )

    async def notify_failed(self, job: dict, error_message: str) -> bool:
        return await self._send(
            job,
            title="Question generation failed",
            message=f"An error occurred: {error_message}",
            metadata={
                "job_id": job["id"],
                "status": "failed",
                "error": error_message,
            },
            icon="AlertCircle",
        )

    async def _send(self, job: dict, **fields) -> bool:
        # The job is already terminal; a lost notification is logged, not retried
        try:
            await self.notifications.create(
                user_email=job.get("user_email"),
                notification_type=NOTIFICATION_TYPE,
                **fields
            )
        except PersistenceError as e:
            logger.error("Failed to send job notification", job_id=job["id"], error=str(e))
            return False

        logger.info("Job notification sent", job_id=job["id"], status=fields["metadata"]["status"])
        return True
