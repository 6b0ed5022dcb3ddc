"""
Job processor: drives one question generation job through its lifecycle.

    pending --claim--> processing --batch loop--> completed
                           |
                           +--JobFatalError--> failed

Failures are contained at the smallest scope that can absorb them:
a bad question record is dropped, a failed chunk is skipped, a failed
question insert is skipped, and only the validation gate (or the optional
failure-ratio threshold) fails the whole job.
"""

import math
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from questionforge.config import WorkerConfig, config as default_config
from questionforge.database.catalog import CatalogService
from questionforge.database.jobs import JobQueueService
from questionforge.database.questions import QuestionService
from questionforge.errors import GenerationError, JobFatalError, PersistenceError
from questionforge.generation.generator import QuestionGenerator, get_question_generator
from questionforge.generation.prompts import describe_subject, describe_topic
from questionforge.generation.schemas import GeneratedQuestion
from questionforge.utils.logging import job_logger as logger
from .models import ChunkContext, JobConfig, JobOutcome
from .notifier import JobNotifier


DEFAULT_DIFFICULTY_LEVEL = 2


class JobProcessor:
    """
    Processes a single job end to end.

    All collaborators are injectable; by default they are built from the
    worker config and share the Supabase admin client.
    """

    def __init__(
        self,
        worker_config: Optional[WorkerConfig] = None,
        job_service: Optional[JobQueueService] = None,
        question_service: Optional[QuestionService] = None,
        catalog: Optional[CatalogService] = None,
        generator: Optional[QuestionGenerator] = None,
        notifier: Optional[JobNotifier] = None
    ):
        self.config = worker_config or default_config
        self.jobs = job_service or JobQueueService()
        self.questions = question_service or QuestionService()
        self.catalog = catalog or CatalogService()
        self.generator = generator or get_question_generator(self.config)
        self.notifier = notifier or JobNotifier()

    # =========================================================================
    # Entry Point
    # =========================================================================

    async def process(self, job: Dict[str, Any]) -> JobOutcome:
        """
        Claim and process one job.

        Never raises for job-level problems: the outcome describes what
        happened (skipped, completed, failed, superseded).
        """
        job_id = job["id"]

        try:
            claimed = await self.jobs.claim_job(
                job_id,
                exclusive=self.config.WORKER_EXCLUSIVE_CLAIMS
            )
        except PersistenceError as e:
            logger.error("Could not claim job, leaving it pending", job_id=job_id, error=str(e))
            return JobOutcome(job_id=job_id, status="skipped", error=str(e))

        if claimed is None:
            logger.info("Job already claimed by another pass, skipping", job_id=job_id)
            return JobOutcome(job_id=job_id, status="skipped")

        job = {**job, **claimed}
        logger.info("Processing job", job_id=job_id, user_email=job.get("user_email"))
        start_time = time.time()

        try:
            job_config = self._parse_config(job)
            document = await self._load_document(job_config)
            question_ids = await self._run_batches(job, job_config, document)
            self._check_failure_ratio(job_config, question_ids)
        except JobFatalError as e:
            return await self._fail(job, str(e))
        except Exception as e:
            logger.exception("Unexpected error while processing job", job_id=job_id)
            return await self._fail(job, f"Unexpected error: {e}")

        outcome = await self._complete(job, job_config, question_ids, document)
        logger.info(
            "Job finished",
            job_id=job_id,
            status=outcome.status,
            generated=outcome.generated,
            requested=outcome.requested,
            seconds=round(time.time() - start_time, 1)
        )
        return outcome

    # =========================================================================
    # Validation Gate
    # =========================================================================

    def _parse_config(self, job: Dict[str, Any]) -> JobConfig:
        try:
            job_config = JobConfig.model_validate(job.get("config") or {})
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise JobFatalError(f"Invalid job config: {fields}") from e

        if not job_config.context_id:
            raise JobFatalError("context_id not found in job config")

        return job_config

    async def _load_document(self, job_config: JobConfig) -> Optional[Dict[str, Any]]:
        if not job_config.is_document_backed:
            return None

        document_id = job_config.source_document_id
        if not document_id.strip():
            raise JobFatalError("Source document id is blank in job config")

        try:
            document = await self.catalog.get_source_document(document_id)
        except Exception as e:
            raise JobFatalError(f"Could not load source document {document_id}: {e}") from e

        if not document or not (document.get("extracted_text") or "").strip():
            raise JobFatalError(
                f"Source document {document_id} not found or has no extracted content"
            )
        return document

    def _check_failure_ratio(self, job_config: JobConfig, question_ids: List[Any]) -> None:
        max_ratio = self.config.WORKER_MAX_FAILURE_RATIO
        if max_ratio is None:
            return

        requested = job_config.quantity
        missing = requested - len(question_ids)
        if missing / requested > max_ratio:
            raise JobFatalError(
                f"Only {len(question_ids)} of {requested} questions could be generated"
            )

    # =========================================================================
    # Batch Loop
    # =========================================================================

    def plan_chunks(self, requested: int) -> int:
        return math.ceil(requested / self.config.WORKER_BATCH_SIZE)

    async def _run_batches(
        self,
        job: Dict[str, Any],
        job_config: JobConfig,
        document: Optional[Dict[str, Any]]
    ) -> List[Any]:
        job_id = job["id"]
        requested = job_config.quantity
        num_chunks = self.plan_chunks(requested)
        question_ids: List[Any] = []

        subject_name = describe_subject(
            job_config,
            await self._lookup_name("subject", job_config.primary_subject_id, job_id)
        )

        logger.info(
            "Generating questions",
            job_id=job_id,
            requested=requested,
            chunks=num_chunks,
            batch_size=self.config.WORKER_BATCH_SIZE
        )

        for chunk_index in range(num_chunks):
            remaining = requested - len(question_ids)
            if remaining <= 0:
                break
            count = min(self.config.WORKER_BATCH_SIZE, remaining)

            topic_id = job_config.topic_id_for(chunk_index)
            context = ChunkContext(
                subject_id=job_config.primary_subject_id,
                subject_name=subject_name,
                topic_id=topic_id,
                topic_name=describe_topic(
                    job_config,
                    await self._lookup_name("topic", topic_id, job_id),
                    chunk_index
                ),
                document_name=document.get("file_name") if document else None,
                document_text=document.get("extracted_text") if document else None,
            )

            try:
                questions = await self.generator.generate_batch(count, job_config, context)
            except GenerationError as e:
                logger.warning(
                    "Chunk generation failed, skipping",
                    job_id=job_id,
                    chunk=chunk_index + 1,
                    error=str(e)
                )
                questions = []

            for question in questions:
                row = self.build_question_row(job, job_config, context, question)
                try:
                    stored = await self.questions.insert_question(row)
                except PersistenceError as e:
                    logger.warning("Failed to save question, skipping", job_id=job_id, error=str(e))
                    continue
                question_ids.append(stored["id"])

            try:
                await self.jobs.update_progress(job_id, question_ids, requested)
            except PersistenceError as e:
                logger.warning("Failed to update job progress", job_id=job_id, error=str(e))

            logger.info(
                "Chunk done",
                job_id=job_id,
                chunk=f"{chunk_index + 1}/{num_chunks}",
                generated=len(question_ids),
                requested=requested
            )

        return question_ids

    async def _lookup_name(self, kind: str, row_id: Optional[str], job_id: Any) -> Optional[str]:
        """Catalog names only decorate prompts and tags; a failed lookup falls back to defaults."""
        if not row_id:
            return None
        lookup = self.catalog.get_subject_name if kind == "subject" else self.catalog.get_topic_name
        try:
            return await lookup(row_id)
        except Exception as e:
            logger.warning(f"Could not resolve {kind} name", job_id=job_id, id=row_id, error=str(e))
            return None

    def build_question_row(
        self,
        job: Dict[str, Any],
        job_config: JobConfig,
        context: ChunkContext,
        question: GeneratedQuestion
    ) -> Dict[str, Any]:
        """Stored form of one generated question."""
        if job_config.is_document_backed:
            origin = "ai_document"
            source = f"document: {context.document_name}"
        else:
            origin = "ai_generated"
            source = f"{self.config.GENERATION_MODEL}:job:{job['id']}"

        row = {
            "user_email": job.get("user_email"),
            "context_id": job_config.context_id,
            "subject_id": context.subject_id,
            "topic_id": context.topic_id,
            "statement": question.statement,
            "question_type": job_config.answer_format,
            "options": question.options_payload(),
            "correct_label": question.correct_label,
            "explanation": question.explanation or None,
            "difficulty": job_config.difficulty_level or question.difficulty or DEFAULT_DIFFICULTY_LEVEL,
            "exam_board": job_config.exam_board,
            "exam_year": job_config.exam_year,
            "origin": origin,
            "source": source,
            "is_public": False,
            "tags": [tag for tag in (context.subject_name, context.topic_name, job_config.exam_board) if tag],
        }
        if job_config.is_document_backed:
            row["source_document_id"] = job_config.source_document_id
        return row

    # =========================================================================
    # Terminal Transitions
    # =========================================================================

    async def _complete(
        self,
        job: Dict[str, Any],
        job_config: JobConfig,
        question_ids: List[Any],
        document: Optional[Dict[str, Any]]
    ) -> JobOutcome:
        job_id = job["id"]
        requested = job_config.quantity

        try:
            updated = await self.jobs.mark_completed(job_id, question_ids, requested)
        except PersistenceError as e:
            logger.error("Failed to mark job completed", job_id=job_id, error=str(e))
            return await self._fail(job, f"Could not record completion: {e}")

        if updated is None:
            logger.warning("Job was finished by another pass, not notifying", job_id=job_id)
            return JobOutcome(
                job_id=job_id,
                status="superseded",
                requested=requested,
                generated=len(question_ids),
                question_ids=question_ids,
            )

        await self.notifier.notify_completed(
            job,
            question_ids,
            requested,
            context_id=job_config.context_id,
            document_name=document.get("file_name") if document else None,
        )
        return JobOutcome(
            job_id=job_id,
            status="completed",
            requested=requested,
            generated=len(question_ids),
            question_ids=question_ids,
        )

    async def _fail(self, job: Dict[str, Any], error_message: str) -> JobOutcome:
        job_id = job["id"]
        logger.error("Job failed", job_id=job_id, error=error_message)

        try:
            updated = await self.jobs.mark_failed(job_id, error_message)
        except PersistenceError as e:
            logger.error("Failed to mark job failed", job_id=job_id, error=str(e))
            return JobOutcome(job_id=job_id, status="failed", error=error_message)

        if updated is not None:
            await self.notifier.notify_failed(job, error_message)
        else:
            logger.warning("Job was finished by another pass, not notifying", job_id=job_id)

        return JobOutcome(job_id=job_id, status="failed", error=error_message)
