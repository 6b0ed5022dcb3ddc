"""
Question generation job processing.

Components:
- JobProcessor: drives one job from claim to its terminal notification
- JobRunner: one poll+process pass over both partitions
- QuestionWorker: APScheduler interval trigger around JobRunner

Usage:
    from questionforge.jobs.runner import JobRunner
    summary = await JobRunner().run_pass()

    from questionforge.jobs.scheduler import start_question_worker
    start_question_worker()

Only the records are re-exported here; the processing modules depend on the
database layer, which itself imports these records.
"""

from questionforge.jobs.models import (
    JobStatus,
    Partition,
    JobConfig,
    JobOutcome,
    PassSummary,
    compute_progress,
)

__all__ = [
    "JobStatus",
    "Partition",
    "JobConfig",
    "JobOutcome",
    "PassSummary",
    "compute_progress",
]
