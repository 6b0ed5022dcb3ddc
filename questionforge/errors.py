"""
Worker error taxonomy.

Each error marks the scope it is contained at:
- ConfigError / ClaimError abort the whole pass
- JobFatalError fails a single job
- GenerationError / PersistenceError skip a single chunk or question
"""

from typing import Optional


class WorkerError(Exception):
    """Base class for all worker errors."""
    pass


class ConfigError(WorkerError):
    """Raised when required credentials or settings are missing."""
    pass


class ClaimError(WorkerError):
    """Raised when pending jobs cannot be queried."""
    pass


class JobFatalError(WorkerError):
    """Raised when a job cannot be processed at all (bad linkage, missing document)."""
    pass


class GenerationError(WorkerError):
    """Raised when the generation service fails or returns an unusable reply."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(WorkerError):
    """Raised when a single write (question insert, progress update, notification) fails."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table
