"""Utility modules for the QuestionForge worker."""

from questionforge.utils.logging import (
    configure_logging,
    get_log_buffer,
    LogLevel,
    LogEntry,
    AppLogger,
    job_logger,
    generation_logger,
    notification_logger,
    api_logger,
)

__all__ = [
    "configure_logging",
    "get_log_buffer",
    "LogLevel",
    "LogEntry",
    "AppLogger",
    "job_logger",
    "generation_logger",
    "notification_logger",
    "api_logger",
]
