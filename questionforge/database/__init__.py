"""
QuestionForge Database Layer

This module provides the Supabase client and service classes the worker
uses to read jobs and write questions, progress and notifications.
"""

from .client import get_supabase_admin_client, create_admin_client, SupabaseClientError
from .jobs import JobQueueService
from .questions import QuestionService
from .notifications import NotificationService
from .catalog import CatalogService

__all__ = [
    "get_supabase_admin_client",
    "create_admin_client",
    "SupabaseClientError",
    "JobQueueService",
    "QuestionService",
    "NotificationService",
    "CatalogService",
]
