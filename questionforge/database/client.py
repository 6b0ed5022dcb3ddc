"""
Supabase Client Configuration

The worker only ever talks to Supabase with the service role key: it runs
server-side with no user session, so Row Level Security does not apply.
"""

from typing import Optional

from supabase import create_client, Client

from questionforge.config import WorkerConfig, config as default_config
from questionforge.errors import ConfigError


class SupabaseClientError(ConfigError):
    """Raised when Supabase client cannot be initialized."""
    pass


_admin_client: Optional[Client] = None


def create_admin_client(worker_config: WorkerConfig) -> Client:
    """
    Build a Supabase client with the service role key.

    WARNING: This client bypasses Row Level Security!
    """
    if not worker_config.SUPABASE_URL:
        raise SupabaseClientError(
            "SUPABASE_URL is not configured. "
            "Set it in your .env file or environment variables."
        )

    if not worker_config.SUPABASE_SERVICE_KEY:
        raise SupabaseClientError(
            "SUPABASE_SERVICE_KEY is not configured. "
            "Set it in your .env file or environment variables."
        )

    return create_client(
        worker_config.SUPABASE_URL,
        worker_config.SUPABASE_SERVICE_KEY
    )


def get_supabase_admin_client() -> Client:
    """Process-wide admin client built from the global config on first use."""
    global _admin_client

    if _admin_client is None:
        _admin_client = create_admin_client(default_config)
    return _admin_client

