"""
Worker configuration management using Pydantic Settings.

This module provides a type-safe, centralized configuration system
that loads from environment variables with sensible defaults.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from questionforge.errors import ConfigError


class WorkerConfig(BaseSettings):
    """
    Worker configuration loaded from environment variables.

    All settings can be overridden via .env file or environment variables.
    Credentials are optional at load time; call validate_required() before
    a processing pass touches any job.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===== Credentials (required for a pass) =====
    SUPABASE_URL: str | None = Field(
        default=None,
        description="Supabase project URL"
    )

    SUPABASE_SERVICE_KEY: str | None = Field(
        default=None,
        description="Supabase service role key (bypasses RLS, server-side only)"
    )

    OPENAI_API_KEY: str | None = Field(
        default=None,
        description="OpenAI API key for question generation"
    )

    OPENAI_BASE_URL: str | None = Field(
        default=None,
        description="Optional override for the OpenAI-compatible endpoint"
    )

    # ===== Generation Settings =====
    GENERATION_MODEL: str = Field(
        default="gpt-4o",
        description="Chat completions model used to generate questions"
    )

    GENERATION_TEMPERATURE: float = Field(
        default=0.8,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for question generation"
    )

    GENERATION_MAX_TOKENS_PER_QUESTION: int = Field(
        default=1500,
        ge=100,
        description="Output token allowance per requested question"
    )

    GENERATION_MAX_TOKENS_CAP: int = Field(
        default=16384,
        ge=256,
        description="Upper bound on max_tokens for a single request"
    )

    GENERATION_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        gt=0,
        description="Client-side deadline for one generation call"
    )

    GENERATION_RATE_PER_MINUTE: float = Field(
        default=60.0,
        gt=0,
        description="Sustained generation calls allowed per minute (token bucket refill rate)"
    )

    GENERATION_BURST: int = Field(
        default=1,
        ge=1,
        description="Token bucket capacity (calls allowed back-to-back)"
    )

    DOCUMENT_EXCERPT_CHARS: int = Field(
        default=8000,
        ge=500,
        description="Characters of extracted document text sent with each prompt"
    )

    # ===== Worker Settings =====
    WORKER_BATCH_SIZE: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Questions requested per generation call (1 = one call per question)"
    )

    WORKER_POLL_LIMIT: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Max pending jobs taken from each partition per pass"
    )

    WORKER_POLL_INTERVAL_SECONDS: int = Field(
        default=60,
        ge=1,
        description="Seconds between scheduled passes"
    )

    WORKER_EXCLUSIVE_CLAIMS: bool = Field(
        default=True,
        description="Claim with a conditional update so overlapping passes never share a job"
    )

    WORKER_MAX_CONCURRENT_JOBS: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Jobs processed concurrently within one pass"
    )

    WORKER_EMBEDDED: bool = Field(
        default=False,
        description="Also run the interval scheduler inside the web process"
    )

    WORKER_MAX_FAILURE_RATIO: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Fail a job when more than this fraction of requested questions could not be produced (unset = never)"
    )

    @field_validator("WORKER_EXCLUSIVE_CLAIMS", "WORKER_EMBEDDED", mode="before")
    @classmethod
    def parse_bool_string(cls, v):
        """Parse boolean from string values (platform env vars are strings)."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return False

    @field_validator("WORKER_MAX_FAILURE_RATIO", mode="before")
    @classmethod
    def parse_optional_ratio(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    # ===== Application Settings =====
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment mode: development or production"
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # ===== Computed Properties =====

    @property
    def supabase_configured(self) -> bool:
        """Check if Supabase is properly configured for the worker."""
        return bool(self.SUPABASE_URL) and bool(self.SUPABASE_SERVICE_KEY)

    @property
    def openai_configured(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    @property
    def missing_settings(self) -> list[str]:
        """Names of required settings that are unset."""
        missing = []
        if not self.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not self.SUPABASE_SERVICE_KEY:
            missing.append("SUPABASE_SERVICE_KEY")
        if not self.OPENAI_API_KEY:
            missing.append("OPENAI_API_KEY")
        return missing

    def validate_required(self) -> None:
        """
        Fail fast when credentials are missing.

        Raises:
            ConfigError: listing every missing setting
        """
        missing = self.missing_settings
        if missing:
            raise ConfigError(
                f"Worker configuration incomplete: {', '.join(missing)} not set. "
                "Set them in your .env file or environment variables."
            )


# Global configuration instance
# Import this in other modules: from questionforge.config import config
config = WorkerConfig()


if __name__ == "__main__":
    print("Configuration loaded successfully!")
    print(f"Model: {config.GENERATION_MODEL}")
    print(f"Batch size: {config.WORKER_BATCH_SIZE}")
    print(f"Poll: {config.WORKER_POLL_LIMIT} jobs every {config.WORKER_POLL_INTERVAL_SECONDS}s")
    print(f"Exclusive claims: {'✓' if config.WORKER_EXCLUSIVE_CLAIMS else '✗'}")
    print(f"Supabase: {'✓' if config.supabase_configured else '✗'}")
    print(f"OpenAI: {'✓' if config.openai_configured else '✗'}")
