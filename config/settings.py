"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from enum import Enum
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator
from functools import lru_cache
from typing import Optional


class SetExpansionPolicy(str, Enum):
    """How set components are treated when the same set is imported again."""
    ALWAYS_CREATE = "ALWAYS_CREATE"
    SKIP_EXISTING = "SKIP_EXISTING"


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # OWNED VEHICLE IMPORT
    # ===================
    import_chunk_size: int = Field(
        default=30,
        ge=1,
        le=500,
        description="Rows written per transaction during CSV import"
    )
    import_chunk_timeout_ms: int = Field(
        default=8000,
        ge=100,
        le=60000,
        description="Statement timeout for a single chunk transaction"
    )
    import_run_budget_seconds: float = Field(
        default=55,
        gt=0,
        le=900,
        description="Wall-clock ceiling for one import run"
    )
    import_max_file_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Largest CSV upload accepted"
    )
    import_reject_duplicates_within_run: bool = Field(
        default=True,
        description="Reject a management ID repeated inside the same file"
    )
    set_expansion_policy: SetExpansionPolicy = Field(
        default=SetExpansionPolicy.ALWAYS_CREATE,
        description="Whether re-imported sets create component records again"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    @model_validator(mode="after")
    def chunk_timeout_fits_budget(self) -> "Settings":
        """Several chunks must be able to finish inside one run."""
        if self.import_chunk_timeout_ms * 3 > self.import_run_budget_seconds * 1000:
            raise ValueError(
                "import_chunk_timeout_ms must be at most a third of import_run_budget_seconds"
            )
        return self

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
