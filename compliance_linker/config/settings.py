"""Application settings using Pydantic BaseSettings for environment variable management."""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        log_file: Optional JSON log file (loguru sink, rotated)
        owner_scope: Factory identifier whose catalogs and links are loaded
        actor_id: Identity recorded as link creator / verifier
        actor_name: Display name recorded alongside actor_id
        max_concurrent_writes: Upper bound on in-flight store writes per batch
        bulk_link_warn_threshold: Potential link count that triggers a confirmation warning
        evidence_locks_enabled: Serialize concurrent batches touching the same evidence item
        link_store_path: Optional JSON file backing the link store
        draft_store_path: Optional JSON file backing the draft store
        report_store_path: Optional JSON file backing the coverage report store
    """

    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )
    log_file: str | None = Field(
        default=None,
        description="Optional file receiving JSON log records in addition to stderr"
    )
    owner_scope: str = Field(
        default="default-factory",
        description="Factory identifier used to scope catalog and link queries"
    )
    actor_id: str = Field(
        default="system",
        description="User id recorded on created and verified links"
    )
    actor_name: str = Field(
        default="System",
        description="Display name recorded on created links"
    )
    max_concurrent_writes: int = Field(
        default=10,
        ge=1,
        description="Maximum concurrent insert/update calls within one batch"
    )
    bulk_link_warn_threshold: int = Field(
        default=100,
        ge=1,
        description="Potential link count above which bulk linking asks for confirmation"
    )
    evidence_locks_enabled: bool = Field(
        default=True,
        description="Hold a per-evidence advisory lock for the duration of a batch"
    )
    link_store_path: str | None = Field(
        default=None,
        description="JSON persistence path for links (memory-only if unset)"
    )
    draft_store_path: str | None = Field(
        default=None,
        description="JSON persistence path for link drafts"
    )
    report_store_path: str | None = Field(
        default=None,
        description="JSON persistence path for generated coverage reports"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance - import this throughout the application
settings = Settings()
