"""Configuration for the workflow engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Nothing is required at startup. Collaborators that need credentials (the
external scheduler, connectors) validate them when they are called, so the
engine can run locally against JSON state without any external accounts.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings for the workflow engine.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    state_path: Path = Field(
        default=Path("zyflow_state"),
        validation_alias="ZYFLOW_STATE_PATH",
        description="Directory where workflows, accounts and job records are persisted",
    )

    public_base_url: str = Field(
        default="http://localhost:8000",
        validation_alias="ZYFLOW_PUBLIC_URL",
        description="Externally reachable base URL used for scheduler callbacks",
    )

    cron_job_api_key: str = Field(
        default="",
        validation_alias="CRON_JOB_KEY",
        description="API key for the external time-based dispatcher (cron-job.org)",
    )
    cron_job_base_url: str = Field(
        default="https://api.cron-job.org",
        validation_alias="CRON_JOB_BASE_URL",
    )
    scheduler_timezone: str = Field(
        default="UTC",
        validation_alias="ZYFLOW_SCHEDULER_TIMEZONE",
        description="Timezone the external scheduler interprets job schedules in",
    )
    wait_default_minutes: int = Field(
        default=1,
        validation_alias="ZYFLOW_WAIT_DEFAULT_MINUTES",
        description="Delay used by a Wait step that does not configure its own",
        ge=1,
        le=60 * 24 * 30,
    )

    dedup_ttl_seconds: float = Field(
        default=600.0,
        validation_alias="ZYFLOW_DEDUP_TTL_SECONDS",
        description="How long a processed (resource, message sequence) pair is remembered",
        gt=0,
    )
    debounce_seconds: float = Field(
        default=5.0,
        validation_alias="ZYFLOW_DEBOUNCE_SECONDS",
        description="Window during which further notifications for a resource are dropped",
        gt=0,
    )
    dedup_max_entries: int = Field(
        default=10_000,
        validation_alias="ZYFLOW_DEDUP_MAX_ENTRIES",
        description=(
            "Capacity of each in-memory dedup cache. When a notification storm fills it, "
            "the oldest entries are evicted before their TTL and may be dispatched again."
        ),
        ge=1,
    )
    redis_url: str = Field(
        default="",
        validation_alias="ZYFLOW_REDIS_URL",
        description=(
            "If set, duplicate/burst suppression is shared through Redis so it holds "
            "across service instances. Empty keeps it in process memory."
        ),
    )

    connector_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="ZYFLOW_CONNECTOR_TIMEOUT_SECONDS",
        description="Upper bound on a single connector or scheduler HTTP call",
        gt=0,
    )

    max_parallel_passes: int = Field(
        default=8,
        validation_alias="ZYFLOW_MAX_PARALLEL_PASSES",
        description="Workers running one trigger dispatch's workflow passes side by side",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def workflows_state_file(self) -> Path:
        return self.state_path / "workflows.json"

    @property
    def accounts_state_file(self) -> Path:
        return self.state_path / "accounts.json"

    @property
    def resume_jobs_state_file(self) -> Path:
        """Scheduler job ids registered per workflow."""

        return self.state_path / "resume_jobs.json"

    @property
    def dispatch_jobs_state_file(self) -> Path:
        """Background trigger dispatch records."""

        return self.state_path / "dispatch_jobs.json"
