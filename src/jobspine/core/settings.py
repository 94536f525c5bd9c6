"""Runtime settings for jobspine.

``SchedulerSettings`` gathers everything the composition root needs:
database URL, worker-pool size, misfire threshold, timezone, the
pause-on-update rule, the executor to fire, and the HTTP surface.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not when a job fires
    - **Environment-driven:** ``JOBSPINE_*`` env vars and ``.env`` files
    - **Sensible defaults:** SQLite under ``data_dir``, 10 workers, UTC

Examples:
    >>> from jobspine.core.settings import SchedulerSettings
    >>> SchedulerSettings(max_workers=4).max_workers
    4

Tags:
    settings, configuration, pydantic, environment, jobspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerSettings(BaseSettings):
    """Settings for the scheduler service, its store, and its API.

    Fields
    ──────
    database_url              : SQLAlchemy URL of the job store
    max_workers               : Fixed size of the engine worker pool
    misfire_threshold_seconds : How late a DO_NOTHING firing may still run
    timezone                  : Timezone cron expressions are evaluated in
    pause_on_update           : Every successful update leaves the job PAUSED
    executor                  : ``module:callable`` fired for every job
    shutdown_wait             : Drain in-flight executions on shutdown
    """

    model_config = SettingsConfigDict(
        env_prefix="JOBSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".jobspine",
        description="Persistent data directory (default SQLite location)",
    )
    database_url: str = ""

    # ── Engine ───────────────────────────────────────────────────
    max_workers: int = Field(default=10, ge=1)
    misfire_threshold_seconds: int = Field(default=60, ge=1)
    timezone: str = "UTC"
    executor: str = "jobspine.core.scheduling.executors:log_firing"
    shutdown_wait: bool = True

    # ── Lifecycle rules ──────────────────────────────────────────
    pause_on_update: bool = True

    # ── Network ──────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = "/api"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    def resolved_database_url(self) -> str:
        """Return ``database_url``, defaulting to ``<data_dir>/jobspine.db``."""
        if self.database_url:
            return self.database_url
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{(self.data_dir / 'jobspine.db').as_posix()}"
