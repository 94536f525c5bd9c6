"""
API schemas — camelCase job payloads, envelopes, and RFC 7807 errors.

Job fields are exposed in camelCase (``jobName``, ``jobGroup``,
``cronExpression``, ...) and also accepted in snake_case.  Every 2xx
response is wrapped in :class:`SuccessResponse`; every 4xx/5xx response
is a :class:`ProblemDetail`.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from jobspine.core.models.jobs import JobDefinition, JobStatus

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── RFC 7807 Problem Detail ─────────────────────────────────────────────


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Error Codes:
        - ``NOT_FOUND`` (404): Job definition does not exist
        - ``VALIDATION_FAILED`` (400): Invalid cron expression
        - ``CONFLICT`` (409): A job with the same name and group exists
        - ``UNAVAILABLE`` (503): Scheduling engine not running
        - ``INTERNAL`` (500): Store failure or unexpected error
    """

    type: str = Field(default="about:blank", description="Error type URI (usually 'about:blank')")
    title: str = Field(description="Short human-readable error summary")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Human-readable explanation of the error")
    instance: str = Field(default="", description="URI of the failing request")
    code: str = Field(default="", description="Machine-readable error code")
    context: dict[str, Any] = Field(default_factory=dict, description="Error context")


# ── Success Envelope ────────────────────────────────────────────────────


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success envelope."""

    data: T = Field(description="Response payload (type varies by endpoint)")
    warnings: list[str] = Field(default_factory=list, description="Non-fatal warnings")


# ── Jobs ────────────────────────────────────────────────────────────────


class JobSchema(CamelModel):
    """A stored job definition."""

    id: int | None = None
    job_name: str
    job_group: str
    description: str = ""
    cron_expression: str
    status: JobStatus
    exclusive: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_definition(cls, definition: JobDefinition) -> JobSchema:
        return cls(
            id=definition.id,
            job_name=definition.job_name,
            job_group=definition.job_group,
            description=definition.description,
            cron_expression=definition.cron_expression,
            status=definition.status or JobStatus.RUNNING,
            exclusive=definition.exclusive,
            created_at=definition.created_at,
            updated_at=definition.updated_at,
        )


class CreateJobBody(CamelModel):
    job_name: str = Field(min_length=1, max_length=200)
    job_group: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    cron_expression: str = Field(min_length=1, max_length=120)
    status: JobStatus | None = None
    exclusive: bool = False

    def to_definition(self) -> JobDefinition:
        return JobDefinition(
            job_name=self.job_name,
            job_group=self.job_group,
            description=self.description,
            cron_expression=self.cron_expression,
            status=self.status,
            exclusive=self.exclusive,
        )


class UpdateJobBody(CreateJobBody):
    id: int
    exclusive: bool | None = None

    def to_definition(self) -> JobDefinition:
        definition = super().to_definition()
        definition.id = self.id
        return definition


class JobActionResult(CamelModel):
    """Outcome of a run/pause/resume/delete request."""

    job_name: str
    job_group: str
    action: str
    applied: bool


class ReconcileReportSchema(BaseModel):
    registered: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    paused: list[str] = Field(default_factory=list)
    resumed: list[str] = Field(default_factory=list)
    rescheduled: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
