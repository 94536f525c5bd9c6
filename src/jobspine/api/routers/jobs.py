"""
Scheduler router — job definitions and their run state.

POST   /schedulers                          create
GET    /schedulers                          list
POST   /schedulers/run?jobName&jobGroup     run once now
DELETE /schedulers?jobName&jobGroup         delete
POST   /schedulers/pause?jobName&jobGroup   pause
POST   /schedulers/resume?jobName&jobGroup  resume
PUT    /schedulers/update                   update by id
POST   /schedulers/reconcile                diff and repair
GET    /schedulers/health                   engine + store health
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Query

from jobspine.api.deps import Service
from jobspine.api.schemas import (
    CreateJobBody,
    JobActionResult,
    JobSchema,
    ReconcileReportSchema,
    SuccessResponse,
    UpdateJobBody,
)

router = APIRouter(prefix="/schedulers")

JobName = Annotated[str, Query(alias="jobName", min_length=1, description="Job name")]
JobGroup = Annotated[str, Query(alias="jobGroup", min_length=1, description="Job group")]


@router.post("", response_model=SuccessResponse[JobSchema], status_code=201)
def create_job(service: Service, body: CreateJobBody):
    """Create a job and register it with the engine.

    Status defaults to RUNNING.  Returns 409 if a job with the same
    ``jobName``/``jobGroup`` exists and 400 if ``cronExpression`` does not
    parse.

    Example:
        POST /api/schedulers
        {"jobName": "ReportJob", "jobGroup": "default",
         "cronExpression": "0 0 * * * ?", "description": "daily report"}
    """
    saved = service.create_job(body.to_definition())
    return SuccessResponse(data=JobSchema.from_definition(saved))


@router.get("", response_model=SuccessResponse[list[JobSchema]])
def list_jobs(service: Service):
    """List all stored job definitions."""
    return SuccessResponse(data=[JobSchema.from_definition(d) for d in service.list_jobs()])


@router.post("/run", response_model=SuccessResponse[JobActionResult])
def run_job(service: Service, job_name: JobName, job_group: JobGroup):
    """Fire the job once, immediately.

    A missing or PAUSED job is not an error: the response reports
    ``applied: false`` with a warning.
    """
    fired = service.run_job_now(job_name, job_group)
    warnings = [] if fired else [f"Job {job_group}.{job_name} was not fired (missing or paused)"]
    return SuccessResponse(
        data=JobActionResult(job_name=job_name, job_group=job_group, action="run", applied=fired),
        warnings=warnings,
    )


@router.delete("", response_model=SuccessResponse[JobActionResult])
def delete_job(service: Service, job_name: JobName, job_group: JobGroup):
    """Delete the job from engine and store.  Unknown keys succeed."""
    service.delete_job(job_name, job_group)
    return SuccessResponse(
        data=JobActionResult(job_name=job_name, job_group=job_group, action="delete", applied=True)
    )


@router.post("/pause", response_model=SuccessResponse[JobActionResult])
def pause_job(service: Service, job_name: JobName, job_group: JobGroup):
    paused = service.pause_job(job_name, job_group)
    return SuccessResponse(
        data=JobActionResult(job_name=job_name, job_group=job_group, action="pause", applied=paused)
    )


@router.post("/resume", response_model=SuccessResponse[JobActionResult])
def resume_job(service: Service, job_name: JobName, job_group: JobGroup):
    """Re-arm a paused job with its current cron expression."""
    resumed = service.resume_job(job_name, job_group)
    warnings = [] if resumed else [f"Job {job_group}.{job_name} is not registered in the engine"]
    return SuccessResponse(
        data=JobActionResult(job_name=job_name, job_group=job_group, action="resume", applied=resumed),
        warnings=warnings,
    )


@router.put("/update", response_model=SuccessResponse[JobSchema])
def update_job(service: Service, body: UpdateJobBody):
    """Overwrite the job with ``id``.  Renames are allowed.

    Under the default pause-on-update rule the job comes back PAUSED and
    needs ``/resume`` to run again.
    """
    saved = service.update_job(body.to_definition())
    return SuccessResponse(data=JobSchema.from_definition(saved))


@router.post("/reconcile", response_model=SuccessResponse[ReconcileReportSchema])
def reconcile(service: Service):
    """Compare store and engine and repair the engine."""
    report = service.reconcile()
    return SuccessResponse(data=ReconcileReportSchema(**report.to_dict()))


@router.get("/health", response_model=SuccessResponse[dict[str, Any]])
def health(service: Service):
    return SuccessResponse(data=service.health())
