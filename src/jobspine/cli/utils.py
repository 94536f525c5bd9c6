"""
CLI utility helpers — output formatting and store access.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

from jobspine.core.models.jobs import JobDefinition
from jobspine.core.orm import create_jobspine_engine, init_schema, jobspine_session_factory
from jobspine.core.repositories import SQLAlchemyJobStore
from jobspine.core.settings import SchedulerSettings

console = Console()
err_console = Console(stderr=True)


# ── Store helper ─────────────────────────────────────────────────────────


def open_store(database: str | None = None) -> SQLAlchemyJobStore:
    """Open the job store.  Defaults to the configured ``database_url``."""
    url = database or SchedulerSettings().resolved_database_url()
    engine = create_jobspine_engine(url)
    init_schema(engine)
    return SQLAlchemyJobStore(jobspine_session_factory(engine))


# ── Output helpers ───────────────────────────────────────────────────────


def _job_to_dict(definition: JobDefinition) -> dict[str, Any]:
    return {
        "id": definition.id,
        "jobName": definition.job_name,
        "jobGroup": definition.job_group,
        "description": definition.description,
        "cronExpression": definition.cron_expression,
        "status": definition.status.value if definition.status else None,
        "exclusive": definition.exclusive,
        "createdAt": definition.created_at.isoformat() if definition.created_at else None,
        "updatedAt": definition.updated_at.isoformat() if definition.updated_at else None,
    }


def output_jobs(jobs: list[JobDefinition], *, as_json: bool = False, title: str = "Jobs") -> None:
    """Render job definitions as a rich table or JSON."""
    if as_json:
        console.print_json(json.dumps([_job_to_dict(j) for j in jobs], default=str))
        return

    if not jobs:
        console.print(f"[dim]No {title.lower()} found.[/dim]")
        return

    table = Table(title=title, show_lines=False)
    for column in ("ID", "Group", "Name", "Cron", "Status", "Exclusive", "Description"):
        table.add_column(column)
    for job in jobs:
        status = job.status.value if job.status else ""
        style = "yellow" if job.is_paused else "green"
        table.add_row(
            str(job.id),
            job.job_group,
            job.job_name,
            job.cron_expression,
            f"[{style}]{status}[/{style}]",
            "yes" if job.exclusive else "",
            job.description,
        )
    console.print(table)
