"""Job definition table — ``scheduler_jobs``.

Tags:
    jobspine, orm, sqlalchemy, tables, scheduling

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from jobspine.core.orm.base import JobSpineBase, TimestampMixin


class SchedulerJobTable(TimestampMixin, JobSpineBase):
    __tablename__ = "scheduler_jobs"
    __table_args__ = (
        UniqueConstraint("job_name", "job_group", name="uq_scheduler_jobs_name_group"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    job_name: Mapped[str] = mapped_column(String(200), nullable=False)
    job_group: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), default="", nullable=False)
    cron_expression: Mapped[str] = mapped_column(String(120), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="RUNNING", nullable=False)
    exclusive: Mapped[bool] = mapped_column(default=False, nullable=False)
