"""SQLAlchemy-backed job store.

Manifesto:
    Persistence is plain CRUD keyed by a surrogate id plus a unique
    ``(job_name, job_group)`` pair.  Keeping it in a repository lets the
    reconciliation service stay pure orchestration and lets tests swap in
    an in-memory SQLite database.

Every method opens its own short session and returns detached
:class:`~jobspine.core.models.jobs.JobDefinition` dataclasses, never ORM
rows, so callers cannot accidentally lazy-load after the session closes.

Tags:
    jobspine, repository, CRUD, sqlalchemy, job-store

Doc-Types:
    api-reference
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from jobspine.core.errors import DuplicateJobError, NotFoundError, StoreError
from jobspine.core.logging import get_logger
from jobspine.core.models.jobs import JobDefinition, JobStatus
from jobspine.core.orm.tables import SchedulerJobTable

logger = get_logger(__name__)


def _row_to_definition(row: SchedulerJobTable) -> JobDefinition:
    return JobDefinition(
        id=row.id,
        job_name=row.job_name,
        job_group=row.job_group,
        description=row.description,
        cron_expression=row.cron_expression,
        status=JobStatus(row.status),
        exclusive=bool(row.exclusive),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _apply(row: SchedulerJobTable, definition: JobDefinition) -> None:
    row.job_name = definition.job_name
    row.job_group = definition.job_group
    row.description = definition.description or ""
    row.cron_expression = definition.cron_expression
    row.status = (definition.status or JobStatus.RUNNING).value
    row.exclusive = bool(definition.exclusive)


class SQLAlchemyJobStore:
    """JobStore over the ``scheduler_jobs`` table.

    Example:
        >>> engine = create_jobspine_engine("sqlite://")
        >>> init_schema(engine)
        >>> store = SQLAlchemyJobStore(jobspine_session_factory(engine))
        >>> saved = store.save(JobDefinition("ReportJob", "default", cron_expression="0 0 * * * ?"))
        >>> store.find_by_name_and_group("ReportJob", "default").id == saved.id
        True
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # === Queries ===

    def find_all(self) -> list[JobDefinition]:
        try:
            with self._session_factory() as session:
                rows = session.scalars(select(SchedulerJobTable).order_by(SchedulerJobTable.id)).all()
                return [_row_to_definition(r) for r in rows]
        except SQLAlchemyError as e:
            raise StoreError("Failed to list job definitions", cause=e) from e

    def find_by_name_and_group(self, job_name: str, job_group: str) -> JobDefinition | None:
        try:
            with self._session_factory() as session:
                row = session.scalars(
                    select(SchedulerJobTable).where(
                        SchedulerJobTable.job_name == job_name,
                        SchedulerJobTable.job_group == job_group,
                    )
                ).one_or_none()
                return _row_to_definition(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to look up job {job_group}.{job_name}", cause=e
            ).with_context(job_name=job_name, job_group=job_group) from e

    def find_by_id(self, job_id: int) -> JobDefinition | None:
        try:
            with self._session_factory() as session:
                row = session.get(SchedulerJobTable, job_id)
                return _row_to_definition(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to look up job id {job_id}", cause=e) from e

    # === Writes ===

    def save(self, definition: JobDefinition) -> JobDefinition:
        """Insert or overwrite *definition*.

        Raises:
            DuplicateJobError: The unique (job_name, job_group) constraint fired.
            NotFoundError: ``definition.id`` is set but no such row exists.
            StoreError: Any other database failure.
        """
        try:
            with self._session_factory() as session:
                if definition.id is None:
                    row = SchedulerJobTable()
                    session.add(row)
                else:
                    row = session.get(SchedulerJobTable, definition.id)
                    if row is None:
                        raise NotFoundError(
                            f"Job definition not found: {definition.id}"
                        ).with_context(job_id=definition.id)
                _apply(row, definition)
                session.commit()
                saved = _row_to_definition(row)
        except IntegrityError as e:
            raise DuplicateJobError(
                f"Job already exists: {definition.job_group}.{definition.job_name}", cause=e
            ).with_context(job_name=definition.job_name, job_group=definition.job_group) from e
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to save job {definition.job_group}.{definition.job_name}", cause=e
            ).with_context(job_name=definition.job_name, job_group=definition.job_group) from e

        logger.debug("job_definition_saved", job_id=saved.id, job_name=saved.job_name, job_group=saved.job_group)
        return saved

    def delete(self, definition: JobDefinition) -> None:
        try:
            with self._session_factory() as session:
                row = None
                if definition.id is not None:
                    row = session.get(SchedulerJobTable, definition.id)
                if row is None:
                    row = session.scalars(
                        select(SchedulerJobTable).where(
                            SchedulerJobTable.job_name == definition.job_name,
                            SchedulerJobTable.job_group == definition.job_group,
                        )
                    ).one_or_none()
                if row is None:
                    return
                session.delete(row)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to delete job {definition.job_group}.{definition.job_name}", cause=e
            ).with_context(job_name=definition.job_name, job_group=definition.job_group) from e

    def count_by_status(self) -> dict[str, int]:
        """Number of stored definitions per status."""
        counts = {status.value: 0 for status in JobStatus}
        for definition in self.find_all():
            counts[definition.status.value] += 1
        return counts
