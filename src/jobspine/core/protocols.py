"""
Canonical protocol definitions for jobspine.

Manifesto:
    The reconciliation service depends on the *shape* of its collaborators,
    not their implementation.  Any object with the JobStore methods can
    back the service (SQLAlchemy, an in-memory fake in tests); any callable
    taking a FiringContext can be the executor.

Architecture:
    ::

        protocols.py
        ├── JobStore   — persistence of job definitions keyed by (name, group)
        └── Executor   — unit of work invoked when a trigger fires

Guardrails:
    ❌ DON'T: Import SQLAlchemy types into the service layer
    ✅ DO: Depend on JobStore and let the composition root pick the backend

Tags:
    protocols, structural-typing, contracts, jobspine
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from jobspine.core.models.jobs import FiringContext, JobDefinition


@runtime_checkable
class JobStore(Protocol):
    """Persistence contract for job definitions.

    The store is the only durable writer; the reconciliation service is its
    only caller on behalf of clients.  ``save`` assigns ``id`` to new
    definitions and refreshes the timestamps.
    """

    def find_all(self) -> Sequence[JobDefinition]:
        """Return every stored definition."""
        ...

    def find_by_name_and_group(self, job_name: str, job_group: str) -> JobDefinition | None:
        """Return the definition stored under the key, or None."""
        ...

    def find_by_id(self, job_id: int) -> JobDefinition | None:
        """Return the definition with this surrogate id, or None."""
        ...

    def save(self, definition: JobDefinition) -> JobDefinition:
        """Insert (no id) or overwrite (id set) and return the persisted copy."""
        ...

    def delete(self, definition: JobDefinition) -> None:
        """Remove the definition; deleting an absent row is not an error."""
        ...


@runtime_checkable
class Executor(Protocol):
    """Unit of work invoked by the scheduling engine.

    Failures raised here are logged by the engine and never change the
    job's stored status.
    """

    def __call__(self, context: FiringContext) -> None: ...


__all__ = ["JobStore", "Executor"]
