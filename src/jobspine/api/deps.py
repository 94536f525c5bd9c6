"""
FastAPI dependency injection — settings singleton and the scheduler service.

Usage in routers::

    from jobspine.api.deps import Service

    @router.get("/things")
    def list_things(service: Service):
        ...

The :class:`ReconciliationService` is built and started by the app
lifespan and kept on ``app.state``; requests only borrow it.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request

from jobspine.core.errors import EngineUnavailableError
from jobspine.core.scheduling.service import ReconciliationService
from jobspine.core.settings import SchedulerSettings

# ── Settings (singleton) ─────────────────────────────────────────────────


@lru_cache(maxsize=1)
def get_settings() -> SchedulerSettings:
    """Cached settings — loaded once per process."""
    return SchedulerSettings()


# ── Scheduler service (owned by the lifespan) ────────────────────────────


def get_service(request: Request) -> ReconciliationService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise EngineUnavailableError("Scheduler service is not running")
    return service


Settings = Annotated[SchedulerSettings, Depends(get_settings)]
Service = Annotated[ReconciliationService, Depends(get_service)]
