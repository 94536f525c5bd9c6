"""
jobspine HTTP API.

Exposes the scheduler service under ``/api/schedulers``.  Build the app
with :func:`create_app`; the app lifespan owns the scheduling engine.
"""

from jobspine.api.app import create_app

__all__ = ["create_app"]
