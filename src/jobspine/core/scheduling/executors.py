"""Executors invoked when a job fires.

The engine treats the executor as opaque: any callable taking a
:class:`~jobspine.core.models.jobs.FiringContext`.  ``log_firing`` is the
default and only records that the job ran; deployments point
``JOBSPINE_EXECUTOR`` at their own ``module:callable``.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable

from jobspine.core.errors import JobSpineError
from jobspine.core.logging import get_logger
from jobspine.core.models.jobs import FiringContext

logger = get_logger(__name__)

ExecutorFn = Callable[[FiringContext], None]


def log_firing(context: FiringContext) -> None:
    """Default executor: log the firing and do nothing else."""
    logger.info(
        "job_executed",
        job_name=context.job_name,
        job_group=context.job_group,
        description=context.description,
        fired_at=context.fired_at.isoformat(),
        manual=context.manual,
    )


def resolve_executor(path: str) -> ExecutorFn:
    """Import ``"package.module:callable"`` and return the callable.

    Raises:
        JobSpineError: The path is malformed, the module cannot be imported,
            or the attribute is missing or not callable.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise JobSpineError(f"Executor path must look like 'module:callable', got {path!r}", code="INVALID_INPUT")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise JobSpineError(f"Cannot import executor module {module_name!r}", cause=e) from e

    target = getattr(module, attr, None)
    if target is None or not callable(target):
        raise JobSpineError(f"Executor {path!r} is not a callable", code="INVALID_INPUT")
    return target
