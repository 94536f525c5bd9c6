"""
Error handlers — map jobspine errors to RFC 7807 responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from jobspine.api.schemas import ProblemDetail
from jobspine.core.errors import JobSpineError
from jobspine.core.logging import get_logger

logger = get_logger(__name__)

# ── Error code → HTTP status mapping ─────────────────────────────────────

ERROR_CODE_TO_STATUS: dict[str, int] = {
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "VALIDATION_FAILED": 400,
    "INVALID_INPUT": 400,
    "UNAVAILABLE": 503,
    "INTERNAL": 500,
}


def status_for_error_code(code: str) -> int:
    """Resolve an error code to HTTP status, defaulting to 500."""
    return ERROR_CODE_TO_STATUS.get(code, 500)


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    code: str = "",
    context: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance,
        code=code,
        context=context or {},
    )
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


async def jobspine_error_handler(request: Request, exc: JobSpineError) -> JSONResponse:
    """Render a :class:`JobSpineError` with the status its code maps to."""
    status = status_for_error_code(exc.code)
    if status >= 500:
        logger.error("api_request_failed", path=request.url.path, **exc.to_dict())
    else:
        logger.info("api_request_rejected", path=request.url.path, code=exc.code, error=exc.message)
    return problem_response(
        status=status,
        title=type(exc).__name__,
        detail=exc.message,
        instance=str(request.url),
        code=exc.code,
        context={k: str(v) for k, v in exc.context.items()},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — returns 500 with ProblemDetail."""
    logger.exception("api_unhandled_exception", path=request.url.path)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail=str(exc) if request.app.state.settings.debug else "An unexpected error occurred.",
        instance=str(request.url),
        code="INTERNAL",
    )
