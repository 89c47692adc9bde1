"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and handler callables that turn HTTP and
ordering errors into application/problem+json responses.
"""

from __future__ import annotations

import logging
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rankd.logic.errors import (
    DuplicateItemError,
    ItemNotFoundError,
    OrderingError,
    PermutationError,
    StorageUnavailableError,
    VersionConflictError,
)
from rankd.logic.problem_factory import (
    problem_duplicate_item,
    problem_invalid_permutation,
    problem_item_not_found,
    problem_storage_unavailable,
    problem_version_conflict,
)

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_response(problem: dict, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        problem,
        status_code=int(problem.get("status", 500) or 500),
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers or None,
    )


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        detail = dict(exc.detail)
    else:
        detail = {"title": "Error", "status": status, "detail": str(exc.detail or "")}
    detail.setdefault("status", status)
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return problem_response(detail, headers)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "title": "Invalid Request",
        "status": 422,
        "detail": "Request validation failed",
        "code": "PRE_REQUEST_BODY_SCHEMA_MISMATCH",
        "errors": [
            {"loc": list(e.get("loc", ())), "msg": str(e.get("msg", "")), "type": str(e.get("type", ""))}
            for e in exc.errors()
        ],
    }
    logger.warning("request_validation_failed path=%s errors=%s", request.url.path, len(problem["errors"]))
    return problem_response(problem)


async def handle_ordering_error(request: Request, exc: OrderingError) -> JSONResponse:  # noqa: D401
    if isinstance(exc, PermutationError):
        return problem_response(problem_invalid_permutation(exc))
    if isinstance(exc, VersionConflictError):
        return problem_response(problem_version_conflict(exc))
    if isinstance(exc, ItemNotFoundError):
        return problem_response(problem_item_not_found(exc.collection, exc.item_id))
    if isinstance(exc, DuplicateItemError):
        return problem_response(problem_duplicate_item(exc.collection, exc.item_id))
    if not isinstance(exc, StorageUnavailableError):
        logger.error("unmapped_ordering_error type=%s", type(exc).__name__, exc_info=exc)
    return problem_response(problem_storage_unavailable(str(exc)))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return problem_response(
        {"title": "Internal Server Error", "status": 500, "error": "An unexpected error occurred"}
    )


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_response",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_ordering_error",
    "handle_unexpected_error",
]
