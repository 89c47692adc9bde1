"""Centralised construction of problem+json payloads for ordering errors.

Route modules and exception handlers import these helpers instead of
embedding codes and status numbers inline.
"""

from __future__ import annotations

from typing import Dict
import logging

from rankd.logic.errors import PermutationError, VersionConflictError


logger = logging.getLogger(__name__)


def _logged(problem: Dict[str, object]) -> Dict[str, object]:
    logger.info("error_handler.handle code=%s status=%s", problem.get("code"), problem.get("status"))
    return problem


def problem_invalid_permutation(exc: PermutationError) -> Dict[str, object]:
    """Return a 400 problem listing missing, unexpected and duplicated ids."""
    return _logged({
        "title": "Bad Request",
        "status": 400,
        "detail": "orderedIds must be an exact permutation of the collection's item ids",
        "code": "ORDER_INVALID_PERMUTATION",
        "error": "invalid permutation",
        **exc.to_dict(),
    })


def problem_version_conflict(exc: VersionConflictError) -> Dict[str, object]:
    """Return a 409 problem for a stale If-Match version."""
    return _logged({
        "title": "Conflict",
        "status": 409,
        "detail": "collection changed since it was read; refetch and retry",
        "code": "ORDER_VERSION_CONFLICT",
        "error": "version conflict",
        "expected": exc.expected,
        "actual": exc.actual,
    })


def problem_storage_unavailable(details: str) -> Dict[str, object]:
    """Return a 500 problem for a failed or unreachable backing store."""
    return _logged({
        "title": "Internal Server Error",
        "status": 500,
        "detail": "ordering storage failed",
        "code": "ORDER_STORAGE_UNAVAILABLE",
        "error": "storage failure",
        "details": details,
    })


def problem_item_not_found(collection: str, item_id: str) -> Dict[str, object]:
    return _logged({
        "title": "Not Found",
        "status": 404,
        "detail": f"item {item_id} not found in {collection}",
        "code": "ORDER_ITEM_NOT_FOUND",
    })


def problem_duplicate_item(collection: str, item_id: str) -> Dict[str, object]:
    return _logged({
        "title": "Conflict",
        "status": 409,
        "detail": f"item {item_id} already exists in {collection}",
        "code": "ORDER_ITEM_DUPLICATE",
    })


def problem_collection_not_found(collection: str) -> Dict[str, object]:
    return _logged({
        "title": "Not Found",
        "status": 404,
        "detail": f"unknown collection {collection}",
        "code": "ORDER_COLLECTION_NOT_FOUND",
    })


def problem_pre_if_match_missing() -> Dict[str, object]:
    """Return a 428 problem indicating If-Match header is required and missing."""
    return _logged({
        "title": "Precondition Required",
        "status": 428,
        "detail": "If-Match header is required",
        "code": "PRE_IF_MATCH_MISSING",
    })


def problem_pre_if_match_invalid(reason: str) -> Dict[str, object]:
    return _logged({
        "title": "Bad Request",
        "status": 400,
        "detail": reason,
        "code": "PRE_IF_MATCH_INVALID_FORMAT",
    })
