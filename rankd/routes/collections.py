"""Ordered collection routes.

Read the authoritative order, submit a full reorder, and append or remove
items. Handlers stay free of SQL; persistence goes through ``OrderStore`` and
errors propagate to the problem+json handlers registered in ``create_app``.
"""

from __future__ import annotations

from typing import Optional
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from rankd.config import COLLECTION_NAME_RE, AppConfig
from rankd.logic.etag import collection_etag, expected_version_from_if_match
from rankd.logic.order_store import OrderStore
from rankd.logic.problem_factory import (
    problem_collection_not_found,
    problem_pre_if_match_invalid,
    problem_pre_if_match_missing,
)
from rankd.models.ordered_item import ItemCreateRequest, ReorderRequest

router = APIRouter(prefix="/collections")
logger = logging.getLogger(__name__)


def get_order_store(request: Request) -> OrderStore:
    return request.app.state.order_store


def get_app_config(request: Request) -> AppConfig:
    return request.app.state.config


def resolve_collection(collection: str, config: AppConfig = Depends(get_app_config)) -> str:
    allowed = config.ordering.allowed_collections
    if not COLLECTION_NAME_RE.fullmatch(collection) or (allowed and collection not in allowed):
        raise HTTPException(status_code=404, detail=problem_collection_not_found(collection))
    return collection


@router.get("/{collection}/items")
def list_items(
    collection: str = Depends(resolve_collection),
    store: OrderStore = Depends(get_order_store),
) -> JSONResponse:
    snapshot = store.list_ordered(collection)
    return JSONResponse(
        snapshot.model_dump(),
        headers={"ETag": collection_etag(collection, snapshot.version)},
    )


@router.post("/{collection}/reorder")
def reorder_items(
    payload: ReorderRequest,
    collection: str = Depends(resolve_collection),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    store: OrderStore = Depends(get_order_store),
    config: AppConfig = Depends(get_app_config),
) -> JSONResponse:
    """Replace the collection's order with ``orderedIds``.

    Without If-Match the last writer wins; with it, a stale version is
    rejected with 409 so the client can refetch.
    """
    if config.ordering.require_if_match and not (if_match or "").strip():
        raise HTTPException(status_code=428, detail=problem_pre_if_match_missing())
    try:
        expected = expected_version_from_if_match(collection, if_match)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=problem_pre_if_match_invalid(str(exc))) from exc

    logger.info(
        "collections.reorder.entry collection=%s count=%s expected_version=%s",
        collection,
        len(payload.ordered_ids),
        expected,
    )
    result = store.reassign_ranks(collection, payload.ordered_ids, expected_version=expected)
    body = {
        "success": True,
        "version": result.version,
        "previous_version": result.previous_version,
        "changed": result.changed,
        "message": f"Successfully updated order for {result.count} items",
    }
    return JSONResponse(body, headers={"ETag": collection_etag(collection, result.version)})


@router.post("/{collection}/items", status_code=201)
def append_item(
    payload: ItemCreateRequest,
    collection: str = Depends(resolve_collection),
    store: OrderStore = Depends(get_order_store),
) -> JSONResponse:
    item = store.append_item(collection, item_id=payload.id, attributes=payload.attributes, ranked=payload.ranked)
    return JSONResponse(item.model_dump(), status_code=201)


@router.delete("/{collection}/items/{item_id}", status_code=204)
def remove_item(
    item_id: str,
    collection: str = Depends(resolve_collection),
    store: OrderStore = Depends(get_order_store),
) -> Response:
    store.remove_item(collection, item_id)
    return Response(status_code=204)


__all__ = ["router", "get_order_store", "get_app_config"]
