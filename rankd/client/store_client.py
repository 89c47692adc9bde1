"""Async access to an order store for the reorder controller.

``LocalStoreClient`` drives an in-process ``OrderStore`` from a worker thread;
``HttpStoreClient`` talks to the HTTP API and maps its problem+json responses
back onto the ordering error taxonomy so the controller handles both the same
way.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

import anyio
import httpx

from rankd.logic.errors import (
    OrderingError,
    PermutationError,
    StorageUnavailableError,
    TransportError,
    VersionConflictError,
)
from rankd.logic.etag import collection_etag
from rankd.models.ordered_item import OrderedSnapshot, ReassignResult

if TYPE_CHECKING:
    from rankd.logic.order_store import OrderStore

logger = logging.getLogger(__name__)


class OrderStoreClient(Protocol):
    async def list_ordered(self, collection: str) -> OrderedSnapshot: ...

    async def reassign_ranks(
        self,
        collection: str,
        ordered_ids: Sequence[str],
        expected_version: Optional[int] = None,
    ) -> ReassignResult: ...


class LocalStoreClient:
    """Run the synchronous store off the event loop."""

    def __init__(self, store: OrderStore) -> None:
        self.store = store

    async def list_ordered(self, collection: str) -> OrderedSnapshot:
        return await anyio.to_thread.run_sync(self.store.list_ordered, collection)

    async def reassign_ranks(
        self,
        collection: str,
        ordered_ids: Sequence[str],
        expected_version: Optional[int] = None,
    ) -> ReassignResult:
        return await anyio.to_thread.run_sync(
            self.store.reassign_ranks, collection, list(ordered_ids), expected_version
        )


def _problem_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _raise_for_problem(collection: str, response: httpx.Response) -> None:
    if response.is_success:
        return
    body = _problem_body(response)
    status = response.status_code
    if status == 400 and body.get("code") == "ORDER_INVALID_PERMUTATION":
        raise PermutationError(
            collection,
            missing=body.get("missing") or (),
            unexpected=body.get("unexpected") or (),
            duplicated=body.get("duplicated") or (),
        )
    if status == 409 and body.get("code") == "ORDER_VERSION_CONFLICT":
        raise VersionConflictError(collection, int(body.get("expected", -1)), int(body.get("actual", -1)))
    if status >= 500:
        raise StorageUnavailableError(str(body.get("details") or body.get("error") or f"HTTP {status}"))
    raise OrderingError(f"{collection}: HTTP {status} {body.get('detail') or body.get('error') or ''}".strip())


class HttpStoreClient:
    """Order store client over the ``/api/v1/collections`` HTTP API."""

    def __init__(
        self,
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(timeout))
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpStoreClient":
        return self

    async def __aexit__(self, *exc_info) -> None:  # type: ignore[no-untyped-def]
        await self.aclose()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:  # type: ignore[no-untyped-def]
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("store_client.transport_failed method=%s url=%s error=%s", method, url, exc)
            raise TransportError(str(exc)) from exc

    async def list_ordered(self, collection: str) -> OrderedSnapshot:
        response = await self._send("GET", f"/api/v1/collections/{collection}/items")
        _raise_for_problem(collection, response)
        return OrderedSnapshot.model_validate(response.json())

    async def reassign_ranks(
        self,
        collection: str,
        ordered_ids: Sequence[str],
        expected_version: Optional[int] = None,
    ) -> ReassignResult:
        headers = {}
        if expected_version is not None:
            headers["If-Match"] = collection_etag(collection, expected_version)
        response = await self._send(
            "POST",
            f"/api/v1/collections/{collection}/reorder",
            json={"orderedIds": list(ordered_ids)},
            headers=headers,
        )
        _raise_for_problem(collection, response)
        body = response.json()
        return ReassignResult(
            collection=collection,
            version=int(body["version"]),
            previous_version=int(body.get("previous_version", body["version"])),
            changed=bool(body.get("changed", True)),
            count=len(ordered_ids),
        )


__all__ = ["OrderStoreClient", "LocalStoreClient", "HttpStoreClient"]
