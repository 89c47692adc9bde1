"""HttpStoreClient against the real app in-process, and against failing transports."""

from __future__ import annotations

import httpx
import pytest

from rankd.client.reorder_controller import OutcomeStatus, ReorderController
from rankd.client.store_client import HttpStoreClient
from rankd.logic.errors import (
    OrderingError,
    PermutationError,
    StorageUnavailableError,
    TransportError,
    VersionConflictError,
)
from rankd.main import create_app

pytestmark = pytest.mark.anyio


@pytest.fixture
async def http_store(app_config, store):
    # Migrations are already applied by the engine fixture; ASGITransport skips startup
    app = create_app(config=app_config, store=store)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://rankd.test") as client:
        yield HttpStoreClient(client=client)


def _mock_client(handler) -> HttpStoreClient:
    transport = httpx.MockTransport(handler)
    return HttpStoreClient(client=httpx.AsyncClient(transport=transport, base_url="http://rankd.test"))


async def test_list_ordered_parses_snapshot(http_store, executives, store):
    snapshot = await http_store.list_ordered("executives")

    assert snapshot.ids == ["A", "B", "C"]
    assert snapshot.version == store.list_ordered("executives").version


async def test_reassign_sends_if_match_and_returns_new_version(http_store, executives):
    before = await http_store.list_ordered("executives")

    result = await http_store.reassign_ranks("executives", ["C", "A", "B"], expected_version=before.version)

    assert result.changed is True
    assert result.previous_version == before.version
    assert result.version == before.version + 1
    assert (await http_store.list_ordered("executives")).ids == ["C", "A", "B"]


async def test_stale_version_maps_to_version_conflict(http_store, executives, store):
    before = await http_store.list_ordered("executives")
    store.reassign_ranks("executives", ["B", "A", "C"])

    with pytest.raises(VersionConflictError) as info:
        await http_store.reassign_ranks("executives", ["C", "A", "B"], expected_version=before.version)

    assert info.value.expected == before.version
    assert info.value.actual == before.version + 1


async def test_bad_permutation_maps_to_permutation_error(http_store, executives):
    with pytest.raises(PermutationError) as info:
        await http_store.reassign_ranks("executives", ["A", "B"])

    assert info.value.missing == ["C"]


async def test_controller_round_trip_over_http(http_store, executives, store):
    ctl = ReorderController(http_store, "executives")
    await ctl.load()

    outcome = await ctl.drag_drop(0, 2)

    assert outcome.status is OutcomeStatus.COMMITTED
    assert store.list_ordered("executives").ids == ["B", "C", "A"]


async def test_connection_failure_maps_to_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _mock_client(handler)
    with pytest.raises(TransportError):
        await client.list_ordered("executives")
    await client.aclose()


async def test_server_error_maps_to_storage_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            500,
            json={"status": 500, "code": "ORDER_STORAGE_UNAVAILABLE", "details": "database is locked"},
        )

    client = _mock_client(handler)
    with pytest.raises(StorageUnavailableError, match="database is locked"):
        await client.reassign_ranks("executives", ["A"])


async def test_other_client_errors_map_to_ordering_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"status": 404, "detail": "unknown collection nope"})

    client = _mock_client(handler)
    with pytest.raises(OrderingError, match="404"):
        await client.list_ordered("nope")


async def test_controller_rolls_back_when_server_is_unreachable():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if request.method == "GET" and calls["n"] == 1:
            return httpx.Response(
                200,
                json={
                    "collection": "executives",
                    "version": 1,
                    "items": [
                        {"id": "A", "rank": 1, "created_at": "2026-01-01T00:00:00Z", "attributes": {}},
                        {"id": "B", "rank": 2, "created_at": "2026-01-01T00:00:00Z", "attributes": {}},
                    ],
                },
            )
        raise httpx.ConnectError("connection refused", request=request)

    ctl = ReorderController(_mock_client(handler), "executives")
    await ctl.load()

    outcome = await ctl.move_down("A")

    assert outcome.status is OutcomeStatus.ROLLED_BACK
    assert isinstance(outcome.error, TransportError)
    assert ctl.view.ids == ("A", "B")
    assert ctl.banner.kind == "error"
