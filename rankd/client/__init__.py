"""Client-side reorder support: gestures, the collection view, and the controller."""

from __future__ import annotations

from rankd.client.collection_view import CollectionView
from rankd.client.reorder_controller import (
    Banner,
    OutcomeStatus,
    ReorderController,
    ReorderOutcome,
    ReorderState,
)
from rankd.client.store_client import HttpStoreClient, LocalStoreClient, OrderStoreClient

__all__ = [
    "Banner",
    "CollectionView",
    "HttpStoreClient",
    "LocalStoreClient",
    "OrderStoreClient",
    "OutcomeStatus",
    "ReorderController",
    "ReorderOutcome",
    "ReorderState",
]
