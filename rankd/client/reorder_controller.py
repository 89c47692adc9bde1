"""Optimistic reorder controller.

Turns a move gesture into a full new ordering, shows it immediately, submits
it to the order store, and reconciles:

    IDLE -> OPTIMISTICALLY_APPLIED -> COMMITTED   -> IDLE
                                   -> ROLLED_BACK -> IDLE

Attempts are serialised per controller: a gesture issued while a submission
is in flight waits for it and is computed against the order that results.
Reordering is disabled while a search filter is active, so indices always
refer to the full collection.

Every store call carries a sequence number. A refetch that was issued before
a later optimistic order was applied, or that lands while a submission is in
flight, is discarded instead of overwriting the newer order.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from rankd.client import gestures
from rankd.client.collection_view import CollectionView
from rankd.client.store_client import OrderStoreClient
from rankd.config import OrderingConfig
from rankd.logic.errors import ConcurrentOverwriteNotice, OrderingError
from rankd.models.ordered_item import ReassignResult

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Order updated successfully!"
FAILURE_MESSAGE = "Failed to update order"


class ReorderState(str, enum.Enum):
    IDLE = "idle"
    OPTIMISTICALLY_APPLIED = "optimistically_applied"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class OutcomeStatus(str, enum.Enum):
    NOOP = "noop"
    BLOCKED = "blocked"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class Banner:
    kind: str  # "success" or "error"
    message: str
    auto_dismiss: bool


@dataclass(frozen=True)
class ReorderOutcome:
    status: OutcomeStatus
    view: CollectionView
    sequence: Optional[int] = None
    error: Optional[OrderingError] = None
    notice: Optional[ConcurrentOverwriteNotice] = None


class ReorderController:
    """Owns the ``CollectionView`` for one collection.

    ``use_versioning`` sends the view's version with each submission so a
    concurrent edit elsewhere is rejected and rolled back; without it the
    last writer wins and the outcome carries a ``ConcurrentOverwriteNotice``.
    """

    def __init__(
        self,
        store: OrderStoreClient,
        collection: str,
        *,
        notice_seconds: float = 3.0,
        use_versioning: bool = True,
        on_render: Optional[Callable[[CollectionView], None]] = None,
    ) -> None:
        self._store = store
        self._notice_seconds = float(notice_seconds)
        self._use_versioning = use_versioning
        self._on_render = on_render
        self._view = CollectionView(collection=collection)
        self._lock = asyncio.Lock()
        self._sequence = 0
        self._applied_sequence = 0
        self._in_flight = False
        self._banner: Optional[Banner] = None
        self._dismiss_handle: Optional[asyncio.TimerHandle] = None
        self.state = ReorderState.IDLE

    @classmethod
    def from_config(
        cls, store: OrderStoreClient, collection: str, config: OrderingConfig, **kwargs
    ) -> "ReorderController":
        return cls(store, collection, notice_seconds=config.notice_seconds, **kwargs)

    # -- observable state ----------------------------------------------------

    @property
    def collection(self) -> str:
        return self._view.collection

    @property
    def view(self) -> CollectionView:
        return self._view

    @property
    def banner(self) -> Optional[Banner]:
        return self._banner

    @property
    def can_reorder(self) -> bool:
        return not self._view.is_filtered

    def can_move_up(self, item_id: str) -> bool:
        return self.can_reorder and gestures.can_move_up(self._view.ids, self._view.index_of(item_id))

    def can_move_down(self, item_id: str) -> bool:
        return self.can_reorder and gestures.can_move_down(self._view.ids, self._view.index_of(item_id))

    # -- commands ------------------------------------------------------------

    async def load(self) -> CollectionView:
        """Fetch the authoritative order and show it, unless a newer order supersedes it."""
        seq = self._next_sequence()
        snapshot = await self._store.list_ordered(self.collection)
        if self._in_flight or seq < self._applied_sequence:
            logger.info(
                "reorder_controller.load.discarded collection=%s seq=%s applied=%s in_flight=%s",
                self.collection,
                seq,
                self._applied_sequence,
                self._in_flight,
            )
            return self._view
        self._install(CollectionView.from_snapshot(snapshot, self._view.filter_term), seq)
        return self._view

    def set_filter(self, term: Optional[str]) -> CollectionView:
        self._install(self._view.with_filter(term))
        return self._view

    def dismiss_banner(self) -> None:
        self._cancel_dismiss()
        self._banner = None

    async def move_up(self, item_id: str) -> ReorderOutcome:
        return await self._attempt(
            "move_up", lambda view: gestures.move_up(view.ids, view.index_of(item_id))
        )

    async def move_down(self, item_id: str) -> ReorderOutcome:
        return await self._attempt(
            "move_down", lambda view: gestures.move_down(view.ids, view.index_of(item_id))
        )

    async def drag_drop(self, source_index: int, destination_index: Optional[int]) -> ReorderOutcome:
        """Apply a drop; ``destination_index`` None means dropped outside the list."""
        if destination_index is None:
            return ReorderOutcome(OutcomeStatus.NOOP, self._view)
        return await self._attempt(
            "drag_drop", lambda view: gestures.drag_drop(view.ids, source_index, destination_index)
        )

    # -- state machine -------------------------------------------------------

    async def _attempt(
        self, gesture: str, compute: Callable[[CollectionView], gestures.MoveResult]
    ) -> ReorderOutcome:
        async with self._lock:
            if not self.can_reorder:
                logger.info(
                    "reorder_controller.blocked collection=%s gesture=%s filter=%r",
                    self.collection,
                    gesture,
                    self._view.filter_term,
                )
                return ReorderOutcome(OutcomeStatus.BLOCKED, self._view)

            base = self._view
            move = compute(base)
            if not move.changed:
                return ReorderOutcome(OutcomeStatus.NOOP, base)

            seq = self._next_sequence()
            self._in_flight = True
            self.state = ReorderState.OPTIMISTICALLY_APPLIED
            self._install(base.reordered(move.ids), seq)
            logger.info(
                "reorder_controller.submit collection=%s gesture=%s seq=%s from=%s to=%s",
                self.collection,
                gesture,
                seq,
                move.from_index,
                move.to_index,
            )
            try:
                expected = base.version if self._use_versioning else None
                result = await self._store.reassign_ranks(self.collection, move.ids, expected_version=expected)
            except OrderingError as exc:
                return await self._roll_back(seq, base, exc)
            except Exception:
                self._in_flight = False
                self._install(base, seq)
                self.state = ReorderState.IDLE
                raise
            return self._commit(seq, base, result)

    def _commit(self, seq: int, base: CollectionView, result: ReassignResult) -> ReorderOutcome:
        self._in_flight = False
        self.state = ReorderState.COMMITTED
        self._install(self._view.with_version(result.version), seq)
        notice = None
        if result.changed and result.previous_version != base.version:
            notice = ConcurrentOverwriteNotice(
                collection=self.collection,
                based_on_version=base.version,
                overwritten_version=result.previous_version,
            )
            logger.warning(
                "reorder_controller.overwrote_concurrent_order collection=%s based_on=%s overwritten=%s",
                self.collection,
                base.version,
                result.previous_version,
            )
        self._show_banner(Banner("success", SUCCESS_MESSAGE, auto_dismiss=True))
        outcome = ReorderOutcome(OutcomeStatus.COMMITTED, self._view, sequence=seq, notice=notice)
        self.state = ReorderState.IDLE
        return outcome

    async def _roll_back(self, seq: int, base: CollectionView, exc: OrderingError) -> ReorderOutcome:
        logger.warning(
            "reorder_controller.rollback collection=%s seq=%s error=%s", self.collection, seq, exc
        )
        self.state = ReorderState.ROLLED_BACK
        refetch_seq = self._next_sequence()
        try:
            snapshot = await self._store.list_ordered(self.collection)
        except OrderingError:
            # Fall back to the last order the store confirmed
            logger.error(
                "reorder_controller.rollback_refetch_failed collection=%s", self.collection, exc_info=True
            )
            restored = base
        else:
            restored = CollectionView.from_snapshot(snapshot, self._view.filter_term)
        self._in_flight = False
        self._install(restored.with_filter(self._view.filter_term), refetch_seq)
        self._show_banner(Banner("error", f"{FAILURE_MESSAGE}: {exc}", auto_dismiss=False))
        outcome = ReorderOutcome(OutcomeStatus.ROLLED_BACK, self._view, sequence=seq, error=exc)
        self.state = ReorderState.IDLE
        return outcome

    # -- helpers -------------------------------------------------------------

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def _install(self, view: CollectionView, seq: Optional[int] = None) -> None:
        if seq is not None:
            self._applied_sequence = max(self._applied_sequence, seq)
        self._view = view
        if self._on_render is not None:
            self._on_render(view)

    def _show_banner(self, banner: Banner) -> None:
        self._cancel_dismiss()
        self._banner = banner
        if banner.auto_dismiss:
            loop = asyncio.get_running_loop()
            self._dismiss_handle = loop.call_later(self._notice_seconds, self._auto_dismiss, banner)

    def _auto_dismiss(self, banner: Banner) -> None:
        if self._banner is banner:
            self._banner = None
        self._dismiss_handle = None

    def _cancel_dismiss(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None


__all__ = [
    "Banner",
    "OutcomeStatus",
    "ReorderController",
    "ReorderOutcome",
    "ReorderState",
    "SUCCESS_MESSAGE",
    "FAILURE_MESSAGE",
]
