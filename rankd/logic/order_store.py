"""Durable rank persistence for ordered collections.

The store is the single writer of ``ordered_item.rank``. Every reorder is a
full permutation submission: ranks are recomputed from the caller's ordering
as contiguous 1-based positions inside one transaction, so concurrent readers
see either the previous order or the new one and never a mix of both.

Concurrency is last-writer-wins unless the caller passes the collection
version it based its ordering on, in which case a stale version is rejected
with ``VersionConflictError``.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence
import json
import logging
import uuid

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from rankd.db.base import get_engine
from rankd.logic import events
from rankd.logic.errors import (
    DuplicateItemError,
    ItemNotFoundError,
    PermutationError,
    StorageUnavailableError,
    VersionConflictError,
)
from rankd.models.ordered_item import OrderedItem, OrderedSnapshot, ReassignResult

logger = logging.getLogger(__name__)

# Nulls sort last; creation time then id keep the fallback order stable
_LIST_SQL = (
    "SELECT item_id, rank, created_at, attributes FROM ordered_item "
    "WHERE collection = :c "
    "ORDER BY CASE WHEN rank IS NULL THEN 1 ELSE 0 END, rank ASC, created_at ASC, item_id ASC"
)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _decode_attributes(raw: Any) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("order_store.attributes_undecodable raw=%r", raw)
        return {}
    return value if isinstance(value, dict) else {}


def check_permutation(collection: str, current_ids: Sequence[str], ordered_ids: Sequence[str]) -> None:
    """Raise PermutationError unless ``ordered_ids`` is a permutation of ``current_ids``."""
    counts = Counter(ordered_ids)
    duplicated = [i for i, n in counts.items() if n > 1]
    current = set(current_ids)
    missing = current - set(counts)
    unexpected = set(counts) - current
    if duplicated or missing or unexpected:
        raise PermutationError(collection, missing=missing, unexpected=unexpected, duplicated=duplicated)


class OrderStore:
    """Rank persistence over a SQLAlchemy engine.

    The engine defaults to the module-level singleton from ``rankd.db.base``.
    Storage failures are reported as ``StorageUnavailableError`` and never
    retried here; retry policy belongs to the caller.
    """

    def __init__(self, engine: Optional[Engine] = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    # -- reads -------------------------------------------------------------

    def list_ordered(self, collection: str) -> OrderedSnapshot:
        """Return the collection's items sorted by rank, nulls last."""
        try:
            with self.engine.begin() as conn:
                version = self._read_version(conn, collection)
                rows = conn.execute(sql_text(_LIST_SQL), {"c": collection}).fetchall()
        except SQLAlchemyError as exc:
            logger.error("order_store.list_failed collection=%s", collection, exc_info=True)
            raise StorageUnavailableError(str(exc)) from exc
        items = [
            OrderedItem(
                id=str(r[0]),
                rank=int(r[1]) if r[1] is not None else None,
                created_at=str(r[2]),
                attributes=_decode_attributes(r[3]),
            )
            for r in rows
        ]
        return OrderedSnapshot(collection=collection, version=version, items=items)

    # -- writes ------------------------------------------------------------

    def reassign_ranks(
        self,
        collection: str,
        ordered_ids: Sequence[str],
        expected_version: Optional[int] = None,
    ) -> ReassignResult:
        """Assign rank = 1-based position in ``ordered_ids`` to every item, atomically.

        ``ordered_ids`` must be exactly the ids currently in the collection.
        Any mismatch rejects the whole submission with nothing written.
        Submitting the order already stored is a no-op and does not bump the
        version, so repeating a request is safe.
        """
        ids = [str(i) for i in ordered_ids]
        try:
            with self.engine.begin() as conn:
                version = self._lock_collection(conn, collection)
                rows = conn.execute(sql_text(_LIST_SQL), {"c": collection}).fetchall()
                current_ids = [str(r[0]) for r in rows]
                current_ranks = [r[1] for r in rows]
                check_permutation(collection, current_ids, ids)

                dense = current_ranks == list(range(1, len(rows) + 1))
                if ids == current_ids and dense:
                    logger.info(
                        "order_store.reassign.noop collection=%s version=%s count=%s",
                        collection,
                        version,
                        len(ids),
                    )
                    return ReassignResult(
                        collection=collection,
                        version=version,
                        previous_version=version,
                        changed=False,
                        count=len(ids),
                    )

                if expected_version is not None and int(expected_version) != version:
                    raise VersionConflictError(collection, int(expected_version), version)

                self._write_ranks(conn, collection, ids, current_ranks)
                new_version = self._bump_version(conn, collection, version)
        except (PermutationError, VersionConflictError) as exc:
            logger.warning("order_store.reassign.rejected collection=%s reason=%s", collection, exc)
            raise
        except SQLAlchemyError as exc:
            logger.error("order_store.reassign.failed collection=%s", collection, exc_info=True)
            raise StorageUnavailableError(str(exc)) from exc

        logger.info(
            "order_store.reassign.committed collection=%s version=%s->%s count=%s",
            collection,
            version,
            new_version,
            len(ids),
        )
        events.publish(
            events.COLLECTION_REORDERED,
            {"collection": collection, "version": new_version, "ordered_ids": ids},
        )
        return ReassignResult(
            collection=collection,
            version=new_version,
            previous_version=version,
            changed=True,
            count=len(ids),
        )

    def append_item(
        self,
        collection: str,
        item_id: Optional[str] = None,
        attributes: Optional[Dict[str, Any]] = None,
        ranked: bool = True,
    ) -> OrderedItem:
        """Insert an item at the tail (rank = max + 1) or unranked.

        Existing ranks are never touched.
        """
        new_id = str(item_id) if item_id else str(uuid.uuid4())
        created_at = _utcnow()
        attrs = dict(attributes or {})
        try:
            with self.engine.begin() as conn:
                version = self._lock_collection(conn, collection)
                exists = conn.execute(
                    sql_text("SELECT 1 FROM ordered_item WHERE collection = :c AND item_id = :i"),
                    {"c": collection, "i": new_id},
                ).fetchone()
                if exists:
                    raise DuplicateItemError(collection, new_id)
                rank: Optional[int] = None
                if ranked:
                    row = conn.execute(
                        sql_text("SELECT COALESCE(MAX(rank), 0) FROM ordered_item WHERE collection = :c"),
                        {"c": collection},
                    ).fetchone()
                    rank = int(row[0] if row and row[0] is not None else 0) + 1
                try:
                    conn.execute(
                        sql_text(
                            "INSERT INTO ordered_item (collection, item_id, rank, created_at, attributes) "
                            "VALUES (:c, :i, :r, :t, :a)"
                        ),
                        {"c": collection, "i": new_id, "r": rank, "t": created_at, "a": json.dumps(attrs)},
                    )
                except IntegrityError as exc:
                    # Lost a race on the item primary key
                    raise DuplicateItemError(collection, new_id) from exc
                version = self._bump_version(conn, collection, version)
        except DuplicateItemError:
            logger.warning("order_store.append.duplicate collection=%s item_id=%s", collection, new_id)
            raise
        except SQLAlchemyError as exc:
            logger.error("order_store.append.failed collection=%s", collection, exc_info=True)
            raise StorageUnavailableError(str(exc)) from exc

        events.publish(
            events.ITEM_APPENDED,
            {"collection": collection, "item_id": new_id, "rank": rank, "version": version},
        )
        return OrderedItem(id=new_id, rank=rank, created_at=created_at, attributes=attrs)

    def remove_item(self, collection: str, item_id: str) -> None:
        """Delete an item. Remaining ranks stay sparse until the next reorder."""
        try:
            with self.engine.begin() as conn:
                version = self._lock_collection(conn, collection)
                result = conn.execute(
                    sql_text("DELETE FROM ordered_item WHERE collection = :c AND item_id = :i"),
                    {"c": collection, "i": str(item_id)},
                )
                if not result.rowcount:
                    raise ItemNotFoundError(collection, str(item_id))
                version = self._bump_version(conn, collection, version)
        except ItemNotFoundError:
            logger.warning("order_store.remove.not_found collection=%s item_id=%s", collection, item_id)
            raise
        except SQLAlchemyError as exc:
            logger.error("order_store.remove.failed collection=%s", collection, exc_info=True)
            raise StorageUnavailableError(str(exc)) from exc

        events.publish(
            events.ITEM_REMOVED,
            {"collection": collection, "item_id": str(item_id), "version": version},
        )

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _read_version(conn: Connection, collection: str) -> int:
        row = conn.execute(
            sql_text("SELECT version FROM collection_version WHERE collection = :c"),
            {"c": collection},
        ).fetchone()
        return int(row[0]) if row and row[0] is not None else 0

    @staticmethod
    def _lock_collection(conn: Connection, collection: str) -> int:
        """Take the collection's write lock and return its current version.

        The version row is seeded with ON CONFLICT DO NOTHING, so two first
        writers to a new collection both proceed: on PostgreSQL the second
        insert waits for the first and then skips. A no-op UPDATE on the row
        then serialises writers on both PostgreSQL (row lock) and SQLite
        (reserved lock).
        """
        conn.execute(
            sql_text(
                "INSERT INTO collection_version (collection, version) VALUES (:c, 0) "
                "ON CONFLICT (collection) DO NOTHING"
            ),
            {"c": collection},
        )
        conn.execute(
            sql_text("UPDATE collection_version SET version = version WHERE collection = :c"),
            {"c": collection},
        )
        return OrderStore._read_version(conn, collection)

    @staticmethod
    def _bump_version(conn: Connection, collection: str, current: int) -> int:
        conn.execute(
            sql_text("UPDATE collection_version SET version = :v WHERE collection = :c"),
            {"v": current + 1, "c": collection},
        )
        return current + 1

    @staticmethod
    def _write_ranks(
        conn: Connection,
        collection: str,
        ordered_ids: Sequence[str],
        current_ranks: Sequence[Optional[int]],
    ) -> None:
        # Two-phase write to avoid unique collisions on (collection, rank):
        # move every ranked row above both the old and the new range first.
        highest = max([int(r) for r in current_ranks if r is not None] or [0])
        offset = highest + len(ordered_ids) + 1
        conn.execute(
            sql_text(
                "UPDATE ordered_item SET rank = rank + :off WHERE collection = :c AND rank IS NOT NULL"
            ),
            {"off": offset, "c": collection},
        )
        conn.execute(
            sql_text("UPDATE ordered_item SET rank = :r WHERE collection = :c AND item_id = :i"),
            [{"r": pos, "c": collection, "i": item_id} for pos, item_id in enumerate(ordered_ids, start=1)],
        )


__all__ = ["OrderStore", "check_permutation"]
