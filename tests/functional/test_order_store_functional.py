"""Functional tests for the order store: listing, permutation writes, lifecycle.

Runs against a real SQLite database per test (see conftest.py).
"""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine, text as sql_text
from sqlalchemy.exc import IntegrityError, OperationalError

from rankd.logic import events
from rankd.logic.errors import (
    DuplicateItemError,
    ItemNotFoundError,
    PermutationError,
    StorageUnavailableError,
    VersionConflictError,
)
from rankd.logic.order_store import OrderStore, check_permutation


def _ranks(store: OrderStore, collection: str = "executives") -> list[tuple[str, int | None]]:
    return [(item.id, item.rank) for item in store.list_ordered(collection).items]


def test_list_ordered_sorts_by_rank_with_unranked_last(store, seed):
    seed("executives", ["A", "B"])
    store.append_item("executives", item_id="Y", ranked=False)
    store.append_item("executives", item_id="Z", ranked=False)

    snapshot = store.list_ordered("executives")

    # Unranked items fall back to creation order after every ranked item
    assert snapshot.ids == ["A", "B", "Y", "Z"]
    assert [i.rank for i in snapshot.items] == [1, 2, None, None]


def test_list_ordered_of_unknown_collection_is_empty(store):
    snapshot = store.list_ordered("nobody")
    assert snapshot.items == []
    assert snapshot.version == 0


def test_drag_last_to_first_scenario(store, executives):
    result = store.reassign_ranks("executives", ["C", "A", "B"])

    assert result.changed is True
    assert _ranks(store) == [("C", 1), ("A", 2), ("B", 3)]


@pytest.mark.parametrize(
    "order",
    [
        ["A", "B", "C", "D"],
        ["D", "C", "B", "A"],
        ["B", "D", "A", "C"],
        ["C", "A", "D", "B"],
    ],
)
def test_reassign_assigns_dense_ranks_in_submitted_order(store, seed, order):
    seed("executives", ["A", "B", "C", "D"])

    store.reassign_ranks("executives", order)

    snapshot = store.list_ordered("executives")
    assert snapshot.ids == order
    assert [i.rank for i in snapshot.items] == [1, 2, 3, 4]


@pytest.mark.parametrize(
    "submitted, missing, unexpected, duplicated",
    [
        (["A", "B"], ["C"], [], []),
        (["A", "B", "C", "X"], [], ["X"], []),
        (["A", "B", "B"], ["C"], [], ["B"]),
        (["A", "A", "B", "C"], [], [], ["A"]),
    ],
)
def test_non_permutation_is_rejected_and_nothing_changes(
    store, executives, submitted, missing, unexpected, duplicated
):
    before = store.list_ordered("executives")

    with pytest.raises(PermutationError) as info:
        store.reassign_ranks("executives", submitted)

    assert info.value.missing == missing
    assert info.value.unexpected == unexpected
    assert info.value.duplicated == duplicated
    after = store.list_ordered("executives")
    assert after.items == before.items
    assert after.version == before.version


def test_reassign_twice_with_same_ids_is_idempotent(store, executives):
    first = store.reassign_ranks("executives", ["B", "C", "A"])
    state_once = _ranks(store)

    second = store.reassign_ranks("executives", ["B", "C", "A"])

    assert _ranks(store) == state_once
    assert second.changed is False
    assert second.version == first.version


def test_reassign_bumps_version_once_per_change(store, executives):
    start = store.list_ordered("executives").version

    result = store.reassign_ranks("executives", ["B", "A", "C"])

    assert result.previous_version == start
    assert result.version == start + 1
    assert store.list_ordered("executives").version == start + 1


def test_stale_expected_version_is_rejected(store, executives):
    version = store.list_ordered("executives").version
    store.reassign_ranks("executives", ["C", "B", "A"])

    with pytest.raises(VersionConflictError) as info:
        store.reassign_ranks("executives", ["A", "C", "B"], expected_version=version)

    assert info.value.expected == version
    assert info.value.actual == version + 1
    assert store.list_ordered("executives").ids == ["C", "B", "A"]


def test_current_expected_version_is_accepted(store, executives):
    version = store.list_ordered("executives").version

    result = store.reassign_ranks("executives", ["B", "C", "A"], expected_version=version)

    assert result.version == version + 1


def test_resubmitting_stored_order_succeeds_even_with_stale_version(store, executives):
    version = store.list_ordered("executives").version
    store.reassign_ranks("executives", ["C", "A", "B"])

    # A retried request whose first attempt already landed must not fail
    result = store.reassign_ranks("executives", ["C", "A", "B"], expected_version=version)

    assert result.changed is False


def test_append_places_item_at_tail_without_touching_ranks(store, executives):
    store.reassign_ranks("executives", ["C", "A", "B"])

    item = store.append_item("executives", item_id="D", attributes={"name": "Dana"})

    assert item.rank == 4
    assert item.attributes == {"name": "Dana"}
    assert _ranks(store) == [("C", 1), ("A", 2), ("B", 3), ("D", 4)]


def test_append_generates_id_when_none_given(store):
    item = store.append_item("developers")
    assert item.id
    assert store.list_ordered("developers").ids == [item.id]


def test_append_rejects_known_id(store, executives):
    with pytest.raises(DuplicateItemError):
        store.append_item("executives", item_id="B")


def test_collections_have_separate_rank_namespaces(store, seed):
    seed("executives", ["A", "B"])
    seed("moderators", ["A", "M"])

    store.reassign_ranks("moderators", ["M", "A"])

    assert _ranks(store, "executives") == [("A", 1), ("B", 2)]
    assert _ranks(store, "moderators") == [("M", 1), ("A", 2)]


def test_remove_leaves_sparse_ranks_until_next_reorder(store, seed):
    seed("executives", ["A", "B", "C", "D"])

    store.remove_item("executives", "B")
    assert _ranks(store) == [("A", 1), ("C", 3), ("D", 4)]

    store.reassign_ranks("executives", ["A", "C", "D"])
    assert _ranks(store) == [("A", 1), ("C", 2), ("D", 3)]


def test_reassign_ranks_unranked_items(store, seed):
    seed("executives", ["A"])
    store.append_item("executives", item_id="N", ranked=False)

    store.reassign_ranks("executives", ["N", "A"])

    assert _ranks(store) == [("N", 1), ("A", 2)]


def test_remove_unknown_item_raises(store, executives):
    with pytest.raises(ItemNotFoundError):
        store.remove_item("executives", "nope")


def test_failed_write_rolls_back_the_whole_permutation(store, executives, monkeypatch):
    real_write = OrderStore._write_ranks

    def _half_written(conn, collection, ordered_ids, current_ranks):
        real_write(conn, collection, ordered_ids, current_ranks)
        raise OperationalError("UPDATE ordered_item", {}, Exception("disk I/O error"))

    monkeypatch.setattr(OrderStore, "_write_ranks", staticmethod(_half_written))

    with pytest.raises(StorageUnavailableError):
        store.reassign_ranks("executives", ["C", "B", "A"])

    assert _ranks(store) == [("A", 1), ("B", 2), ("C", 3)]


def test_missing_schema_is_reported_as_storage_failure():
    bare = OrderStore(create_engine("sqlite+pysqlite:///:memory:"))

    with pytest.raises(StorageUnavailableError):
        bare.list_ordered("executives")
    with pytest.raises(StorageUnavailableError):
        bare.reassign_ranks("executives", [])


def test_ranks_stay_unique_in_storage(store, seed, engine):
    seed("executives", ["A", "B", "C", "D", "E"])
    store.reassign_ranks("executives", ["E", "D", "C", "B", "A"])
    store.reassign_ranks("executives", ["B", "E", "A", "D", "C"])

    with engine.connect() as conn:
        rows = conn.execute(
            sql_text("SELECT rank FROM ordered_item WHERE collection = 'executives' ORDER BY rank")
        ).fetchall()
    assert [r[0] for r in rows] == [1, 2, 3, 4, 5]


def test_committed_writes_publish_events(store, executives):
    events.get_buffered_events(clear=True)

    store.reassign_ranks("executives", ["B", "A", "C"])
    store.reassign_ranks("executives", ["B", "A", "C"])
    store.remove_item("executives", "C")

    published = events.get_buffered_events()
    assert [e["type"] for e in published] == [events.COLLECTION_REORDERED, events.ITEM_REMOVED]
    assert published[0]["payload"]["ordered_ids"] == ["B", "A", "C"]


def test_check_permutation_accepts_any_order_of_the_same_ids():
    check_permutation("c", ["x", "y", "z"], ["z", "x", "y"])
    check_permutation("c", [], [])


def test_event_buffer_keeps_only_the_most_recent_events(store, executives):
    events.get_buffered_events(clear=True)
    orders = (["B", "A", "C"], ["A", "B", "C"])

    for n in range(events.EVENT_BUFFER_MAX + 50):
        store.reassign_ranks("executives", orders[n % 2])

    assert len(events.EVENT_BUFFER) == events.EVENT_BUFFER_MAX
    latest = events.get_buffered_events()[-1]
    assert latest["payload"]["version"] == store.list_ordered("executives").version


def test_first_write_tolerates_a_version_row_seeded_by_another_writer(store, engine):
    # Another session created the version row after this collection was last seen empty
    with engine.begin() as conn:
        conn.execute(
            sql_text("INSERT INTO collection_version (collection, version) VALUES ('developers', 0)")
        )

    item = store.append_item("developers", item_id="A")

    assert item.rank == 1
    assert store.list_ordered("developers").version == 1


def test_collection_lock_seeds_the_version_row_once(engine):
    with engine.begin() as conn:
        assert OrderStore._lock_collection(conn, "moderators") == 0
        assert OrderStore._lock_collection(conn, "moderators") == 0
        rows = conn.execute(
            sql_text("SELECT COUNT(*) FROM collection_version WHERE collection = 'moderators'")
        ).scalar_one()
    assert rows == 1


def test_version_row_conflict_on_append_is_a_storage_failure_not_a_duplicate(store, monkeypatch):
    def _conflict(conn, collection):
        raise IntegrityError("INSERT INTO collection_version", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr(OrderStore, "_lock_collection", staticmethod(_conflict))

    with pytest.raises(StorageUnavailableError):
        store.append_item("executives", item_id="A")
