"""Ordering error taxonomy.

Store and client raise these; the HTTP layer maps them to problem+json in
`rankd.http.problem` and the HTTP client maps responses back to them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


class OrderingError(Exception):
    """Base class for ordering failures."""


class PermutationError(OrderingError):
    """Submitted ids are not an exact permutation of the collection's ids."""

    def __init__(
        self,
        collection: str,
        missing: Iterable[str] = (),
        unexpected: Iterable[str] = (),
        duplicated: Iterable[str] = (),
    ) -> None:
        self.collection = collection
        self.missing: List[str] = sorted(set(missing))
        self.unexpected: List[str] = sorted(set(unexpected))
        self.duplicated: List[str] = sorted(set(duplicated))
        super().__init__(
            f"invalid permutation for {collection}: missing={self.missing} "
            f"unexpected={self.unexpected} duplicated={self.duplicated}"
        )

    def to_dict(self) -> dict:
        return {
            "missing": list(self.missing),
            "unexpected": list(self.unexpected),
            "duplicated": list(self.duplicated),
        }


class VersionConflictError(OrderingError):
    """The collection changed since the version the caller based its order on."""

    def __init__(self, collection: str, expected: int, actual: int) -> None:
        self.collection = collection
        self.expected = int(expected)
        self.actual = int(actual)
        super().__init__(f"version conflict for {collection}: expected={expected} actual={actual}")


class StorageUnavailableError(OrderingError):
    """The backing store failed; the operation may be retried by the caller."""


class TransportError(OrderingError):
    """The store could not be reached over the network."""


class ItemNotFoundError(OrderingError):
    def __init__(self, collection: str, item_id: str) -> None:
        self.collection = collection
        self.item_id = item_id
        super().__init__(f"item {item_id} not found in {collection}")


class DuplicateItemError(OrderingError):
    def __init__(self, collection: str, item_id: str) -> None:
        self.collection = collection
        self.item_id = item_id
        super().__init__(f"item {item_id} already exists in {collection}")


@dataclass(frozen=True)
class ConcurrentOverwriteNotice:
    """A reorder committed over a version other than the one it was based on.

    Not an error: without a version precondition the last writer wins.
    """

    collection: str
    based_on_version: int
    overwritten_version: int


__all__ = [
    "OrderingError",
    "PermutationError",
    "VersionConflictError",
    "StorageUnavailableError",
    "TransportError",
    "ItemNotFoundError",
    "DuplicateItemError",
    "ConcurrentOverwriteNotice",
]
