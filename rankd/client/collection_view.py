"""Immutable client-side view of an ordered collection."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Tuple

from rankd.models.ordered_item import OrderedItem, OrderedSnapshot


def _matches(item: OrderedItem, term: str) -> bool:
    needle = term.lower()
    return any(needle in str(value).lower() for value in item.attributes.values() if value is not None)


@dataclass(frozen=True)
class CollectionView:
    """What renderers draw: the items in display order plus the filter state.

    Only ``ReorderController`` builds new views; renderers hold a reference
    and never mutate it.
    """

    collection: str
    items: Tuple[OrderedItem, ...] = ()
    version: int = 0
    filter_term: Optional[str] = None
    # Set while an optimistic order is awaiting the store's confirmation
    pending: bool = field(default=False, compare=False)

    @classmethod
    def from_snapshot(cls, snapshot: OrderedSnapshot, filter_term: Optional[str] = None) -> "CollectionView":
        return cls(
            collection=snapshot.collection,
            items=tuple(snapshot.items),
            version=snapshot.version,
            filter_term=filter_term,
        )

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(item.id for item in self.items)

    @property
    def is_filtered(self) -> bool:
        return bool(self.filter_term and self.filter_term.strip())

    @property
    def visible_items(self) -> Tuple[OrderedItem, ...]:
        if not self.is_filtered:
            return self.items
        term = (self.filter_term or "").strip()
        return tuple(item for item in self.items if _matches(item, term))

    def index_of(self, item_id: str) -> int:
        try:
            return self.ids.index(item_id)
        except ValueError:
            raise KeyError(item_id) from None

    def reordered(self, ids: Sequence[str]) -> "CollectionView":
        """Return a pending view with items in ``ids`` order and ranks 1..N."""
        by_id = {item.id: item for item in self.items}
        items = tuple(
            by_id[item_id].model_copy(update={"rank": pos}) for pos, item_id in enumerate(ids, start=1)
        )
        return replace(self, items=items, pending=True)

    def with_filter(self, term: Optional[str]) -> "CollectionView":
        return replace(self, filter_term=term or None)

    def with_version(self, version: int) -> "CollectionView":
        return replace(self, version=int(version), pending=False)


__all__ = ["CollectionView"]
