"""Pydantic models for ordered collection items and reorder payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class OrderedItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    rank: Optional[int] = None
    created_at: str
    attributes: Dict[str, Any] = Field(default_factory=dict)


class OrderedSnapshot(BaseModel):
    """Authoritative order of one collection at a given version."""

    model_config = ConfigDict(frozen=True)

    collection: str
    version: int = 0
    items: List[OrderedItem] = Field(default_factory=list)

    @property
    def ids(self) -> List[str]:
        return [item.id for item in self.items]


class ReassignResult(BaseModel):
    collection: str
    version: int
    previous_version: int
    changed: bool
    count: int


class ReorderRequest(BaseModel):
    # executiveIds is the field name older admin clients post
    ordered_ids: List[str] = Field(
        validation_alias=AliasChoices("orderedIds", "executiveIds", "ordered_ids"),
    )


class ItemCreateRequest(BaseModel):
    id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    attributes: Dict[str, Any] = Field(default_factory=dict)
    ranked: bool = True


__all__ = [
    "OrderedItem",
    "OrderedSnapshot",
    "ReassignResult",
    "ReorderRequest",
    "ItemCreateRequest",
]
