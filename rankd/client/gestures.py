"""Gesture-to-order translation.

Pure functions over a sequence of item ids. Inputs are never mutated; each
call returns a ``MoveResult`` carrying the full new ordering so the caller can
submit it as a permutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

__all__ = [
    "MoveResult",
    "can_move_up",
    "can_move_down",
    "move_up",
    "move_down",
    "drag_drop",
]


@dataclass(frozen=True)
class MoveResult:
    ids: Tuple[str, ...]
    changed: bool
    from_index: int
    to_index: int


def _check_index(ids: Sequence[str], index: int, name: str) -> None:
    if not 0 <= index < len(ids):
        raise IndexError(f"{name} {index} out of range for {len(ids)} items")


def can_move_up(ids: Sequence[str], index: int) -> bool:
    return 0 < index < len(ids)


def can_move_down(ids: Sequence[str], index: int) -> bool:
    return 0 <= index < len(ids) - 1


def _swap(ids: Sequence[str], index: int, other: int) -> MoveResult:
    out = list(ids)
    out[index], out[other] = out[other], out[index]
    return MoveResult(tuple(out), True, index, other)


def move_up(ids: Sequence[str], index: int) -> MoveResult:
    """Transpose the item at ``index`` with its predecessor; first item is a no-op."""
    _check_index(ids, index, "index")
    if not can_move_up(ids, index):
        return MoveResult(tuple(ids), False, index, index)
    return _swap(ids, index, index - 1)


def move_down(ids: Sequence[str], index: int) -> MoveResult:
    """Transpose the item at ``index`` with its successor; last item is a no-op."""
    _check_index(ids, index, "index")
    if not can_move_down(ids, index):
        return MoveResult(tuple(ids), False, index, index)
    return _swap(ids, index, index + 1)


def drag_drop(ids: Sequence[str], source: int, destination: int) -> MoveResult:
    """Remove the item at ``source`` and insert it at ``destination``.

    ``destination`` is in the post-removal index space, which for a list of
    the same length is also the item's final index.
    """
    _check_index(ids, source, "source")
    _check_index(ids, destination, "destination")
    if source == destination:
        return MoveResult(tuple(ids), False, source, destination)
    out = list(ids)
    moved = out.pop(source)
    out.insert(destination, moved)
    return MoveResult(tuple(out), True, source, destination)
