from __future__ import annotations
from typing import TypeVar

T = TypeVar("T")

def chunk_list(items: list[T], size: int | None) -> list[list[T]]:
    """Return grouped chunks of `items`. If size <=0 or None, return one chunk with all items."""
    if not items:
        return []
    if size is None or size <= 0:
        return [list(items)]
    return [items[i:i+size] for i in range(0, len(items), size)]
