"""Item and Page value objects - records of the remote collection."""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

# Cursors are opaque position tokens; None means no further data in that direction.
Cursor = Optional[str]


@dataclass(frozen=True)
class Item:
    """
    Domain record of the remote collection.

    Invariants:
    - id is non-empty and uniquely identifies the item in the cache
    - sort_key orders items within the collection
    """
    id: str
    sort_key: int
    payload: Dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        """Validate invariants."""
        if not self.id:
            raise ValueError("id cannot be empty")


@dataclass(frozen=True)
class Page:
    """
    One page of items as returned by a Remote Source.

    previous_cursor / next_cursor are None when no further data exists in
    that direction. items_before / items_after are optional counts of the
    remote items outside this page, used for placeholders.
    """
    items: Tuple[Item, ...]
    previous_cursor: Cursor = None
    next_cursor: Cursor = None
    items_before: Optional[int] = None
    items_after: Optional[int] = None

    def __post_init__(self):
        """Normalize items to a tuple."""
        object.__setattr__(self, "items", tuple(self.items))

    def is_empty(self) -> bool:
        """Check if the page carries no items."""
        return not self.items
