"""PagingState snapshot - the consumer-visible view of loaded data."""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from pagesync.domain.models.item import Item
from pagesync.domain.models.load_state import LoadDirection, LoadError, LoadStatus


def _idle_states() -> Mapping[LoadDirection, LoadStatus]:
    return MappingProxyType({direction: LoadStatus.IDLE for direction in LoadDirection})


@dataclass(frozen=True)
class LoadKey:
    """
    Offset-based window into the cached collection.

    Invariants:
    - offset may be negative only to express a request before the cached start
    - limit > 0
    """
    offset: int
    limit: int

    def __post_init__(self):
        """Validate invariants."""
        if self.limit <= 0:
            raise ValueError(f"limit must be positive, got {self.limit}")

    @property
    def end(self) -> int:
        """Exclusive end offset of the window."""
        return self.offset + self.limit


@dataclass(frozen=True)
class CachedWindow:
    """
    Window of cached items read together with the cache's boundary state.

    All fields come from one read, so they describe the same committed
    state of the cache.
    """
    items: Tuple[Item, ...] = ()
    offset: int = 0
    count: int = 0
    epoch: Optional[int] = None
    previous_cursor: Optional[str] = None
    next_cursor: Optional[str] = None
    items_before: int = 0
    items_after: int = 0

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    @property
    def refreshed(self) -> bool:
        """Whether a refresh was ever committed."""
        return self.epoch is not None


@dataclass(frozen=True)
class PagingState:
    """
    Immutable snapshot of loaded items and load status.

    A new snapshot is built for every relevant change; snapshots are never
    mutated in place. Items are ordered by sort key and unique by id.
    """
    items: Tuple[Item, ...] = ()
    end_reached_start: bool = False
    end_reached_end: bool = False
    is_refreshing: bool = False
    load_error: Optional[LoadError] = None
    load_states: Mapping[LoadDirection, LoadStatus] = field(default_factory=_idle_states)
    epoch: int = 0
    placeholders_before: int = 0
    placeholders_after: int = 0

    def __post_init__(self):
        """Freeze collections."""
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "load_states", MappingProxyType(dict(self.load_states)))

    def __len__(self) -> int:
        return len(self.items)

    @property
    def item_ids(self) -> Tuple[str, ...]:
        return tuple(item.id for item in self.items)

    def status_of(self, direction: LoadDirection) -> LoadStatus:
        """Get the load status of a direction."""
        return self.load_states.get(direction, LoadStatus.IDLE)
