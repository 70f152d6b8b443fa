"""Cache Store port interface."""
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, Sequence, Tuple

from pagesync.domain.models.item import Cursor, Item, Page
from pagesync.domain.models.load_state import LoadDirection
from pagesync.domain.models.paging_state import CachedWindow


class CacheStore(ABC):
    """
    Repository interface for the local page cache.

    Pure storage, no policy. The sync mediator is the only writer; any
    number of readers may call the read operations concurrently.

    Invariants:
    - no two items share an id
    - read_window returns items in non-decreasing sort key order
    - readers observe either the full pre-write or the full post-write state
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Group writes into a single atomic commit.

        Writes issued inside the block become visible together when it exits
        cleanly and are rolled back if it raises.
        """
        pass

    @abstractmethod
    def upsert_page(self, direction: LoadDirection, page: Page, epoch: int) -> None:
        """
        Insert or replace items by id and record the boundary cursor(s).

        REFRESH records both cursors, PREPEND the previous cursor and APPEND
        the next cursor.

        Args:
            direction: Direction the page was loaded for
            page: Page to merge
            epoch: Sync epoch the page was fetched under

        Raises:
            StaleResultDiscarded: If epoch is older than the committed epoch
            StorageError: If the transaction fails
        """
        pass

    @abstractmethod
    def clear(self, epoch: int) -> None:
        """
        Remove all items and boundaries, and commit a new epoch.

        Args:
            epoch: Epoch of the refresh about to be written

        Raises:
            StaleResultDiscarded: If epoch is older than the committed epoch
            StorageError: If the transaction fails
        """
        pass

    @abstractmethod
    def read_window(self, offset: int, limit: int) -> Sequence[Item]:
        """
        Read items in sort key order.

        Args:
            offset: Zero-based position of the first item
            limit: Maximum number of items

        Returns:
            Items of the window, possibly fewer than limit
        """
        pass

    @abstractmethod
    def read_snapshot(self, offset: int = 0, limit: Optional[int] = None) -> CachedWindow:
        """
        Read a window together with the count, epoch and boundaries.

        Everything is read in one session, isolated from concurrent writes.

        Args:
            offset: Zero-based position of the first item; negative offsets
                are clipped to the cached start
            limit: Maximum number of items, None for every item from offset

        Returns:
            CachedWindow describing one committed state of the cache
        """
        pass

    @abstractmethod
    def current_boundary_cursors(self) -> Tuple[Cursor, Cursor]:
        """
        Get the boundary cursors.

        Returns:
            Tuple of (previous_cursor, next_cursor); both None before the
            first refresh
        """
        pass

    @abstractmethod
    def count(self) -> int:
        """Count cached items."""
        pass

    @abstractmethod
    def stored_epoch(self) -> Optional[int]:
        """
        Get the committed epoch.

        Returns:
            Epoch of the last committed refresh, None if the cache was never
            refreshed
        """
        pass

    @abstractmethod
    def placeholder_counts(self) -> Tuple[int, int]:
        """
        Get the counts of remote items outside the cached range.

        Returns:
            Tuple of (items_before, items_after); 0 where unknown
        """
        pass
