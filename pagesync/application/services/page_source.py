"""Page source application service - serves paged reads from the cache."""
import logging

from pagesync.application.services.sync_mediator import SyncMediator
from pagesync.core.config import PagingConfig
from pagesync.domain.models.load_state import LoadDirection, LoadStatus
from pagesync.domain.models.paging_state import CachedWindow, LoadKey, PagingState
from pagesync.domain.ports.cache_store import CacheStore

logger = logging.getLogger(__name__)


class PageSource:
    """
    Application service for paged reads.

    Responsibilities:
    - Read windows from the cache store only, never from the network
    - Ask the sync mediator for PREPEND / APPEND when a window nears a
      cached edge that has more data behind it
    - Build immutable PagingState snapshots

    The page source never writes to the cache store.
    """

    def __init__(self, store: CacheStore, mediator: SyncMediator, config: PagingConfig):
        """
        Initialize page source.

        Args:
            store: Cache store to read from
            mediator: Sync mediator to signal boundary loads to
            config: Paging configuration
        """
        self.store = store
        self.mediator = mediator
        self.config = config

    def load(self, load_key: LoadKey) -> PagingState:
        """
        Read a window and request boundary loads it needs.

        Returns immediately with the current cached content; boundary loads
        complete in the background. Must be called from a running event loop
        when a boundary load may be requested.

        Args:
            load_key: Window to read

        Returns:
            Snapshot of the window
        """
        window = self.store.read_snapshot(load_key.offset, load_key.limit)

        self._request_boundary_loads(load_key, window)

        return self.build_state(window)

    def snapshot(self) -> PagingState:
        """Build a snapshot of every cached item."""
        return self.build_state(self.store.read_snapshot())

    def build_state(self, window: CachedWindow) -> PagingState:
        """
        Build a snapshot from one read of the cache.

        Args:
            window: Cached window with the boundary state it was read with

        Returns:
            Immutable PagingState
        """
        placeholders_before = 0
        placeholders_after = 0
        if self.config.enable_placeholders and window.refreshed:
            placeholders_before = window.items_before + window.offset
            placeholders_after = window.items_after + max(
                window.count - window.offset - len(window.items), 0
            )

        states = self.mediator.states
        return PagingState(
            items=window.items,
            end_reached_start=window.refreshed and window.previous_cursor is None,
            end_reached_end=window.refreshed and window.next_cursor is None,
            is_refreshing=self.mediator.is_refreshing,
            load_error=self.mediator.latest_error(),
            load_states={direction: state.status for direction, state in states.items()},
            epoch=window.epoch or 0,
            placeholders_before=placeholders_before,
            placeholders_after=placeholders_after
        )

    def _request_boundary_loads(self, load_key: LoadKey, window: CachedWindow) -> None:
        """Signal PREPEND / APPEND when the window plus prefetch distance passes a cached edge."""
        distance = self.config.prefetch_distance

        if window.next_cursor is not None and load_key.end + distance > window.count:
            self._request(LoadDirection.APPEND)
        if window.previous_cursor is not None and load_key.offset < distance:
            self._request(LoadDirection.PREPEND)

    def _request(self, direction: LoadDirection) -> None:
        # A failed direction waits for an explicit retry
        if self.mediator.state_of(direction).status == LoadStatus.ERROR:
            logger.debug(f"Not requesting {direction.value}: last attempt failed")
            return
        self.mediator.trigger_load(direction)
