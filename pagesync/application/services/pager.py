"""Pager application service - top-level paged view over a remote collection."""
import asyncio
import logging
from typing import AsyncIterator, List, Optional

from pagesync.application.services.page_source import PageSource
from pagesync.application.services.sync_mediator import SyncMediator
from pagesync.core.config import PagingConfig
from pagesync.core.exceptions import StorageError
from pagesync.domain.models.load_state import LoadDirection, LoadStatus
from pagesync.domain.models.paging_state import LoadKey, PagingState
from pagesync.domain.ports.cache_store import CacheStore
from pagesync.domain.ports.remote_source import RemoteSource

logger = logging.getLogger(__name__)


class Pager:
    """
    High-level orchestration of a live, invalidatable paged view.

    Responsibilities:
    - Own the paging configuration
    - Wire the page source and the sync mediator
    - Publish a new PagingState after every relevant change
    - Consumer entry points: observe, load, load_more, invalidate, retry

    Must be constructed inside a running event loop: construction triggers
    the initial refresh. Until it lands, observers see whatever an earlier
    session left in the cache.
    """

    def __init__(self, config: PagingConfig, store: CacheStore, remote: RemoteSource):
        """
        Initialize pager and start the initial refresh.

        Args:
            config: Immutable paging configuration
            store: Cache store backing the view
            remote: Remote source of the collection
        """
        self.config = config
        self.store = store
        self.mediator = SyncMediator(
            store, remote, config.page_size, initial_load_size=config.initial_load_size
        )
        self.page_source = PageSource(store, self.mediator, config)

        self._closed = False
        self._version = 0
        self._changed = asyncio.Event()
        self._snapshot = self.page_source.snapshot()
        self._remove_listener = self.mediator.add_listener(self._on_change)

        logger.info(
            f"Pager started with page size {config.page_size}, "
            f"{len(self._snapshot)} cached items at epoch {self._snapshot.epoch}"
        )
        self.mediator.trigger_load(LoadDirection.REFRESH)

    @property
    def snapshot(self) -> PagingState:
        """Latest published PagingState."""
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    async def observe(self) -> AsyncIterator[PagingState]:
        """
        Stream PagingState snapshots.

        Starts with the latest snapshot, then yields every newer one.
        Slow consumers skip intermediate snapshots and get the latest.
        Ends when the pager is closed.
        """
        seen_version = -1
        while not self._closed:
            if seen_version != self._version:
                seen_version = self._version
                yield self._snapshot
                continue
            await self._changed.wait()

    def load(self, load_key: LoadKey) -> PagingState:
        """
        Read a window of the cached collection.

        Boundary loads the window needs are started in the background.
        """
        return self.page_source.load(load_key)

    def load_more(self, direction: LoadDirection) -> Optional[asyncio.Task]:
        """
        Request a boundary load.

        Args:
            direction: PREPEND or APPEND

        Returns:
            Task driving the load, or None when nothing was fetched
        """
        if direction == LoadDirection.REFRESH:
            raise ValueError("use invalidate() to refresh")
        return self.mediator.trigger_load(direction)

    def invalidate(self) -> asyncio.Task:
        """
        Re-trigger a refresh, superseding in-flight boundary loads.

        Returns:
            Task driving the refresh
        """
        logger.info("Pager invalidated")
        return self.mediator.invalidate()

    def retry(self) -> List[asyncio.Task]:
        """
        Re-trigger every direction whose last load failed.

        Returns:
            Tasks of the restarted loads
        """
        tasks = []
        for direction, state in self.mediator.states.items():
            if state.status == LoadStatus.ERROR:
                logger.info(f"Retrying {direction.value}")
                task = self.mediator.trigger_load(direction)
                if task is not None:
                    tasks.append(task)
        return tasks

    async def close(self) -> None:
        """Stop loading and end every observer."""
        if self._closed:
            return
        self._closed = True
        self._remove_listener()
        await self.mediator.close()
        self._changed.set()
        logger.info("Pager closed")

    async def __aenter__(self) -> "Pager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _on_change(self) -> None:
        """Rebuild the snapshot after a mediator state change."""
        if self._closed:
            return

        try:
            state = self.page_source.snapshot()
        except StorageError as e:
            logger.warning(f"Keeping last snapshot, cache read failed: {str(e)}")
            return

        if state.epoch < self._snapshot.epoch:
            logger.debug(
                f"Dropping snapshot of epoch {state.epoch}, epoch {self._snapshot.epoch} already published"
            )
            return
        if state == self._snapshot:
            return

        self._snapshot = state
        self._version += 1

        # Wake current observers; later waits use a fresh event
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
