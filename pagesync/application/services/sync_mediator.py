"""Sync mediator application service - reconciles remote pages into the cache."""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

from pagesync.core.exceptions import NetworkError, StaleResultDiscarded, StorageError
from pagesync.domain.models.item import Cursor, Page
from pagesync.domain.models.load_state import DirectionState, LoadDirection, LoadError
from pagesync.domain.ports.cache_store import CacheStore
from pagesync.domain.ports.remote_source import RemoteSource

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class SyncMediator:
    """
    Application service coordinating REFRESH / PREPEND / APPEND loads.

    Responsibilities:
    - Fetch pages from the remote source
    - Reconcile them into the cache store (the only writer)
    - At most one load in flight per direction
    - End-of-data detection
    - Discard results of superseded epochs

    The mediator never hands data to callers; it mutates the cache store and
    notifies listeners, after which readers observe the change.
    """

    def __init__(
        self,
        store: CacheStore,
        remote: RemoteSource,
        page_size: int,
        initial_load_size: Optional[int] = None
    ):
        """
        Initialize mediator.

        Args:
            store: Cache store to reconcile into
            remote: Remote source to fetch from
            page_size: Items requested per boundary load
            initial_load_size: Items requested per refresh, defaults to page_size
        """
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.store = store
        self.remote = remote
        self.page_size = page_size
        self.initial_load_size = initial_load_size or page_size

        # Resume from a persisted cache so epochs keep increasing across sessions
        self._epoch = store.stored_epoch() or 0
        self._states: Dict[LoadDirection, DirectionState] = {
            direction: DirectionState.idle() for direction in LoadDirection
        }
        self._tasks: Dict[LoadDirection, asyncio.Task] = {}
        self._listeners: List[Listener] = []

    @property
    def epoch(self) -> int:
        """Current sync epoch, bumped on every refresh trigger."""
        return self._epoch

    @property
    def is_refreshing(self) -> bool:
        return self._states[LoadDirection.REFRESH].is_loading

    @property
    def states(self) -> Mapping[LoadDirection, DirectionState]:
        return dict(self._states)

    def state_of(self, direction: LoadDirection) -> DirectionState:
        return self._states[direction]

    def latest_error(self) -> Optional[LoadError]:
        """Get the error of the first failed direction, REFRESH first."""
        for direction in LoadDirection:
            state = self._states[direction]
            if state.error is not None:
                return state.error
        return None

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked after every state change.

        Returns:
            Function removing the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def trigger_load(self, direction: LoadDirection) -> Optional[asyncio.Task]:
        """
        Start a load in a direction.

        Must be called from a running event loop.

        Args:
            direction: Direction to load

        Returns:
            Task driving the load (the in-flight one when joining), or None
            when nothing was fetched (end of data, refresh pending, or no
            refreshed data to page from)
        """
        in_flight = self._tasks.get(direction)
        if in_flight is not None and not in_flight.done():
            logger.debug(f"{direction.value} already loading, joining in-flight load")
            return in_flight

        if direction == LoadDirection.REFRESH:
            self._epoch += 1
            logger.info(f"Refresh triggered, epoch {self._epoch}")
            return self._start(direction, self._run_refresh)

        if self.is_refreshing:
            logger.debug(f"Skipping {direction.value}: refresh in progress")
            return None

        if self.store.stored_epoch() is None:
            logger.debug(f"Skipping {direction.value}: cache was never refreshed")
            return None

        cursor = self._boundary_cursor(direction)
        if cursor is None:
            logger.debug(f"End of data reached for {direction.value}, no fetch")
            self._set_state(direction, DirectionState.success())
            return None

        epoch = self._epoch
        return self._start(direction, lambda: self._run_boundary_load(direction, cursor, epoch))

    def invalidate(self) -> asyncio.Task:
        """
        Supersede all cached data with a new refresh.

        If a refresh is already in flight its result is discarded on arrival
        and the same load fetches again under the new epoch.

        Returns:
            Task driving the refresh
        """
        in_flight = self._tasks.get(LoadDirection.REFRESH)
        if in_flight is not None and not in_flight.done():
            self._epoch += 1
            logger.info(f"Invalidated during refresh, epoch {self._epoch}")
            return in_flight
        return self.trigger_load(LoadDirection.REFRESH)

    async def load(self, direction: LoadDirection) -> DirectionState:
        """
        Trigger a load and wait for it to settle.

        Cancelling the caller does not cancel the shared load.

        Returns:
            State of the direction after the load
        """
        task = self.trigger_load(direction)
        if task is not None:
            await asyncio.shield(task)
        return self._states[direction]

    async def close(self) -> None:
        """Cancel in-flight loads and drop listeners."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Load task ended with {type(e).__name__} during close")
        self._tasks.clear()
        self._listeners.clear()
        # Tasks cancelled before their first step never run _drive
        for direction, state in self._states.items():
            if state.is_loading:
                self._states[direction] = DirectionState.idle()

    def _start(self, direction: LoadDirection, run: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """
        Enter LOADING and schedule a load.

        Args:
            direction: Direction being loaded
            run: Factory of the load coroutine, called once the task starts
        """
        self._set_state(direction, self._states[direction].loading())
        task = asyncio.get_running_loop().create_task(self._drive(direction, run))
        self._tasks[direction] = task
        return task

    async def _drive(self, direction: LoadDirection, run: Callable[[], Awaitable[None]]) -> None:
        """Run a load, never leaving the direction in LOADING."""
        try:
            await run()
        finally:
            if self._states[direction].is_loading:
                self._set_state(direction, DirectionState.idle())

    async def _run_refresh(self) -> None:
        """
        Fetch the first page and replace the cache with it.

        Loops while the epoch moves during the fetch, so only the newest
        refresh is ever written.
        """
        direction = LoadDirection.REFRESH

        while True:
            epoch = self._epoch
            try:
                page = await self.remote.fetch(direction, None, self.initial_load_size)

                if epoch != self._epoch:
                    logger.info(
                        f"Discarding refresh result of epoch {epoch}, superseded by epoch {self._epoch}"
                    )
                    continue

                with self.store.transaction():
                    self.store.clear(epoch)
                    self.store.upsert_page(direction, page, epoch)

            except StaleResultDiscarded as e:
                # Another writer committed a newer epoch to the same collection
                logger.info(f"Discarding refresh result: {str(e)}")
                self._epoch = max(self._epoch, e.committed_epoch)
                self._set_state(direction, DirectionState.idle())
                return
            except (NetworkError, StorageError) as e:
                if epoch != self._epoch:
                    logger.info(f"Superseded refresh of epoch {epoch} failed, retrying under epoch {self._epoch}")
                    continue
                logger.warning(f"Refresh failed for epoch {epoch}: {str(e)}")
                self._set_state(direction, DirectionState.failed(direction, str(e)))
                return
            except Exception as e:
                logger.error(f"Refresh crashed for epoch {epoch}: {str(e)}")
                self._set_state(direction, DirectionState.failed(direction, str(e)))
                raise

            break

        logger.info(f"Refresh committed {len(page.items)} items for epoch {epoch}")

        # Boundary state from earlier epochs no longer describes the cache
        for boundary_direction in (LoadDirection.PREPEND, LoadDirection.APPEND):
            if not self._states[boundary_direction].is_loading:
                self._states[boundary_direction] = DirectionState.idle()
        self._set_state(direction, DirectionState.success())

    async def _run_boundary_load(self, direction: LoadDirection, cursor: Cursor, epoch: int) -> None:
        """
        Fetch the page past a boundary and merge it into the cache.

        Args:
            direction: PREPEND or APPEND
            cursor: Boundary cursor to load from
            epoch: Epoch the cursor belongs to
        """
        try:
            page = await self.remote.fetch(direction, cursor, self.page_size)

            if epoch != self._epoch:
                raise StaleResultDiscarded(epoch, self._epoch)

            if page.is_empty():
                logger.info(f"Empty {direction.value} page, end of data reached")
                page = Page(items=())
            elif self._returned_cursor(direction, page) == cursor:
                logger.warning(
                    f"{direction.value} returned the requested cursor {cursor!r} again, "
                    f"treating as end of data"
                )
                page = Page(items=page.items)

            self.store.upsert_page(direction, page, epoch)

        except StaleResultDiscarded as e:
            logger.info(f"Discarding {direction.value} result: {str(e)}")
            self._set_state(direction, DirectionState.idle())
            return
        except (NetworkError, StorageError) as e:
            if epoch != self._epoch:
                logger.info(f"Ignoring {direction.value} failure of superseded epoch {epoch}")
                self._set_state(direction, DirectionState.idle())
                return
            logger.warning(f"{direction.value} failed: {str(e)}")
            self._set_state(direction, DirectionState.failed(direction, str(e)))
            return
        except Exception as e:
            logger.error(f"{direction.value} crashed: {str(e)}")
            self._set_state(direction, DirectionState.failed(direction, str(e)))
            raise

        logger.debug(f"{direction.value} merged {len(page.items)} items for epoch {epoch}")
        self._set_state(direction, DirectionState.success())

    def _boundary_cursor(self, direction: LoadDirection) -> Cursor:
        previous_cursor, next_cursor = self.store.current_boundary_cursors()
        return previous_cursor if direction == LoadDirection.PREPEND else next_cursor

    @staticmethod
    def _returned_cursor(direction: LoadDirection, page: Page) -> Cursor:
        return page.previous_cursor if direction == LoadDirection.PREPEND else page.next_cursor

    def _set_state(self, direction: LoadDirection, state: DirectionState) -> None:
        """
        Record a transition and notify listeners.

        A failing listener is logged and does not affect the load or the
        other listeners.
        """
        previous = self._states[direction]
        self._states[direction] = state
        if previous.status != state.status:
            logger.debug(f"{direction.value}: {previous.status.value} -> {state.status.value}")
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.error(
                    f"Listener failed after {direction.value} -> {state.status.value}: {str(e)}",
                    exc_info=True
                )


