"""Cache Store implementation using SQLAlchemy."""
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Sequence, Tuple
from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pagesync.core.exceptions import StaleResultDiscarded, StorageError
from pagesync.domain.models.item import Cursor, Item, Page
from pagesync.domain.models.load_state import LoadDirection
from pagesync.domain.models.paging_state import CachedWindow
from pagesync.domain.ports.cache_store import CacheStore
from pagesync.infrastructure.db.models import CachedItemModel, PagingBoundaryModel

logger = logging.getLogger(__name__)

# Dialects offering INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class SQLAlchemyCacheStore(CacheStore):
    """SQLAlchemy implementation of CacheStore, bound to one collection."""

    def __init__(self, session_factory: sessionmaker, collection: str = "default"):
        """
        Initialize store with a session factory.

        Args:
            session_factory: SQLAlchemy session factory
            collection: Name of the cached remote collection
        """
        if not collection:
            raise ValueError("collection cannot be empty")
        self.session_factory = session_factory
        self.collection = collection
        self._write_lock = threading.RLock()
        self._tx_session: Optional[Session] = None

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Open a write transaction, joining the active one if nested."""
        with self._write_lock:
            if self._tx_session is not None:
                yield self._tx_session
                return

            session = self.session_factory()
            self._tx_session = session
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Cache transaction for {self.collection} failed: {str(e)}")
                raise StorageError(str(e)) from e
            except Exception:
                session.rollback()
                raise
            finally:
                self._tx_session = None
                session.close()

    def upsert_page(self, direction: LoadDirection, page: Page, epoch: int) -> None:
        """Insert or replace page items by id and record boundary cursors."""
        with self.transaction() as session:
            boundary = self._check_epoch(session, epoch)

            # Last occurrence of a duplicated id wins
            latest = {item.id: item for item in page.items}
            if latest:
                self._upsert_items(session, list(latest.values()), epoch)

            if boundary is None:
                boundary = PagingBoundaryModel(collection=self.collection, epoch=epoch)
                session.add(boundary)

            if direction in (LoadDirection.REFRESH, LoadDirection.PREPEND):
                boundary.previous_cursor = page.previous_cursor
                boundary.items_before = 0 if page.previous_cursor is None else page.items_before
            if direction in (LoadDirection.REFRESH, LoadDirection.APPEND):
                boundary.next_cursor = page.next_cursor
                boundary.items_after = 0 if page.next_cursor is None else page.items_after
            boundary.epoch = max(boundary.epoch or 0, epoch)
            boundary.updated_at = datetime.utcnow()
            session.flush()

        logger.debug(
            f"Upserted {len(page.items)} items into {self.collection} "
            f"({direction.value}, epoch {epoch})"
        )

    def clear(self, epoch: int) -> None:
        """Remove all items and boundaries of the collection and commit epoch."""
        with self.transaction() as session:
            boundary = self._check_epoch(session, epoch)

            session.execute(
                delete(CachedItemModel).where(CachedItemModel.collection == self.collection)
            )

            if boundary is None:
                boundary = PagingBoundaryModel(collection=self.collection)
                session.add(boundary)
            boundary.previous_cursor = None
            boundary.next_cursor = None
            boundary.items_before = None
            boundary.items_after = None
            boundary.epoch = epoch
            boundary.refreshed_at = datetime.utcnow()
            boundary.updated_at = boundary.refreshed_at
            # Make the pending row visible to writes joining this transaction
            session.flush()

        logger.debug(f"Cleared {self.collection} for epoch {epoch}")

    def read_window(self, offset: int, limit: int) -> Sequence[Item]:
        """Read items of a window in sort key order."""
        offset, limit = self._clip(offset, limit)
        if limit is not None and limit <= 0:
            return []

        with self._read_session() as session:
            return self._select_items(session, offset, limit)

    def read_snapshot(self, offset: int = 0, limit: Optional[int] = None) -> CachedWindow:
        """Read a window, the item count and the boundary row in one session."""
        offset, limit = self._clip(offset, limit)

        # Holding the write lock keeps this store's writers out between the reads
        with self._write_lock, self._read_session() as session:
            boundary = session.get(PagingBoundaryModel, self.collection)
            count = session.execute(self._count_statement()).scalar_one()
            items = self._select_items(session, offset, limit) if limit is None or limit > 0 else []

        if boundary is None:
            return CachedWindow(items=items, offset=offset, count=count)
        return CachedWindow(
            items=items,
            offset=offset,
            count=count,
            epoch=boundary.epoch,
            previous_cursor=boundary.previous_cursor,
            next_cursor=boundary.next_cursor,
            items_before=boundary.items_before or 0,
            items_after=boundary.items_after or 0
        )

    def current_boundary_cursors(self) -> Tuple[Cursor, Cursor]:
        """Get (previous_cursor, next_cursor) of the collection."""
        with self._read_session() as session:
            boundary = session.get(PagingBoundaryModel, self.collection)
            if boundary is None:
                return None, None
            return boundary.previous_cursor, boundary.next_cursor

    def count(self) -> int:
        """Count cached items of the collection."""
        with self._read_session() as session:
            return session.execute(self._count_statement()).scalar_one()

    def stored_epoch(self) -> Optional[int]:
        """Get the committed epoch, None if never refreshed."""
        with self._read_session() as session:
            boundary = session.get(PagingBoundaryModel, self.collection)
            return boundary.epoch if boundary is not None else None

    def placeholder_counts(self) -> Tuple[int, int]:
        """Get (items_before, items_after), 0 where unknown."""
        with self._read_session() as session:
            boundary = session.get(PagingBoundaryModel, self.collection)
            if boundary is None:
                return 0, 0
            return boundary.items_before or 0, boundary.items_after or 0

    @contextmanager
    def _read_session(self) -> Iterator[Session]:
        """Open a short-lived read session, mapping driver failures to StorageError."""
        session = self.session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Cache read for {self.collection} failed: {str(e)}")
            raise StorageError(str(e)) from e
        finally:
            session.close()

    @staticmethod
    def _clip(offset: int, limit: Optional[int]) -> Tuple[int, Optional[int]]:
        """Clip a window starting before the cached start."""
        if offset < 0:
            if limit is not None:
                limit += offset
            offset = 0
        return offset, limit

    def _count_statement(self):
        return select(func.count()).select_from(CachedItemModel).where(
            CachedItemModel.collection == self.collection
        )

    def _select_items(self, session: Session, offset: int, limit: Optional[int]) -> List[Item]:
        """Helper to read items of a window in sort key order."""
        stmt = (
            select(CachedItemModel)
            .where(CachedItemModel.collection == self.collection)
            .order_by(CachedItemModel.sort_key, CachedItemModel.item_id)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        results = session.execute(stmt).scalars().all()
        return [self._to_domain(row) for row in results]

    def _check_epoch(self, session: Session, epoch: int) -> Optional[PagingBoundaryModel]:
        """Reject writes older than the committed epoch."""
        boundary = session.get(PagingBoundaryModel, self.collection)
        if boundary is not None and epoch < boundary.epoch:
            raise StaleResultDiscarded(epoch, boundary.epoch)
        return boundary

    def _upsert_items(self, session: Session, items: List[Item], epoch: int) -> None:
        """Helper to upsert items with the dialect's ON CONFLICT clause."""
        dialect = session.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise StorageError(f"Unsupported cache database dialect: {dialect}")

        now = datetime.utcnow()
        values = [
            {
                'collection': self.collection,
                'item_id': item.id,
                'sort_key': item.sort_key,
                'payload': dict(item.payload),
                'epoch': epoch,
                'created_at': now,
                'updated_at': now
            }
            for item in items
        ]

        stmt = insert(CachedItemModel).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=['collection', 'item_id'],
            set_={
                'sort_key': stmt.excluded.sort_key,
                'payload': stmt.excluded.payload,
                'epoch': stmt.excluded.epoch,
                'updated_at': stmt.excluded.updated_at
            }
        )

        session.execute(stmt)

    @staticmethod
    def _to_domain(row: CachedItemModel) -> Item:
        """Convert SQLAlchemy model to domain value object."""
        return Item(
            id=row.item_id,
            sort_key=row.sort_key,
            payload=dict(row.payload or {})
        )
