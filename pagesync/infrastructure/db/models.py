"""SQLAlchemy ORM models for the page cache."""
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, Text, Index, JSON
)

from pagesync.core.database import Base


class CachedItemModel(Base):
    """SQLAlchemy model for the paging_items table."""

    __tablename__ = "paging_items"

    collection = Column(String(255), primary_key=True)
    item_id = Column(String(255), primary_key=True)
    sort_key = Column(BigInteger, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    epoch = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_paging_items_order", "collection", "sort_key", "item_id"),
    )


class PagingBoundaryModel(Base):
    """SQLAlchemy model for the paging_boundaries table, one row per collection."""

    __tablename__ = "paging_boundaries"

    collection = Column(String(255), primary_key=True)
    previous_cursor = Column(Text, nullable=True)
    next_cursor = Column(Text, nullable=True)
    epoch = Column(Integer, nullable=False, default=0)
    items_before = Column(Integer, nullable=True)
    items_after = Column(Integer, nullable=True)

    refreshed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
