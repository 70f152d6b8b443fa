"""Pytest configuration and shared fixtures.

Organization:
    - Database Fixtures: in-memory SQLite engine, session factory, cache store
    - Remote Fixtures: scripted fake remote source
    - Configuration Fixtures: paging configuration
"""

from __future__ import annotations

import pytest

from pagesync.core.config import PagingConfig
from pagesync.core.database import build_engine, build_session_factory, init_db
from pagesync.infrastructure.db.repositories.cache_store_repository import SQLAlchemyCacheStore
from tests.utils import FakeRemoteSource


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine with the cache schema."""
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory bound to the test engine."""
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory):
    """Cache store for the default test collection."""
    return SQLAlchemyCacheStore(session_factory, collection="articles")


# ============================================================================
# Remote Fixtures
# ============================================================================


@pytest.fixture
def remote():
    """Scripted remote source; unscripted fetches return empty pages."""
    return FakeRemoteSource()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def config():
    """Paging configuration used by most pager tests."""
    return PagingConfig(page_size=20, prefetch_distance=5, enable_placeholders=True)
