"""Default wiring of a Pager from Settings."""
import logging
from typing import Optional

from pagesync.application.services.pager import Pager
from pagesync.core.config import Settings, settings as default_settings
from pagesync.core.database import build_engine, build_session_factory, init_db
from pagesync.domain.ports.remote_source import RemoteSource
from pagesync.infrastructure.db.repositories.cache_store_repository import SQLAlchemyCacheStore
from pagesync.infrastructure.remote.http_source import HttpRemoteSource

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Install the root logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


async def create_pager(
    settings: Optional[Settings] = None,
    remote: Optional[RemoteSource] = None
) -> Pager:
    """
    Build a Pager backed by the configured database and HTTP remote.

    Args:
        settings: Settings to wire from, defaults to the environment
        remote: Remote source overriding the HTTP one

    Returns:
        Started Pager
    """
    settings = settings or default_settings

    engine = build_engine(settings.database_url, echo=settings.log_level == "DEBUG")
    init_db(engine)
    store = SQLAlchemyCacheStore(build_session_factory(engine), collection=settings.collection)

    if remote is None:
        remote = HttpRemoteSource(
            settings.remote_base_url,
            items_path=settings.remote_items_path,
            timeout=settings.remote_timeout_seconds
        )

    logger.info(f"Paging {settings.collection} cached in {engine.url.render_as_string(hide_password=True)}")
    return Pager(settings.paging_config(), store, remote)
