"""Remote Source port interface."""
from abc import ABC, abstractmethod

from pagesync.domain.models.item import Cursor, Page
from pagesync.domain.models.load_state import LoadDirection


class RemoteSource(ABC):
    """
    Interface of the remote collection.

    Stateless request/response; calls must be safe to retry.
    """

    @abstractmethod
    async def fetch(self, direction: LoadDirection, cursor: Cursor, page_size: int) -> Page:
        """
        Fetch one page of the remote collection.

        Args:
            direction: Load direction the page is requested for
            cursor: Position to load from, None for a refresh
            page_size: Maximum number of items to return

        Returns:
            Decoded page

        Raises:
            NetworkError: On transport, timeout or server failure
        """
        pass
