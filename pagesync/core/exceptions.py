"""Error taxonomy of the paging engine."""
from typing import Optional


class PagingError(Exception):
    """Base class for paging engine errors."""


class NetworkError(PagingError):
    """
    Transport, timeout or server failure reported by a Remote Source.

    Attributes:
        reason: Human readable failure description
        status_code: HTTP status code when the server answered
    """

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class StorageError(PagingError):
    """Cache Store transaction failure; the transaction was rolled back."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class StaleResultDiscarded(PagingError):
    """
    A write carried an epoch older than the committed one.

    Internal bookkeeping outcome; never surfaced to consumers.
    """

    def __init__(self, write_epoch: int, committed_epoch: int):
        super().__init__(
            f"Write for epoch {write_epoch} is stale, committed epoch is {committed_epoch}"
        )
        self.write_epoch = write_epoch
        self.committed_epoch = committed_epoch
