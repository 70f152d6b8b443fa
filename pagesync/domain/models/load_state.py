"""Load direction and per-direction load state."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LoadDirection(str, Enum):
    """Kinds of load the sync mediator performs."""
    REFRESH = "refresh"
    PREPEND = "prepend"
    APPEND = "append"


class LoadStatus(str, Enum):
    """Status of a load direction."""
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class LoadError:
    """Failure annotation attached to a direction."""
    direction: LoadDirection
    reason: str


@dataclass(frozen=True)
class DirectionState:
    """
    Immutable state slot of one load direction.

    Transitions: IDLE -> LOADING -> {SUCCESS, ERROR, IDLE}. Any non-LOADING
    status accepts a new trigger.
    """
    status: LoadStatus = LoadStatus.IDLE
    error: Optional[LoadError] = None

    @property
    def is_loading(self) -> bool:
        return self.status == LoadStatus.LOADING

    def loading(self) -> "DirectionState":
        """Enter LOADING, keeping any previous error until the load settles."""
        return DirectionState(LoadStatus.LOADING, self.error)

    @staticmethod
    def idle() -> "DirectionState":
        return DirectionState(LoadStatus.IDLE)

    @staticmethod
    def success() -> "DirectionState":
        return DirectionState(LoadStatus.SUCCESS)

    @staticmethod
    def failed(direction: LoadDirection, reason: str) -> "DirectionState":
        return DirectionState(LoadStatus.ERROR, LoadError(direction, reason))
