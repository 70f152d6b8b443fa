"""Test utilities: item factories and a scripted remote source.

Usage:
    from tests.utils import FakeRemoteSource, make_page

    remote = FakeRemoteSource()
    remote.respond(LoadDirection.REFRESH, make_page(0, 20, next_cursor="c1"))
    gate = remote.hold(LoadDirection.APPEND)  # next APPEND fetch waits for gate.set()
"""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from typing import Deque, Dict, List, Optional, Tuple, Union

from pagesync.domain.models.item import Cursor, Item, Page
from pagesync.domain.models.load_state import LoadDirection
from pagesync.domain.ports.remote_source import RemoteSource


def make_items(start: int, count: int, prefix: str = "item") -> Tuple[Item, ...]:
    """Create items whose sort keys run from start to start + count - 1."""
    return tuple(
        Item(id=f"{prefix}-{i}", sort_key=i, payload={"title": f"{prefix} {i}"})
        for i in range(start, start + count)
    )


def make_page(
    start: int,
    count: int,
    previous_cursor: Cursor = None,
    next_cursor: Cursor = None,
    prefix: str = "item",
    **kwargs,
) -> Page:
    """Create a page of consecutive items."""
    return Page(
        items=make_items(start, count, prefix),
        previous_cursor=previous_cursor,
        next_cursor=next_cursor,
        **kwargs,
    )


Response = Union[Page, Exception]


class FakeRemoteSource(RemoteSource):
    """Remote source replaying scripted responses per direction.

    Every call is recorded in ``calls``. A direction without a scripted
    response answers with an empty page.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[LoadDirection, Cursor, int]] = []
        self._responses: Dict[LoadDirection, Deque[Response]] = defaultdict(deque)
        self._gates: Dict[LoadDirection, Deque[asyncio.Event]] = defaultdict(deque)

    def respond(self, direction: LoadDirection, *responses: Response) -> None:
        """Queue responses (pages or exceptions to raise) for a direction."""
        self._responses[direction].extend(responses)

    def hold(self, direction: LoadDirection) -> asyncio.Event:
        """Make the next fetch in a direction wait until the returned event is set."""
        gate = asyncio.Event()
        self._gates[direction].append(gate)
        return gate

    def calls_for(self, direction: LoadDirection) -> List[Tuple[LoadDirection, Cursor, int]]:
        return [call for call in self.calls if call[0] == direction]

    async def fetch(self, direction: LoadDirection, cursor: Cursor, page_size: int) -> Page:
        self.calls.append((direction, cursor, page_size))

        gates = self._gates[direction]
        if gates:
            await gates.popleft().wait()

        responses = self._responses[direction]
        result: Optional[Response] = responses.popleft() if responses else None
        if isinstance(result, Exception):
            raise result
        return result if result is not None else Page(items=())


async def settle() -> None:
    """Let scheduled load tasks run until they block or finish."""
    for _ in range(5):
        await asyncio.sleep(0)
