"""Tests for the HTTP remote source."""

from __future__ import annotations

import httpx
import pytest

from pagesync.core.exceptions import NetworkError
from pagesync.domain.models.load_state import LoadDirection
from pagesync.infrastructure.remote.http_source import HttpRemoteSource

BASE_URL = "https://api.example.com/v1"


def source_for(handler, **kwargs) -> HttpRemoteSource:
    return HttpRemoteSource(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_fetch_decodes_page() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "items": [
                    {"id": "a1", "sort_key": 10, "title": "First"},
                    {"id": 42, "sort_key": "11", "title": "Second"},
                ],
                "previous_cursor": "p9",
                "next_cursor": "n11",
                "items_after": 120,
            },
        )

    page = await source_for(handler).fetch(LoadDirection.APPEND, "n9", 2)

    assert [item.id for item in page.items] == ["a1", "42"]
    assert page.items[1].sort_key == 11
    assert page.items[0].payload == {"title": "First"}
    assert page.previous_cursor == "p9"
    assert page.next_cursor == "n11"
    assert page.items_before is None
    assert page.items_after == 120

    request = requests[0]
    assert request.url.path == "/v1/items"
    assert request.url.params["direction"] == "append"
    assert request.url.params["cursor"] == "n9"
    assert request.url.params["limit"] == "2"


@pytest.mark.asyncio
async def test_refresh_omits_cursor_and_sends_headers() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"items": [], "next_cursor": None})

    source = source_for(handler, items_path="/feed", headers={"Authorization": "Bearer t"})
    page = await source.fetch(LoadDirection.REFRESH, None, 20)

    assert page.is_empty()
    assert page.next_cursor is None
    assert "cursor" not in requests[0].url.params
    assert requests[0].url.path == "/v1/feed"
    assert requests[0].headers["Authorization"] == "Bearer t"
    assert requests[0].headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_empty_cursor_means_no_more_data() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": [], "previous_cursor": "", "next_cursor": ""})

    page = await source_for(handler).fetch(LoadDirection.REFRESH, None, 20)

    assert page.previous_cursor is None
    assert page.next_cursor is None


@pytest.mark.asyncio
async def test_server_error_raises_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    with pytest.raises(NetworkError) as exc_info:
        await source_for(handler).fetch(LoadDirection.APPEND, "c1", 20)

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_transport_failure_raises_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError) as exc_info:
        await source_for(handler).fetch(LoadDirection.REFRESH, None, 20)

    assert exc_info.value.status_code is None
    assert "ConnectError" in exc_info.value.reason


@pytest.mark.asyncio
async def test_invalid_json_raises_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>not json</html>")

    with pytest.raises(NetworkError):
        await source_for(handler).fetch(LoadDirection.REFRESH, None, 20)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"items": [{"sort_key": 1}]},
        {"items": [{"id": "a", "sort_key": "soon"}]},
        {"items": [], "items_after": -1},
        ["not", "an", "object"],
    ],
)
async def test_malformed_page_raises_network_error(body) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    with pytest.raises(NetworkError):
        await source_for(handler).fetch(LoadDirection.REFRESH, None, 20)
