"""HTTP Remote Source - Anti-Corruption Layer over a paged JSON API."""
import logging
from typing import Any, Dict, Optional
import httpx

from pagesync.core.exceptions import NetworkError
from pagesync.domain.models.item import Cursor, Item, Page
from pagesync.domain.models.load_state import LoadDirection
from pagesync.domain.ports.remote_source import RemoteSource

logger = logging.getLogger(__name__)


class HttpRemoteSource(RemoteSource):
    """
    Remote Source over an HTTP(S) JSON endpoint.

    Responsibilities:
    - Hide the wire format of the remote collection
    - Map every transport or decoding failure to NetworkError
    - Return plain domain Pages

    Wire objects MUST NOT leak outside this class.
    """

    # Keys of an item object that are not part of its payload
    RESERVED_ITEM_KEYS = ("id", "sort_key")

    def __init__(
        self,
        base_url: str,
        items_path: str = "/items",
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize remote source.

        Args:
            base_url: Base URL of the remote API
            items_path: Path of the paged items endpoint
            timeout: Request timeout in seconds
            headers: Extra request headers, e.g. authorization
            transport: Optional httpx transport (mocking, custom TLS)
        """
        self.base_url = base_url.rstrip("/")
        self.items_path = items_path
        self.timeout = timeout
        self.headers = {"Accept": "application/json", **(headers or {})}
        self.transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.items_path}"

    async def fetch(self, direction: LoadDirection, cursor: Cursor, page_size: int) -> Page:
        """
        Fetch one page of the remote collection.

        Args:
            direction: Load direction
            cursor: Cursor to load from, None for a refresh
            page_size: Maximum number of items

        Returns:
            Decoded page

        Raises:
            NetworkError: If the request fails or the response is malformed
        """
        params: Dict[str, Any] = {"direction": direction.value, "limit": page_size}
        if cursor is not None:
            params["cursor"] = cursor

        data = await self._execute_request(params)

        try:
            return self._parse_page(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed page from {self.url}: {str(e)}")
            raise NetworkError(f"Malformed page response: {str(e)}") from e

    async def _execute_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute the page request.

        Args:
            params: Query parameters

        Returns:
            Decoded JSON body

        Raises:
            NetworkError: If the API request fails
        """
        logger.debug(f"GET {self.url} {params}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.url, params=params, headers=self.headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise NetworkError(
                f"Remote returned HTTP {e.response.status_code}",
                status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{type(e).__name__}: {str(e)}") from e
        except ValueError as e:
            raise NetworkError(f"Response is not valid JSON: {str(e)}") from e

    @classmethod
    def _parse_page(cls, data: Dict[str, Any]) -> Page:
        """
        Parse a page response.

        Args:
            data: Raw page object from the API

        Returns:
            Page value object
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected an object, got {type(data).__name__}")

        items = [cls._parse_item(raw) for raw in data.get("items") or []]

        return Page(
            items=tuple(items),
            previous_cursor=cls._parse_cursor(data.get("previous_cursor")),
            next_cursor=cls._parse_cursor(data.get("next_cursor")),
            items_before=cls._parse_count(data.get("items_before")),
            items_after=cls._parse_count(data.get("items_after"))
        )

    @classmethod
    def _parse_item(cls, data: Dict[str, Any]) -> Item:
        """Parse one item object; remaining keys become the payload."""
        payload = {k: v for k, v in data.items() if k not in cls.RESERVED_ITEM_KEYS}
        return Item(
            id=str(data["id"]),
            sort_key=int(data["sort_key"]),
            payload=payload
        )

    @staticmethod
    def _parse_cursor(value: Any) -> Cursor:
        # Empty strings are treated like null: no further data
        if value is None or value == "":
            return None
        return str(value)

    @staticmethod
    def _parse_count(value: Any) -> Optional[int]:
        if value is None:
            return None
        count = int(value)
        if count < 0:
            raise ValueError(f"negative item count {count}")
        return count
