"""
Peer Transport - the HTTP client libraries use to talk to each other.

Each call goes to the remote library's own REST API and carries an explicit
timeout. Whatever goes wrong on the wire (timeout, refused connection, non-2xx
answer, body that does not parse) is reported as ``ExternalServiceError``.

Redirects are never followed and loopback addresses are refused unless
``allow_private`` is set, so a peer entry cannot be used to reach services on
this host.
"""

import asyncio
import ipaddress
import logging
from typing import Any
from urllib.parse import urlsplit

import httpx
from pydantic import TypeAdapter, ValidationError

from ..errors import ExternalServiceError
from ..models.book import BookSummary
from ..models.enums import RequestStatus
from ..models.peer import LibraryInfo
from ..models.request import RequestAck
from ..protocol import RequestCreated, status_message

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

_book_list_adapter = TypeAdapter(list[BookSummary])


def validate_peer_url(url: str, allow_private: bool = False) -> str:
    """
    Check that ``url`` is an http(s) base URL a peer may live at.

    Returns:
        The URL without a trailing slash

    Raises:
        ValueError: If the scheme is not http/https, the host is missing, or
            the host is loopback while private peers are not allowed
    """
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https"):
        raise ValueError(f"Peer URL must use http or https: {url}")
    host = parts.hostname
    if not host:
        raise ValueError(f"Peer URL has no host: {url}")

    if not allow_private:
        if host == "localhost" or host.endswith(".localhost"):
            raise ValueError(f"Peer URL points at this host: {url}")
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            address = None
        if address is not None and (address.is_loopback or address.is_unspecified):
            raise ValueError(f"Peer URL points at this host: {url}")

    return url.strip().rstrip("/")


class PeerTransport:
    """
    Async HTTP client for peer-to-peer calls.

    The underlying ``httpx.AsyncClient`` is created lazily and reused, or it
    can be injected (tests pass one built on ``httpx.MockTransport``).
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        allow_private: bool = False,
        default_timeout: float = DEFAULT_TIMEOUT,
    ):
        self._client = client
        self._owns_client = client is None
        self.allow_private = allow_private
        self.default_timeout = default_timeout

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            limits = httpx.Limits(
                max_keepalive_connections=20,
                max_connections=100,
                keepalive_expiry=30.0,
            )
            self._client = httpx.AsyncClient(
                limits=limits,
                timeout=httpx.Timeout(self.default_timeout),
                follow_redirects=False,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def _request(
        self,
        method: str,
        peer_url: str,
        path: str,
        timeout: float | None,
        json: Any = None,
    ) -> Any:
        try:
            base = validate_peer_url(peer_url, self.allow_private)
        except ValueError as e:
            raise ExternalServiceError(str(e)) from e

        timeout = timeout or self.default_timeout
        url = f"{base}{path}"
        try:
            response = await asyncio.wait_for(
                self.client.request(method, url, json=json, timeout=timeout),
                timeout=timeout,
            )
            response.raise_for_status()
            return response.json()
        except (TimeoutError, httpx.TimeoutException) as e:
            raise ExternalServiceError(f"Peer {base} timed out after {timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                f"Peer {base} answered {e.response.status_code} for {method} {path}"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Peer {base} unreachable: {e}") from e
        except ValueError as e:
            raise ExternalServiceError(f"Peer {base} sent a malformed response") from e

    def _parse_books(self, peer_url: str, payload: Any) -> list[BookSummary]:
        items = payload.get("books") if isinstance(payload, dict) else payload
        try:
            return _book_list_adapter.validate_python(items)
        except ValidationError as e:
            raise ExternalServiceError(f"Peer {peer_url} sent a malformed book list") from e

    async def send_search(
        self, peer_url: str, query: str, timeout: float | None = None
    ) -> list[BookSummary]:
        """Run ``query`` against the peer's local catalog."""
        payload = await self._request(
            "POST", peer_url, "/api/peers/search", timeout, json={"query": query}
        )
        return self._parse_books(peer_url, payload)

    async def send_borrow_request(
        self, peer_url: str, message: RequestCreated, timeout: float | None = None
    ) -> RequestAck:
        """Deliver a borrow request to the lender and return its acknowledgement."""
        payload = await self._request(
            "POST", peer_url, "/api/peers/request", timeout, json=message.model_dump()
        )
        try:
            return RequestAck.model_validate(payload)
        except ValidationError as e:
            raise ExternalServiceError(f"Peer {peer_url} sent a malformed acknowledgement") from e

    async def send_status_update(
        self,
        peer_url: str,
        request_id: str,
        new_status: RequestStatus,
        timeout: float | None = None,
    ) -> None:
        """Tell the borrower that the lender moved ``request_id`` to ``new_status``."""
        message = status_message(request_id, new_status)
        await self._request(
            "PUT",
            peer_url,
            f"/api/peers/requests/outgoing/{request_id}",
            timeout,
            json=message.model_dump(),
        )

    async def fetch_catalog(
        self, peer_url: str, timeout: float | None = None
    ) -> list[BookSummary]:
        """Download the peer's full catalog."""
        payload = await self._request("GET", peer_url, "/api/books", timeout)
        return self._parse_books(peer_url, payload)

    async def fetch_config(self, peer_url: str, timeout: float | None = None) -> LibraryInfo:
        """Ask a library for its published name and address."""
        payload = await self._request("GET", peer_url, "/api/config", timeout)
        try:
            return LibraryInfo.model_validate(payload)
        except ValidationError as e:
            raise ExternalServiceError(f"Peer {peer_url} sent a malformed config") from e
