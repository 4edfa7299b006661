"""Network Tools - working with peer libraries.

Tools:
- request_book: Ask a peer to lend a book
- update_request_status: Accept, reject or close a peer's request
- sync_peer: Refresh the cached catalog of a peer
- search_network: Search locally, in the public catalog and across peers
"""

import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from ..errors import LibraryError
from ..models.enums import RequestStatus, SearchSource
from ..services.container import get_services
from .responses import format_error_response, format_library_error, format_success, log_operation

logger = logging.getLogger(__name__)


class RequestBookInput(BaseModel):
    """Input schema for asking a peer to lend a book."""

    peer_id: int | None = Field(default=None, description="Registered peer to ask")
    peer_url: str | None = Field(
        default=None,
        description="Base URL of the peer, when its id is not known",
        examples=["https://riverside-books.example.org"],
    )
    title: str = Field(..., min_length=1, examples=["The Dispossessed"])
    isbn: str | None = Field(default=None, examples=["9780061054884"])

    @model_validator(mode="after")
    def require_peer(self) -> "RequestBookInput":
        if self.peer_id is None and not self.peer_url:
            raise ValueError("Either peer_id or peer_url is required")
        return self


class UpdateRequestStatusInput(BaseModel):
    request_id: str = Field(..., min_length=1)
    status: RequestStatus = Field(..., examples=["accepted", "rejected", "returned"])


class SyncPeerInput(BaseModel):
    peer_id: int


class SearchNetworkInput(BaseModel):
    query: str = Field(..., min_length=1, examples=["le guin"])
    sources: list[SearchSource] | None = Field(
        default=None,
        description="Subset of local, public and peers. All sources when omitted",
    )


async def request_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Send a borrow request to a peer.

    If the peer cannot be reached the request is kept as pending and the
    error is reported.
    """
    try:
        params = RequestBookInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid request_book parameters: %s", e)
        return format_error_response("Invalid parameters", str(e))

    lending = get_services().lending
    try:
        if params.peer_id is not None:
            request = await lending.request_book(params.peer_id, params.isbn, params.title)
        else:
            request = await lending.request_book_by_url(params.peer_url, params.isbn, params.title)
    except LibraryError as e:
        return format_library_error("request_book", e)

    log_operation("request_book_success", request_id=request.id, status=request.status.value)
    return format_success(
        f"Request {request.id} for '{request.book_title}' is {request.status.value}",
        {"request": request.model_dump(mode="json")},
    )


async def update_request_status_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = UpdateRequestStatusInput.model_validate(arguments)
    except ValidationError as e:
        return format_error_response("Invalid parameters", str(e))

    try:
        request = await get_services().lending.update_request_status(
            params.request_id, params.status
        )
    except LibraryError as e:
        return format_library_error("update_request_status", e)

    log_operation(
        "update_request_status_success", request_id=request.id, status=params.status.value
    )
    return format_success(
        f"Request {request.id} for '{request.book_title}' is now {request.status.value}",
        {"request": request.model_dump(mode="json")},
    )


async def sync_peer_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = SyncPeerInput.model_validate(arguments)
    except ValidationError as e:
        return format_error_response("Invalid parameters", str(e))

    try:
        count = await get_services().catalog_sync.sync_peer(params.peer_id)
    except LibraryError as e:
        return format_library_error("sync_peer", e)

    return format_success(
        f"Cached {count} book(s) from peer {params.peer_id}",
        {"peer_id": params.peer_id, "synced": count},
    )


async def search_network_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Federated search. Peers that time out are left out of the results."""
    try:
        params = SearchNetworkInput.model_validate(arguments)
    except ValidationError as e:
        return format_error_response("Invalid parameters", str(e))

    sources = set(params.sources) if params.sources else None
    try:
        response = await get_services().search.search(params.query, sources)
    except LibraryError as e:
        return format_library_error("search_network", e)

    lines = [
        f"- {hit.title} ({hit.author or 'unknown author'}) [{hit.source}]"
        for hit in response.books
    ]
    message = f"Found {response.total} result(s) for '{params.query}'"
    if lines:
        message += "\n" + "\n".join(lines)
    return format_success(message, response.model_dump(mode="json"))


request_book = {
    "name": "request_book",
    "description": (
        "Ask a peer library to lend a book. The request is recorded as pending first; "
        "if the peer auto-approves, the borrowed copy is added to the catalog right away."
    ),
    "inputSchema": RequestBookInput.model_json_schema(),
    "handler": request_book_handler,
}

update_request_status = {
    "name": "update_request_status",
    "description": (
        "Decide on a borrow request from a peer: accept (lends an available copy), "
        "reject, or mark an accepted request returned. The peer is notified afterwards."
    ),
    "inputSchema": UpdateRequestStatusInput.model_json_schema(),
    "handler": update_request_status_handler,
}

sync_peer = {
    "name": "sync_peer",
    "description": "Replace the cached catalog of a peer with a fresh copy of its books.",
    "inputSchema": SyncPeerInput.model_json_schema(),
    "handler": sync_peer_handler,
}

search_network = {
    "name": "search_network",
    "description": (
        "Search the local catalog, the public catalog and every peer at once. "
        "Each result is tagged with its source."
    ),
    "inputSchema": SearchNetworkInput.model_json_schema(),
    "handler": search_network_handler,
}
