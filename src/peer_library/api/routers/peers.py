"""
Peer endpoints.

Two audiences share this router. The local user registers peers, syncs
catalogs and decides on requests. Remote libraries call the protocol
endpoints: ``POST /peers/search``, ``POST /peers/request`` and
``PUT /peers/requests/outgoing/{id}``.

Static paths are declared before ``/{peer_id}`` ones so they are matched first.
"""

from fastapi import APIRouter, HTTPException, Response, status

from ...database.peer_repository import PeerUpdateSchema
from ...database.request_repository import RequestStatusUpdate
from ...models.peer import Peer, PeerBook
from ...models.request import (
    BorrowRequest,
    BorrowRequestView,
    OutgoingBorrowRequest,
    OutgoingRequestView,
    RequestAck,
)
from ...models.search import SearchResponse
from ...protocol import RequestCreated
from ..dependencies import Services
from ..schemas import (
    BookRequestBody,
    PeerRegistration,
    PeerSearchBody,
    ProxySearchBody,
    StatusMessageBody,
    SyncResult,
)

router = APIRouter(prefix="/peers", tags=["Peers"])


@router.get("", response_model=list[Peer])
def list_peers(services: Services):
    return services.peers.list()


@router.post("", response_model=Peer, status_code=status.HTTP_201_CREATED)
async def register_peer(data: PeerRegistration, services: Services):
    return await services.peers.register(
        data.name, data.url, auto_approve=data.auto_approve, public_key=data.public_key
    )


# === Protocol endpoints called by remote libraries ===


@router.post("/search")
def search_catalog(data: PeerSearchBody, services: Services):
    books = services.search.search_local(data.query)
    return {"books": [book.model_dump() for book in books], "total": len(books)}


@router.post("/request", response_model=RequestAck)
async def receive_request(message: RequestCreated, services: Services):
    return await services.lending.handle_message(message)


@router.put("/requests/outgoing/{request_id}", response_model=RequestAck)
async def receive_status_update(request_id: str, body: StatusMessageBody, services: Services):
    message = body.root
    if message.request_id != request_id:
        raise HTTPException(status_code=400, detail="Request id in path and body differ")
    return await services.lending.handle_message(message)


# === Requests ===


@router.get("/requests", response_model=list[BorrowRequestView])
def list_requests(services: Services):
    return services.lending.list_requests()


@router.get("/requests/outgoing", response_model=list[OutgoingRequestView])
def list_outgoing_requests(services: Services):
    return services.lending.list_outgoing_requests()


@router.put("/requests/{request_id}", response_model=BorrowRequest)
async def update_request_status(request_id: str, data: RequestStatusUpdate, services: Services):
    return await services.lending.update_request_status(request_id, data.status)


@router.delete("/requests/outgoing/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_outgoing_request(request_id: str, services: Services):
    services.lending.delete_outgoing_request(request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_request(request_id: str, services: Services):
    services.lending.delete_request(request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/proxy_search", response_model=SearchResponse)
async def proxy_search(data: ProxySearchBody, services: Services):
    hits = await services.search.proxy_search(data.peer_id, data.query)
    return SearchResponse.from_hits(hits)


@router.get("/books", response_model=list[PeerBook])
def list_peer_books_by_url(url: str, services: Services):
    """Cached catalog of a peer looked up by its base URL."""
    return services.catalog_sync.list_peer_books_by_url(url)


# === Single peer ===


@router.get("/{peer_id}", response_model=Peer)
def get_peer(peer_id: int, services: Services):
    return services.peers.get(peer_id)


@router.put("/{peer_id}", response_model=Peer)
def update_peer(peer_id: int, data: PeerUpdateSchema, services: Services):
    return services.peers.update(peer_id, data)


@router.delete("/{peer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_peer(peer_id: int, services: Services):
    services.peers.delete(peer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{peer_id}/request",
    response_model=OutgoingBorrowRequest,
    status_code=status.HTTP_201_CREATED,
)
async def request_book(peer_id: int, data: BookRequestBody, services: Services):
    return await services.lending.request_book(peer_id, data.isbn, data.title)


@router.post("/{peer_id}/sync", response_model=SyncResult)
async def sync_peer(peer_id: int, services: Services):
    count = await services.catalog_sync.sync_peer(peer_id)
    return SyncResult(peer_id=peer_id, synced=count)


@router.get("/{peer_id}/books", response_model=list[PeerBook])
def list_peer_books(peer_id: int, services: Services):
    return services.catalog_sync.list_peer_books(peer_id)

