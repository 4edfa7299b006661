"""Request bodies accepted by the REST API that have no repository counterpart."""

from pydantic import BaseModel, Field, RootModel

from ..models.book import Book
from ..models.enums import CopyStatus
from ..protocol import StatusMessage


class CopyStatusUpdate(BaseModel):
    status: CopyStatus


class PeerRegistration(BaseModel):
    """A peer to register. Without a name the library's published name is used."""

    name: str | None = Field(None, max_length=200)
    url: str = Field(..., min_length=1, max_length=500, examples=["https://books.example.org"])
    auto_approve: bool = False
    public_key: str | None = None


class BookRequestBody(BaseModel):
    """What to ask a peer for."""

    title: str = Field(..., min_length=1)
    isbn: str | None = None


class PeerSearchBody(BaseModel):
    query: str = ""


class StatusMessageBody(RootModel[StatusMessage]):
    """A lender's accepted, rejected or returned message, as sent on the wire."""


class ProxySearchBody(BaseModel):
    peer_id: int
    query: str


class BookListResponse(BaseModel):
    """Catalog listing, also the payload peers download on sync."""

    books: list[Book]
    total: int


class SyncResult(BaseModel):
    peer_id: int
    synced: int
