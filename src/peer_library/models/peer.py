"""
Peer models.

A Peer is a remote library instance reachable over HTTP. Its catalog is
replicated into ``PeerBook`` rows, which are a disposable cache: every sync
replaces them wholesale.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Peer(BaseModel):
    """A registered remote library."""

    id: int
    name: str = Field(..., min_length=1, max_length=200)
    url: str = Field(..., description="Base URL of the remote library's REST API")
    library_uuid: str | None = None
    public_key: str | None = None
    auto_approve: bool = Field(
        default=False,
        description="Accept incoming borrow requests from this peer without review",
    )
    last_seen: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PeerBook(BaseModel):
    """One cached entry of a peer's catalog."""

    id: int
    peer_id: int
    remote_book_id: int | None = None
    title: str
    isbn: str | None = None
    author: str | None = None
    cover_url: str | None = None
    summary: str | None = None
    synced_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LibraryInfo(BaseModel):
    """What a library publishes at ``GET /api/config`` for peers to discover."""

    library_name: str = Field(..., min_length=1)
    public_url: str | None = None
    version: str | None = None

    model_config = ConfigDict(extra="ignore")
