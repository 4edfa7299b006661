"""
Peer repository - registered remote libraries and their cached catalogs.

The catalog cache is replaced wholesale on every sync: rows from the previous
sync are deleted and the fetched list is inserted fresh. Cache rows carry no
local state, so nothing is lost by dropping them.
"""

import logging
from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import asc, delete, select

from ..database.schema import Peer as PeerDB
from ..database.schema import PeerBook as PeerBookDB
from ..models.book import BookSummary
from ..models.peer import Peer, PeerBook
from .repository import BaseRepository
from .session import safe_query

logger = logging.getLogger(__name__)


def normalize_peer_url(url: str) -> str:
    return url.strip().rstrip("/")


class PeerCreateSchema(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    url: str = Field(..., min_length=1, max_length=500)
    library_uuid: str | None = None
    public_key: str | None = None
    auto_approve: bool = False
    last_seen: datetime | None = None

    @field_validator("url")
    @classmethod
    def clean_url(cls, v: str) -> str:
        return normalize_peer_url(v)


class PeerUpdateSchema(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    public_key: str | None = None
    auto_approve: bool | None = None


class PeerRepository(BaseRepository[PeerDB, PeerCreateSchema, PeerUpdateSchema, Peer]):
    @property
    def model_class(self) -> type[PeerDB]:
        return PeerDB

    @property
    def response_schema(self) -> type[Peer]:
        return Peer

    def list_peers(self) -> list[Peer]:
        results = safe_query(
            self.session,
            lambda s: s.execute(select(PeerDB).order_by(asc(PeerDB.name))).scalars().all(),
            "Failed to list peers",
        )
        return [self._to_response_model(peer) for peer in results]

    def find_by_url(self, url: str) -> Peer | None:
        normalized = normalize_peer_url(url)
        peer = safe_query(
            self.session,
            lambda s: s.execute(select(PeerDB).where(PeerDB.url == normalized))
            .scalars()
            .first(),
            "Failed to get peer by URL",
        )
        return self._to_response_model(peer) if peer else None

    def find_or_create(self, url: str, name: str) -> Peer:
        """
        Return the peer registered at ``url``, registering it if unknown.

        Peers registered this way never auto-approve. Does not commit.
        """
        existing = self.find_by_url(url)
        if existing is not None:
            return existing

        logger.info("Registering new peer %s at %s", name, url)
        return self.create(PeerCreateSchema(name=name, url=url), commit=False)

    def touch(self, peer_id: int, seen_at: datetime) -> None:
        """Record that the peer answered. Does not commit."""
        peer = self._require_db(peer_id)
        peer.last_seen = seen_at
        self.session.flush()

    def replace_cache(
        self, peer_id: int, books: list[BookSummary], synced_at: datetime
    ) -> int:
        """
        Replace every cached catalog row for ``peer_id`` with ``books``.

        Does not commit.

        Returns:
            Number of rows now cached for the peer
        """
        safe_query(
            self.session,
            lambda s: s.execute(delete(PeerBookDB).where(PeerBookDB.peer_id == peer_id)),
            "Failed to clear peer cache",
        )
        self.session.add_all(
            PeerBookDB(
                peer_id=peer_id,
                remote_book_id=book.id,
                title=book.title,
                isbn=book.isbn,
                author=book.author,
                cover_url=book.cover_url,
                summary=book.summary,
                synced_at=synced_at,
            )
            for book in books
        )
        self.session.flush()
        return len(books)

    def list_cached_books(self, peer_id: int) -> list[PeerBook]:
        results = safe_query(
            self.session,
            lambda s: s.execute(
                select(PeerBookDB)
                .where(PeerBookDB.peer_id == peer_id)
                .order_by(asc(PeerBookDB.title), asc(PeerBookDB.id))
            )
            .scalars()
            .all(),
            "Failed to list cached peer books",
        )
        return [PeerBook.model_validate(row, from_attributes=True) for row in results]
