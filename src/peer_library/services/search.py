"""
Federated search across the local catalog, a public catalog and every peer.

Peers are queried concurrently, each bounded by ``search_timeout``. A peer
that times out or fails is logged and left out; it never fails the search.
Results are concatenated in source order (local, public, then peers) and
tagged so the caller can tell where each hit came from.
"""

import asyncio
import logging
from typing import Any, Protocol

import httpx

from ..config import ServerConfig
from ..database.book_repository import BookRepository
from ..database.peer_repository import PeerRepository
from ..database.session import DatabaseManager
from ..errors import ExternalServiceError
from ..models.book import BookSummary
from ..models.enums import SearchSource
from ..models.peer import Peer
from ..models.search import LOCAL_SOURCE, PUBLIC_SOURCE, SearchHit, SearchResponse, peer_source
from .transport import PeerTransport

logger = logging.getLogger(__name__)

ALL_SOURCES = frozenset(SearchSource)

PUBLIC_RESULT_LIMIT = 20
OPEN_LIBRARY_COVER_URL = "https://covers.openlibrary.org/b/id/{cover_id}-M.jpg"


class PublicCatalog(Protocol):
    """A public book metadata source."""

    async def search(self, query: str) -> list[BookSummary]: ...


class OpenLibraryCatalog:
    """Public catalog backed by the Open Library search API."""

    def __init__(
        self,
        search_url: str,
        timeout: float,
        client: httpx.AsyncClient | None = None,
    ):
        self.search_url = search_url
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
        self._client = None

    async def search(self, query: str) -> list[BookSummary]:
        """
        Raises:
            ExternalServiceError: If the catalog cannot be reached or answers badly
        """
        try:
            response = await self.client.get(
                self.search_url,
                params={"q": query, "limit": PUBLIC_RESULT_LIMIT},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Public catalog search failed: {e}") from e
        except ValueError as e:
            raise ExternalServiceError("Public catalog sent a malformed response") from e

        return [self._to_summary(doc) for doc in payload.get("docs", []) if doc.get("title")]

    @staticmethod
    def _to_summary(doc: dict[str, Any]) -> BookSummary:
        authors = doc.get("author_name") or []
        isbns = doc.get("isbn") or []
        cover_id = doc.get("cover_i")
        return BookSummary(
            title=doc["title"],
            author=", ".join(authors) or None,
            isbn=isbns[0] if isbns else None,
            cover_url=OPEN_LIBRARY_COVER_URL.format(cover_id=cover_id) if cover_id else None,
        )


class FederatedSearch:
    def __init__(
        self,
        db: DatabaseManager,
        transport: PeerTransport,
        config: ServerConfig,
        public_catalog: PublicCatalog | None = None,
    ):
        self.db = db
        self.transport = transport
        self.config = config
        self.public_catalog = public_catalog

    async def search(
        self, query: str, sources: set[SearchSource] | None = None
    ) -> SearchResponse:
        """
        Search every requested source and merge the hits.

        Args:
            query: Free text matched against title, author and ISBN
            sources: Subset of local/public/peers; all of them when None

        Returns:
            Hits from every source that answered in time
        """
        sources = ALL_SOURCES if sources is None else sources
        hits: list[SearchHit] = []

        if SearchSource.LOCAL in sources:
            hits.extend(self._tag(book, LOCAL_SOURCE) for book in self.search_local(query))

        remote = []
        if SearchSource.PUBLIC in sources:
            remote.append(self._search_public(query))
        if SearchSource.PEERS in sources:
            remote.append(self._search_peers(query))

        # Public and peers run together; gather keeps them in that order.
        for source_hits in await asyncio.gather(*remote):
            hits.extend(source_hits)

        return SearchResponse.from_hits(hits)

    def search_local(self, query: str) -> list[BookSummary]:
        """Match the local catalog. Remote peers reach this through ``POST /peers/search``."""
        with self.db.session_scope() as session:
            books = BookRepository(session).search(query)
        return [BookSummary.model_validate(book, from_attributes=True) for book in books]

    async def proxy_search(self, peer_id: int, query: str) -> list[SearchHit]:
        """
        Search a single peer on behalf of the user. Failures are not swallowed.

        Raises:
            NotFoundError: If the peer is not registered
            ExternalServiceError: If the peer cannot be searched
        """
        with self.db.session_scope() as session:
            peer = PeerRepository(session).require(peer_id)
        books = await self.transport.send_search(
            peer.url, query, timeout=self.config.peer_timeout
        )
        return [self._tag(book, peer_source(peer.name), peer.id) for book in books]

    async def _search_public(self, query: str) -> list[SearchHit]:
        if self.public_catalog is None or not query.strip():
            return []
        try:
            books = await asyncio.wait_for(
                self.public_catalog.search(query), timeout=self.config.peer_timeout
            )
        except (TimeoutError, ExternalServiceError) as e:
            logger.warning("Public catalog search for '%s' dropped: %s", query, e)
            return []
        return [self._tag(book, PUBLIC_SOURCE) for book in books]

    async def _search_peers(self, query: str) -> list[SearchHit]:
        with self.db.session_scope() as session:
            peers = PeerRepository(session).list_peers()
        if not peers:
            return []

        results = await asyncio.gather(*(self._search_peer(peer, query) for peer in peers))
        return [hit for peer_hits in results for hit in peer_hits]

    async def _search_peer(self, peer: Peer, query: str) -> list[SearchHit]:
        timeout = self.config.search_timeout
        try:
            books = await asyncio.wait_for(
                self.transport.send_search(peer.url, query, timeout=timeout), timeout=timeout
            )
        except (TimeoutError, ExternalServiceError) as e:
            logger.warning("Peer %s dropped from search: %s", peer.name, e)
            return []
        return [self._tag(book, peer_source(peer.name), peer.id) for book in books]

    @staticmethod
    def _tag(book: BookSummary, source: str, peer_id: int | None = None) -> SearchHit:
        return SearchHit(**book.model_dump(), source=source, peer_id=peer_id)
