"""
Peer catalog sync.

A sync downloads the peer's whole catalog first and only then opens a
transaction that swaps the cached rows. If the download fails the previous
cache is left exactly as it was.
"""

import logging

from ..clock import Clock, SystemClock
from ..config import ServerConfig
from ..database.peer_repository import PeerRepository
from ..database.session import DatabaseManager
from ..errors import NotFoundError
from ..models.peer import PeerBook
from .transport import PeerTransport

logger = logging.getLogger(__name__)


class PeerCatalogSync:
    def __init__(
        self,
        db: DatabaseManager,
        transport: PeerTransport,
        config: ServerConfig,
        clock: Clock | None = None,
    ):
        self.db = db
        self.transport = transport
        self.config = config
        self.clock = clock or SystemClock()

    async def sync_peer(self, peer_id: int) -> int:
        """
        Replace the cached catalog of a peer with a fresh download.

        Returns:
            Number of books now cached for the peer

        Raises:
            NotFoundError: If the peer is not registered
            ExternalServiceError: If the catalog could not be fetched
        """
        with self.db.session_scope() as session:
            peer = PeerRepository(session).require(peer_id)

        books = await self.transport.fetch_catalog(peer.url, timeout=self.config.peer_timeout)

        synced_at = self.clock.now()
        with self.db.session_scope() as session:
            peers = PeerRepository(session)
            count = peers.replace_cache(peer_id, books, synced_at)
            peers.touch(peer_id, synced_at)

        logger.info("Synced %d books from peer %s", count, peer.name)
        return count

    async def sync_peer_by_url(self, url: str) -> int:
        with self.db.session_scope() as session:
            peer = PeerRepository(session).find_by_url(url)
        if peer is None:
            raise NotFoundError(f"No peer registered at {url}")
        return await self.sync_peer(peer.id)

    def list_peer_books(self, peer_id: int) -> list[PeerBook]:
        with self.db.session_scope() as session:
            peers = PeerRepository(session)
            peers.require(peer_id)
            return peers.list_cached_books(peer_id)

    def list_peer_books_by_url(self, url: str) -> list[PeerBook]:
        """Cached catalog of the peer registered at ``url``."""
        with self.db.session_scope() as session:
            peers = PeerRepository(session)
            peer = peers.find_by_url(url)
            if peer is None:
                raise NotFoundError(f"No peer registered at {url}")
            return peers.list_cached_books(peer.id)
