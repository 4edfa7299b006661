"""
Peer directory - registering and configuring remote libraries.

Registration shakes hands with the remote library first: its ``/api/config``
supplies a name when the user gave none, and a successful answer counts as
the peer being seen. An unreachable library is still registered.
"""

import logging

from ..clock import Clock, SystemClock
from ..config import ServerConfig
from ..database.peer_repository import PeerCreateSchema, PeerRepository, PeerUpdateSchema
from ..database.session import DatabaseManager
from ..errors import DuplicateError, ExternalServiceError
from ..models.peer import LibraryInfo, Peer
from .transport import PeerTransport, validate_peer_url

logger = logging.getLogger(__name__)

UNKNOWN_LIBRARY = "Unknown Library"


class PeerDirectory:
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

    async def register(
        self,
        name: str | None,
        url: str,
        auto_approve: bool = False,
        public_key: str | None = None,
    ) -> Peer:
        """
        Register a remote library.

        Args:
            name: Display name; the library's own published name when empty
            url: Base URL of the library's REST API
            auto_approve: Accept its borrow requests without review
            public_key: Optional key the library identifies itself with

        Raises:
            ValueError: If the URL is not an acceptable peer address
            DuplicateError: If a peer is already registered at the URL
        """
        url = validate_peer_url(url, self.config.allow_private_peers)
        with self.db.session_scope() as session:
            if PeerRepository(session).find_by_url(url) is not None:
                raise DuplicateError(f"A peer is already registered at {url}")

        info = await self._handshake(url)
        name = (name or "").strip() or (info.library_name if info else UNKNOWN_LIBRARY)

        with self.db.session_scope() as session:
            peer = PeerRepository(session).create(
                PeerCreateSchema(
                    name=name,
                    url=url,
                    auto_approve=auto_approve,
                    public_key=public_key,
                    last_seen=self.clock.now() if info else None,
                ),
                commit=False,
            )
        logger.info("Registered peer %s at %s (auto_approve=%s)", name, url, auto_approve)
        return peer

    async def _handshake(self, url: str) -> LibraryInfo | None:
        try:
            return await self.transport.fetch_config(url, timeout=self.config.peer_timeout)
        except ExternalServiceError as e:
            logger.warning("Peer at %s did not answer the handshake: %s", url, e)
            return None

    def update(self, peer_id: int, data: PeerUpdateSchema) -> Peer:
        with self.db.session_scope() as session:
            return PeerRepository(session).update(peer_id, data, commit=False)

    def delete(self, peer_id: int) -> None:
        """Remove a peer together with its cached catalog and requests."""
        with self.db.session_scope() as session:
            PeerRepository(session).delete(peer_id, commit=False)
        logger.info("Removed peer %s", peer_id)

    def get(self, peer_id: int) -> Peer:
        with self.db.session_scope() as session:
            return PeerRepository(session).require(peer_id)

    def list(self) -> list[Peer]:
        with self.db.session_scope() as session:
            return PeerRepository(session).list_peers()
