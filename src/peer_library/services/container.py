"""
Service wiring.

One ``ServiceContainer`` is built per process and shared by the REST routers
and the MCP tools. Tests build their own with a temporary database, a fixed
clock and a fake transport, then install it with ``set_services``.
"""

import logging

from ..clock import Clock, SystemClock
from ..config import ServerConfig, get_config
from ..database.session import DatabaseManager
from .catalog_sync import PeerCatalogSync
from .lending import LendingCoordinator
from .peers import PeerDirectory
from .search import FederatedSearch, OpenLibraryCatalog, PublicCatalog
from .transport import PeerTransport

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Shared collaborators and the coordinators built on them."""

    def __init__(
        self,
        config: ServerConfig,
        db: DatabaseManager,
        transport: PeerTransport,
        clock: Clock,
        public_catalog: PublicCatalog | None = None,
    ):
        self.config = config
        self.db = db
        self.transport = transport
        self.clock = clock
        self.public_catalog = public_catalog

        self.peers = PeerDirectory(db, transport, config, clock)
        self.lending = LendingCoordinator(db, transport, config, clock)
        self.catalog_sync = PeerCatalogSync(db, transport, config, clock)
        self.search = FederatedSearch(db, transport, config, public_catalog)

    async def aclose(self) -> None:
        await self.transport.close()
        if isinstance(self.public_catalog, OpenLibraryCatalog):
            await self.public_catalog.close()
        self.db.close()
        logger.info("Services shut down")


def build_services(
    config: ServerConfig | None = None,
    db: DatabaseManager | None = None,
    transport: PeerTransport | None = None,
    clock: Clock | None = None,
    public_catalog: PublicCatalog | None = None,
) -> ServiceContainer:
    """Build the container, defaulting every collaborator from configuration."""
    config = config or get_config()
    db = db or DatabaseManager(config.get_database_url())
    transport = transport or PeerTransport(
        allow_private=config.allow_private_peers, default_timeout=config.peer_timeout
    )
    if public_catalog is None and config.enable_public_search:
        public_catalog = OpenLibraryCatalog(config.public_search_url, config.peer_timeout)

    return ServiceContainer(config, db, transport, clock or SystemClock(), public_catalog)


class _ServicesStore:
    """Internal storage for the process-wide container."""

    _instance: ServiceContainer | None = None


def get_services() -> ServiceContainer:
    """Get or build the process-wide service container."""
    if _ServicesStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ServicesStore._instance = build_services()  # type: ignore[reportPrivateUsage]
    return _ServicesStore._instance  # type: ignore[reportPrivateUsage]


def set_services(services: ServiceContainer) -> None:
    _ServicesStore._instance = services  # type: ignore[reportPrivateUsage]


def reset_services() -> None:
    """Forget the process-wide container (useful for testing)."""
    _ServicesStore._instance = None  # type: ignore[reportPrivateUsage]
