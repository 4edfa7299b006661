"""
Coordinators that sit between the outer surfaces and the Catalog Store.

Each service opens its own database session per operation and talks to other
libraries only through ``PeerTransport``.
"""

from .catalog_sync import PeerCatalogSync
from .container import (
    ServiceContainer,
    build_services,
    get_services,
    reset_services,
    set_services,
)
from .lending import LendingCoordinator
from .peers import PeerDirectory
from .search import FederatedSearch, OpenLibraryCatalog, PublicCatalog
from .transport import PeerTransport, validate_peer_url

__all__ = [
    "FederatedSearch",
    "LendingCoordinator",
    "OpenLibraryCatalog",
    "PeerCatalogSync",
    "PeerDirectory",
    "PeerTransport",
    "PublicCatalog",
    "ServiceContainer",
    "build_services",
    "get_services",
    "reset_services",
    "set_services",
    "validate_peer_url",
]
