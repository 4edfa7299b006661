"""Tests for the peer directory.

1. Registration validates and normalizes the URL
2. The handshake supplies a missing name and marks the peer as seen
3. An unreachable library is still registered
"""

import logging

import pytest

from peer_library.database.peer_repository import PeerUpdateSchema
from peer_library.errors import DuplicateError, ExternalServiceError, NotFoundError
from peer_library.models import LibraryInfo

RIVERSIDE = "https://riverside.example.org"


class TestRegisterPeer:
    async def test_register_normalizes_url(self, services):
        peer = await services.peers.register("Riverside", "https://riverside.example.org/")

        assert peer.url == RIVERSIDE
        assert peer.auto_approve is False
        assert [p.name for p in services.peers.list()] == ["Riverside"]

    async def test_duplicate_url_is_rejected(self, services):
        await services.peers.register("Riverside", RIVERSIDE)

        with pytest.raises(DuplicateError):
            await services.peers.register("Riverside Again", "https://riverside.example.org/")

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://riverside.example.org",
            "riverside.example.org",
            "http://localhost:8000",
            "http://127.0.0.1",
            "http://[::1]:8000",
        ],
    )
    async def test_unacceptable_urls(self, services, url):
        with pytest.raises(ValueError):
            await services.peers.register("Bad", url)

    async def test_private_peers_allowed_when_configured(self, services):
        services.config.allow_private_peers = True

        peer = await services.peers.register("Dev", "http://localhost:8001")

        assert peer.url == "http://localhost:8001"


class TestHandshake:
    async def test_published_name_is_used_when_none_given(self, services, transport, clock):
        transport.configs[RIVERSIDE] = LibraryInfo(library_name="Riverside Branch")

        peer = await services.peers.register(None, RIVERSIDE)

        assert peer.name == "Riverside Branch"
        assert peer.last_seen == clock.now()

    async def test_given_name_wins_over_published_name(self, services, transport, clock):
        transport.configs[RIVERSIDE] = LibraryInfo(library_name="Riverside Branch")

        peer = await services.peers.register("My Riverside", RIVERSIDE)

        assert peer.name == "My Riverside"
        assert peer.last_seen == clock.now()

    async def test_unreachable_library_is_still_registered(self, services, transport, caplog):
        transport.configs[RIVERSIDE] = ExternalServiceError("connection refused")

        with caplog.at_level(logging.WARNING):
            peer = await services.peers.register("Riverside", RIVERSIDE)

        assert peer.name == "Riverside"
        assert peer.last_seen is None
        assert "did not answer the handshake" in caplog.text

    async def test_unreachable_without_name_gets_placeholder_name(self, services):
        peer = await services.peers.register("  ", RIVERSIDE)

        assert peer.name == "Unknown Library"

    async def test_duplicate_is_rejected_before_contacting_the_library(
        self, services, transport
    ):
        await services.peers.register("Riverside", RIVERSIDE)
        transport.configs[RIVERSIDE] = RuntimeError("should not be called")

        with pytest.raises(DuplicateError):
            await services.peers.register(None, RIVERSIDE)


class TestManagePeers:
    async def test_update_auto_approve(self, services):
        peer = await services.peers.register("Riverside", RIVERSIDE)

        updated = services.peers.update(peer.id, PeerUpdateSchema(auto_approve=True))

        assert updated.auto_approve is True
        assert updated.name == "Riverside"

    async def test_delete(self, services):
        peer = await services.peers.register("Riverside", RIVERSIDE)

        services.peers.delete(peer.id)

        assert services.peers.list() == []
        with pytest.raises(NotFoundError):
            services.peers.get(peer.id)

    def test_delete_missing(self, services):
        with pytest.raises(NotFoundError):
            services.peers.delete(404)
