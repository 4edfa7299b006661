"""Tests for server assembly and startup checks."""

import logging

import pytest
from fastmcp import Client

from peer_library.server import check_public_url, create_mcp_server


class TestMcpServer:
    async def test_registers_every_tool(self, test_config):
        mcp = create_mcp_server(test_config)

        async with Client(mcp) as client:
            tools = await client.list_tools()

        assert sorted(tool.name for tool in tools) == [
            "create_loan",
            "list_loans",
            "request_book",
            "return_loan",
            "search_network",
            "sync_peer",
            "update_request_status",
        ]

    def test_server_identity(self, test_config):
        assert create_mcp_server(test_config).name == "test-peer-library"


class TestPublicUrlCheck:
    def test_reachable_url_passes(self, test_config, caplog):
        with caplog.at_level(logging.WARNING):
            assert check_public_url(test_config) is True

        assert caplog.text == ""

    @pytest.mark.parametrize("url", ["http://localhost:8000", "http://127.0.0.1:8000"])
    def test_loopback_url_warns(self, test_config, caplog, url):
        config = test_config.model_copy(update={"public_url": url})

        with caplog.at_level(logging.WARNING):
            assert check_public_url(config) is False

        assert "loopback address" in caplog.text
        assert "PEER_LIBRARY_PUBLIC_URL" in caplog.text
