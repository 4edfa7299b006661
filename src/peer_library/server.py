"""Peer Library server entry point.

Two transports share the same services:

- http: the REST API under ``/api``, served by uvicorn. Other libraries talk
  to this instance through it.
- stdio: the MCP tools, for assistant integrations.
"""

import logging
import signal
import sys
from typing import Any

import uvicorn
from fastmcp import FastMCP

from .api import create_app
from .config import ServerConfig, get_config
from .services.container import get_services
from .services.transport import validate_peer_url
from .tools import all_tools

logger = logging.getLogger(__name__)


def configure_logging(config: ServerConfig) -> None:
    logging.basicConfig(
        level=logging.DEBUG if config.is_development else config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def create_mcp_server(config: ServerConfig) -> FastMCP:
    """Build the MCP server and register every tool."""
    mcp = FastMCP(
        name=config.server_name,
        version=config.server_version,
        instructions=(
            "Peer Library - a personal library that lends books to, and borrows books "
            "from, other library instances. Use the tools to manage loans, answer borrow "
            "requests, refresh peer catalogs and search the whole network."
        ),
    )

    for tool in all_tools:
        logger.debug("Registering tool: %s", tool["name"])
        try:
            mcp.tool(name=tool["name"], description=tool["description"])(tool["handler"])
        except Exception:
            logger.exception("Failed to register tool %s", tool["name"])
            raise

    logger.info("Registered %d tools", len(all_tools))
    return mcp


def run_stdio_server(config: ServerConfig) -> None:
    """Run the MCP tools over stdio. Stdout carries the protocol, logs go to stderr."""
    get_services().db.init_database()
    mcp = create_mcp_server(config)

    if not config.debug:
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("MCP server ready on stdio")
    mcp.run(transport="stdio")


def check_public_url(config: ServerConfig) -> bool:
    """
    Warn when ``public_url`` is a loopback address.

    Borrow requests carry this URL, and peers refuse loopback addresses unless
    they allow private peers, so such a library cannot borrow from them.
    """
    try:
        validate_peer_url(config.public_url)
    except ValueError:
        logger.warning(
            "public_url %s is a loopback address; set PEER_LIBRARY_PUBLIC_URL to an "
            "address other libraries can reach",
            config.public_url,
        )
        return False
    return True


def run_http_server(config: ServerConfig) -> None:
    """Serve the REST API until interrupted. uvicorn handles the signals."""
    check_public_url(config)
    server = uvicorn.Server(
        uvicorn.Config(
            create_app(),
            host=config.http_host,
            port=config.http_port,
            log_level=config.log_level.lower(),
        )
    )
    server.run()


def main() -> None:
    """Main entry point for the ``peer-library`` command."""
    config = get_config()
    configure_logging(config)

    logger.info("=" * 60)
    logger.info("Peer Library: %s", config.library_name)
    logger.info("Version: %s", config.server_version)
    logger.info("Transport: %s", config.transport)
    logger.info("Database: %s", config.database_path)
    logger.info("=" * 60)

    try:
        if config.transport == "stdio":
            run_stdio_server(config)
        else:
            run_http_server(config)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start server")
        sys.exit(1)


if __name__ == "__main__":
    main()
