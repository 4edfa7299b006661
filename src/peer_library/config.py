"""Configuration management for the Peer Library server.

Settings are read from environment variables prefixed with ``PEER_LIBRARY_``
(or a local ``.env`` file) and validated with Pydantic v2:

1. Server Metadata - name, version and the identity announced to peers
2. Transport - REST over HTTP, or MCP tools over stdio
3. Peer Network - timeouts for every outbound peer call
4. Lending Policy - default loan period
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Peer Library configuration.

    Every outbound peer call carries one of the explicit timeouts below so a
    hung remote library never blocks local work.
    """

    model_config = SettingsConfigDict(
        env_prefix="PEER_LIBRARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Server Metadata ===

    server_name: str = Field(
        default="peer-library",
        description="Server name used in MCP handshake and logs",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    library_name: str = Field(
        default="My Library",
        description="Name this library announces to peers",
        min_length=1,
        max_length=200,
    )

    public_url: str = Field(
        default="http://localhost:8000",
        description="Base URL peers use to reach this library; peers refuse loopback addresses",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/peer_library.db"),
        description="SQLite database file path",
    )

    # === Transport Configuration ===

    transport: str = Field(
        default="http",
        description="Primary transport: REST over HTTP or MCP over stdio",
        pattern=r"^(http|stdio)$",
    )

    http_host: str = Field(
        default="127.0.0.1",
        description="HTTP server host",
    )

    http_port: int = Field(
        default=8000,
        description="HTTP server port",
        ge=1024,
        le=65535,
    )

    # === Peer Network ===

    peer_timeout: float = Field(
        default=5.0,
        description="Timeout in seconds for direct single-peer calls",
        gt=0,
    )

    search_timeout: float = Field(
        default=2.0,
        description="Per-peer timeout in seconds for federated search",
        gt=0,
    )

    status_update_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for lender-to-borrower status messages",
        gt=0,
    )

    allow_private_peers: bool = Field(
        default=False,
        description="Allow peers on localhost or loopback addresses",
    )

    # === Public Catalog ===

    enable_public_search: bool = Field(
        default=True,
        description="Include the public metadata catalog in federated search",
    )

    public_search_url: str = Field(
        default="https://openlibrary.org/search.json",
        description="Public catalog search endpoint",
    )

    # === Lending Policy ===

    default_loan_days: int = Field(
        default=14,
        description="Loan period applied when a peer request is accepted",
        ge=1,
        le=365,
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Validation Methods ===

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)

        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")

        return abs_path

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Server name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Server name must not exceed 50 characters")
        return v

    @field_validator("public_url")
    @classmethod
    def validate_public_url(cls, v: str) -> str:
        """Peers build endpoint URLs from this value, so drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Public URL must start with http:// or https://")
        return v.rstrip("/")

    # === Computed Properties ===

    @property
    def is_development(self) -> bool:
        return self.debug or self.log_level == "DEBUG"

    @property
    def server_info(self) -> dict[str, str]:
        """Identity returned by the health endpoint and the MCP handshake."""
        return {
            "name": self.server_name,
            "version": self.server_version,
            "library": self.library_name,
            "transport": self.transport,
        }

    def get_database_url(self) -> str:
        return f"sqlite:///{self.database_path}"


# === Global Configuration Instance ===


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the process-wide configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = ServerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
