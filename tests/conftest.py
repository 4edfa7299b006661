"""Test configuration and fixtures for the Peer Library.

1. Isolated databases - every test gets its own SQLite file with foreign keys on
2. Pinned time - a ``FixedClock`` replaces the wall clock
3. No network - ``FakeTransport`` stands in for ``PeerTransport`` and records
   what would have been sent to other libraries
"""

import asyncio
import os
from collections.abc import Generator
from datetime import date, datetime
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from peer_library.clock import FixedClock
from peer_library.config import ServerConfig, reset_config
from peer_library.database.book_repository import BookCreateSchema, BookRepository
from peer_library.database.copy_repository import CopyRepository
from peer_library.database.library_repository import (
    ContactCreateSchema,
    ContactRepository,
    LibraryCreateSchema,
    LibraryRepository,
)
from peer_library.database.loan_repository import LoanCreateSchema, LoanRepository
from peer_library.database.peer_repository import PeerCreateSchema, PeerRepository
from peer_library.database.session import DatabaseManager
from peer_library.errors import ExternalServiceError
from peer_library.models import (
    Book,
    BookSummary,
    Contact,
    Copy,
    CopyStatus,
    Library,
    LibraryInfo,
    Loan,
    Peer,
    ReadingStatus,
    RequestAck,
    RequestStatus,
)
from peer_library.protocol import RequestCreated
from peer_library.services.container import ServiceContainer, reset_services, set_services

NOW = datetime(2024, 3, 1, 10, 0, 0)


# === Environment ===


@pytest.fixture(autouse=True)
def clean_env() -> Generator[None, None, None]:
    """Run every test without PEER_LIBRARY_* variables or cached singletons."""
    original_env = os.environ.copy()
    for key in list(os.environ.keys()):
        if key.startswith("PEER_LIBRARY_"):
            del os.environ[key]
    reset_config()
    reset_services()

    yield

    os.environ.clear()
    os.environ.update(original_env)
    reset_config()
    reset_services()


# === Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Each test gets its own database file."""
    return tmp_path / "test_library.db"


@pytest.fixture
def test_config(test_db_path: Path) -> ServerConfig:
    return ServerConfig(
        server_name="test-peer-library",
        database_path=test_db_path,
        library_name="Test Library",
        public_url="https://test-library.example.org",
        peer_timeout=1.0,
        search_timeout=0.2,
        status_update_timeout=1.0,
        enable_public_search=False,
        default_loan_days=14,
    )


@pytest.fixture
def db_manager(test_config: ServerConfig) -> Generator[DatabaseManager, None, None]:
    manager = DatabaseManager(test_config.get_database_url())
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    """A session for tests that drive repositories directly."""
    session = db_manager.create_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


# === Fake Peer Transport ===


class FakeTransport:
    """
    In-memory stand-in for ``PeerTransport``.

    Responses are configured per peer URL; an ``Exception`` value is raised
    instead of returned. Everything sent is recorded for assertions.
    """

    def __init__(self):
        self.catalogs: dict[str, list[BookSummary] | Exception] = {}
        self.search_results: dict[str, list[BookSummary] | Exception] = {}
        self.search_delays: dict[str, float] = {}
        self.configs: dict[str, LibraryInfo | Exception] = {}
        self.ack_status = RequestStatus.PENDING
        self.ack_request_id: str | None = None
        self.borrow_error: Exception | None = None
        self.status_error: Exception | None = None

        self.sent_requests: list[tuple[str, RequestCreated]] = []
        self.status_updates: list[tuple[str, str, RequestStatus]] = []
        self.closed = False

    async def fetch_config(self, peer_url: str, timeout: float | None = None) -> LibraryInfo:
        result = self.configs.get(peer_url, ExternalServiceError("connection refused"))
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_catalog(self, peer_url: str, timeout: float | None = None):
        result = self.catalogs.get(peer_url, [])
        if isinstance(result, Exception):
            raise result
        return result

    async def send_search(self, peer_url: str, query: str, timeout: float | None = None):
        delay = self.search_delays.get(peer_url)
        if delay:
            await asyncio.sleep(delay)
        result = self.search_results.get(peer_url, [])
        if isinstance(result, Exception):
            raise result
        return result

    async def send_borrow_request(
        self, peer_url: str, message: RequestCreated, timeout: float | None = None
    ) -> RequestAck:
        self.sent_requests.append((peer_url, message))
        if self.borrow_error is not None:
            raise self.borrow_error
        return RequestAck(
            request_id=self.ack_request_id or message.request_id, status=self.ack_status
        )

    async def send_status_update(
        self,
        peer_url: str,
        request_id: str,
        new_status: RequestStatus,
        timeout: float | None = None,
    ) -> None:
        self.status_updates.append((peer_url, request_id, new_status))
        if self.status_error is not None:
            raise self.status_error

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def services(
    test_config: ServerConfig,
    db_manager: DatabaseManager,
    transport: FakeTransport,
    clock: FixedClock,
) -> Generator[ServiceContainer, None, None]:
    """Service container wired to the test database, installed process-wide."""
    container = ServiceContainer(test_config, db_manager, transport, clock)
    set_services(container)
    yield container
    reset_services()


# === Catalog Factory ===


class CatalogFactory:
    """Creates committed catalog rows for tests."""

    def __init__(self, db: DatabaseManager, clock: FixedClock):
        self.db = db
        self.clock = clock

    def library(self, name: str = "Main Library") -> Library:
        with self.db.session_scope() as session:
            return LibraryRepository(session).create(LibraryCreateSchema(name=name))

    def book(
        self,
        title: str = "The Dispossessed",
        isbn: str | None = "9780061054884",
        author: str | None = "Ursula K. Le Guin",
        owned: bool = True,
        reading_status: ReadingStatus = ReadingStatus.TO_READ,
    ) -> Book:
        with self.db.session_scope() as session:
            return BookRepository(session).create(
                BookCreateSchema(
                    title=title,
                    isbn=isbn,
                    author=author,
                    owned=owned,
                    reading_status=reading_status,
                )
            )

    def copy(
        self,
        book_id: int,
        library_id: int,
        status: CopyStatus = CopyStatus.AVAILABLE,
        is_temporary: bool = False,
    ) -> Copy:
        with self.db.session_scope() as session:
            return CopyRepository(session).create_copy(
                book_id, library_id, initial_status=status, is_temporary=is_temporary
            )

    def contact(self, name: str = "Ada Borrower") -> Contact:
        with self.db.session_scope() as session:
            return ContactRepository(session).create(ContactCreateSchema(name=name))

    def peer(
        self,
        name: str = "Riverside",
        url: str = "https://riverside.example.org",
        auto_approve: bool = False,
    ) -> Peer:
        with self.db.session_scope() as session:
            return PeerRepository(session).create(
                PeerCreateSchema(name=name, url=url, auto_approve=auto_approve)
            )

    def loan(self, copy_id: int, contact_id: int, library_id: int) -> Loan:
        with self.db.session_scope() as session:
            return LoanRepository(session, self.clock).create_loan(
                LoanCreateSchema(
                    copy_id=copy_id,
                    contact_id=contact_id,
                    library_id=library_id,
                    loan_date=date(2024, 3, 1),
                    due_date=date(2024, 3, 15),
                )
            )

    def copy_status(self, copy_id: int) -> CopyStatus | None:
        with self.db.session_scope() as session:
            return CopyRepository(session).current_status(copy_id)

    def get_book(self, book_id: int) -> Book | None:
        with self.db.session_scope() as session:
            return BookRepository(session).get_by_id(book_id)

    def get_copy(self, copy_id: int) -> Copy | None:
        with self.db.session_scope() as session:
            return CopyRepository(session).get_by_id(copy_id)


@pytest.fixture
def catalog(db_manager: DatabaseManager, clock: FixedClock) -> CatalogFactory:
    return CatalogFactory(db_manager, clock)


@pytest.fixture
def shelf(catalog: CatalogFactory):
    """A library with one owned book, one available copy and one borrower."""
    library = catalog.library()
    book = catalog.book()
    copy = catalog.copy(book.id, library.id)
    contact = catalog.contact()
    return library, book, copy, contact
