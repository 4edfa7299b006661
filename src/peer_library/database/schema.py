"""
SQLAlchemy database schema for the Peer Library.

Tables fall into three groups:

1. Local catalog: libraries, books, copies, contacts, loans, sales
2. Peer cache: peers and the replicated peer_books
3. Borrow protocol: p2p_requests (incoming) and p2p_outgoing_requests

SQLite enforces the foreign keys below once ``PRAGMA foreign_keys=ON`` is set
on each connection (see ``session.py``), so a copy pointing at a missing book
or library is rejected by the store itself.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from ..models.enums import (
    ContactType,
    CopyStatus,
    LoanStatus,
    ReadingStatus,
    RequestStatus,
    SaleStatus,
)

Base = declarative_base()


def _enum_column(enum_cls: type, name: str) -> Enum:
    """Store enums by their lowercase value so raw SQL filters read naturally."""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
    )


class Library(Base):
    """Libraries owned by this instance. Every copy and loan belongs to one."""

    __tablename__ = "libraries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    copies = relationship("Copy", back_populates="library")


class Book(Base):
    """
    Books table - the local catalog.

    Placeholder books created for peer loans carry ``owned=False``.
    """

    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    isbn = Column(String(20), nullable=True)
    author = Column(String(300), nullable=True)
    summary = Column(Text, nullable=True)
    cover_url = Column(String(500), nullable=True)
    publisher = Column(String(200), nullable=True)
    owned = Column(Boolean, nullable=False, default=True)
    reading_status = Column(
        _enum_column(ReadingStatus, "reading_status"),
        nullable=False,
        default=ReadingStatus.TO_READ,
    )

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    copies = relationship(
        "Copy", back_populates="book", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_book_title", "title"),
        Index("idx_book_isbn", "isbn"),
    )


class Copy(Base):
    """
    Copies table - one row per physical or digital instance of a book.

    ``status`` is the only thing consulted to decide whether a copy can be lent.
    """

    __tablename__ = "copies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    library_id = Column(Integer, ForeignKey("libraries.id", ondelete="CASCADE"), nullable=False)
    status = Column(
        _enum_column(CopyStatus, "copy_status"),
        nullable=False,
        default=CopyStatus.AVAILABLE,
    )
    is_temporary = Column(Boolean, nullable=False, default=False)
    acquisition_date = Column(Date, nullable=True)
    price = Column(Float, nullable=True)
    sold_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    book = relationship("Book", back_populates="copies")
    library = relationship("Library", back_populates="copies")

    __table_args__ = (
        Index("idx_copy_book", "book_id"),
        Index("idx_copy_status", "status"),
        CheckConstraint("price IS NULL OR price >= 0", name="check_copy_price_non_negative"),
    )


class Contact(Base):
    """Borrowers, buyers and peer libraries this library deals with."""

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(
        _enum_column(ContactType, "contact_type"),
        nullable=False,
        default=ContactType.BORROWER,
    )
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    library_owner_id = Column(
        Integer, ForeignKey("libraries.id", ondelete="SET NULL"), nullable=True
    )
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_contact_name", "name"),)


class Loan(Base):
    """
    Loans table.

    The partial unique index allows at most one active loan per copy, backing
    the status compare-and-swap done when a loan is opened.
    """

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    copy_id = Column(Integer, ForeignKey("copies.id", ondelete="CASCADE"), nullable=False)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=False)
    loan_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    return_date = Column(DateTime, nullable=True)
    status = Column(
        _enum_column(LoanStatus, "loan_status"),
        nullable=False,
        default=LoanStatus.ACTIVE,
    )
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    copy = relationship("Copy")
    contact = relationship("Contact")

    __table_args__ = (
        Index("idx_loan_contact", "contact_id"),
        Index("idx_loan_status", "status"),
        Index(
            "uq_loan_active_copy",
            "copy_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
        ),
        CheckConstraint("due_date >= loan_date", name="check_loan_due_after_start"),
    )


class Sale(Base):
    """Sales table - selling a copy marks it ``sold`` until the sale is cancelled."""

    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, autoincrement=True)
    copy_id = Column(Integer, ForeignKey("copies.id", ondelete="CASCADE"), nullable=False)
    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=False)
    sale_date = Column(Date, nullable=False)
    sale_price = Column(Float, nullable=False)
    status = Column(
        _enum_column(SaleStatus, "sale_status"),
        nullable=False,
        default=SaleStatus.COMPLETED,
    )
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    copy = relationship("Copy")
    contact = relationship("Contact")

    __table_args__ = (CheckConstraint("sale_price >= 0", name="check_sale_price_non_negative"),)


class Peer(Base):
    """Registered remote libraries."""

    __tablename__ = "peers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    url = Column(String(500), nullable=False, unique=True)
    library_uuid = Column(String(64), nullable=True)
    public_key = Column(Text, nullable=True)
    auto_approve = Column(Boolean, nullable=False, default=False)
    last_seen = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    books = relationship(
        "PeerBook", back_populates="peer", cascade="all, delete-orphan", passive_deletes=True
    )


class PeerBook(Base):
    """Cached copy of one remote catalog entry. Replaced wholesale on every sync."""

    __tablename__ = "peer_books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    peer_id = Column(Integer, ForeignKey("peers.id", ondelete="CASCADE"), nullable=False)
    remote_book_id = Column(Integer, nullable=True)
    title = Column(String(500), nullable=False)
    isbn = Column(String(20), nullable=True)
    author = Column(String(300), nullable=True)
    cover_url = Column(String(500), nullable=True)
    summary = Column(Text, nullable=True)
    synced_at = Column(DateTime, nullable=False)

    peer = relationship("Peer", back_populates="books")

    __table_args__ = (Index("idx_peer_book_peer", "peer_id"),)


class BorrowRequest(Base):
    """Incoming borrow requests: a peer asking this library to lend a book."""

    __tablename__ = "p2p_requests"

    id = Column(String(64), primary_key=True)
    from_peer_id = Column(Integer, ForeignKey("peers.id", ondelete="CASCADE"), nullable=False)
    book_isbn = Column(String(20), nullable=True)
    book_title = Column(String(500), nullable=False)
    status = Column(
        _enum_column(RequestStatus, "request_status"),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    peer = relationship("Peer")

    __table_args__ = (Index("idx_request_status", "status"),)


class OutgoingBorrowRequest(Base):
    """Outgoing borrow requests: this library asking a peer to lend a book."""

    __tablename__ = "p2p_outgoing_requests"

    id = Column(String(64), primary_key=True)
    to_peer_id = Column(Integer, ForeignKey("peers.id", ondelete="CASCADE"), nullable=False)
    book_isbn = Column(String(20), nullable=True)
    book_title = Column(String(500), nullable=False)
    status = Column(
        _enum_column(RequestStatus, "outgoing_request_status"),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    book_id = Column(Integer, ForeignKey("books.id", ondelete="SET NULL"), nullable=True)
    copy_id = Column(Integer, ForeignKey("copies.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    peer = relationship("Peer")

    __table_args__ = (Index("idx_outgoing_request_status", "status"),)
