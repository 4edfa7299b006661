"""
Peer Library models.

Pydantic models returned by repositories and serialized by the REST and MCP
surfaces:

- Book / BookSummary: local catalog entries and the shape peers exchange
- Copy: one lendable instance of a book
- Loan: a copy lent to a contact
- Peer / PeerBook: remote libraries and their cached catalogs
- LibraryInfo: the name and address a library publishes to peers
- BorrowRequest / OutgoingBorrowRequest: the two sides of a peer loan
"""

from .book import Book, BookSummary
from .contact import Contact, Library
from .copy import Copy
from .enums import (
    ContactType,
    CopyStatus,
    LoanStatus,
    ReadingStatus,
    RequestStatus,
    SaleStatus,
    SearchSource,
)
from .loan import UNKNOWN, Loan, LoanWithDetails
from .peer import LibraryInfo, Peer, PeerBook
from .request import (
    BorrowRequest,
    BorrowRequestView,
    OutgoingBorrowRequest,
    OutgoingRequestView,
    RequestAck,
)
from .sale import Sale, SaleWithDetails
from .search import SearchHit, SearchResponse

__all__ = [
    "UNKNOWN",
    "Book",
    "BookSummary",
    "BorrowRequest",
    "BorrowRequestView",
    "Contact",
    "ContactType",
    "Copy",
    "CopyStatus",
    "Library",
    "LibraryInfo",
    "Loan",
    "LoanStatus",
    "LoanWithDetails",
    "OutgoingBorrowRequest",
    "OutgoingRequestView",
    "Peer",
    "PeerBook",
    "ReadingStatus",
    "RequestAck",
    "RequestStatus",
    "Sale",
    "SaleStatus",
    "SaleWithDetails",
    "SearchHit",
    "SearchResponse",
    "SearchSource",
]
