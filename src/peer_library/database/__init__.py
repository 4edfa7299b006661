"""
Catalog Store for the Peer Library.

SQLAlchemy schema, session management and one repository per aggregate.
Services open a session per operation and compose repository calls inside it.
"""

from .book_repository import BookRepository
from .copy_repository import CopyRepository
from .library_repository import ContactRepository, LibraryRepository
from .loan_repository import LoanFilter, LoanRepository
from .peer_repository import PeerRepository
from .request_repository import BorrowRequestRepository, OutgoingRequestRepository
from .sale_repository import SaleFilter, SaleRepository
from .session import DatabaseManager

__all__ = [
    "BookRepository",
    "BorrowRequestRepository",
    "ContactRepository",
    "CopyRepository",
    "DatabaseManager",
    "LibraryRepository",
    "LoanFilter",
    "LoanRepository",
    "OutgoingRequestRepository",
    "PeerRepository",
    "SaleFilter",
    "SaleRepository",
]
