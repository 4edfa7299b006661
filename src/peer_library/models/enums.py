"""Status vocabularies shared by the database schema and the Pydantic models.

Values are the lowercase strings stored in the database and sent over the wire.
"""

from enum import Enum


class CopyStatus(str, Enum):
    """Lend-ability of a single copy. ``available`` is the only lendable state."""

    AVAILABLE = "available"
    BORROWED = "borrowed"
    LOST = "lost"
    SOLD = "sold"
    WANTED = "wanted"
    TEMPORARY = "temporary"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"
    LOST = "lost"


class RequestStatus(str, Enum):
    """Status of a borrow request, on either side of the exchange."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    RETURNED = "returned"


class ReadingStatus(str, Enum):
    TO_READ = "to_read"
    READING = "reading"
    READ = "read"
    WISHLIST = "wishlist"


class ContactType(str, Enum):
    BORROWER = "borrower"
    LIBRARY = "library"
    USER = "user"


class SaleStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SearchSource(str, Enum):
    LOCAL = "local"
    PUBLIC = "public"
    PEERS = "peers"
