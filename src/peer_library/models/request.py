"""
Borrow-request models.

One real-world loan between two libraries is recorded twice: the lender keeps
a ``BorrowRequest`` (incoming) and the borrower keeps an
``OutgoingBorrowRequest``. The rows never share storage; they converge only
through explicit status messages.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import RequestStatus
from .loan import UNKNOWN


class BorrowRequest(BaseModel):
    """A remote library asking this library to lend a book."""

    id: str = Field(..., description="Opaque request identifier shared by both libraries")
    from_peer_id: int
    book_isbn: str | None = None
    book_title: str
    status: RequestStatus = RequestStatus.PENDING
    loan_id: int | None = Field(None, description="Loan opened when the request was accepted")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class OutgoingBorrowRequest(BaseModel):
    """This library asking a remote library to lend a book."""

    id: str = Field(..., description="Opaque request identifier shared by both libraries")
    to_peer_id: int
    book_isbn: str | None = None
    book_title: str
    status: RequestStatus = RequestStatus.PENDING
    book_id: int | None = Field(None, description="Placeholder book once accepted")
    copy_id: int | None = Field(None, description="Temporary copy once accepted")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BorrowRequestView(BorrowRequest):
    peer_name: str = UNKNOWN


class OutgoingRequestView(OutgoingBorrowRequest):
    peer_name: str = UNKNOWN


class RequestAck(BaseModel):
    """Lender's reply to a delivered borrow request."""

    request_id: str
    status: RequestStatus

    model_config = ConfigDict(extra="ignore")
