"""
Borrow-request repositories.

Incoming (``p2p_requests``) and outgoing (``p2p_outgoing_requests``) requests
are separate aggregates. Request IDs are opaque strings chosen by the
borrower so both libraries can refer to the same transaction.
"""

from pydantic import BaseModel, Field
from sqlalchemy import desc, select

from ..database.schema import BorrowRequest as BorrowRequestDB
from ..database.schema import OutgoingBorrowRequest as OutgoingDB
from ..database.schema import Peer as PeerDB
from ..models.enums import RequestStatus
from ..models.loan import UNKNOWN
from ..models.request import (
    BorrowRequest,
    BorrowRequestView,
    OutgoingBorrowRequest,
    OutgoingRequestView,
)
from .repository import BaseRepository
from .session import safe_query


class BorrowRequestCreateSchema(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    from_peer_id: int
    book_isbn: str | None = None
    book_title: str = Field(..., min_length=1)
    status: RequestStatus = RequestStatus.PENDING


class OutgoingRequestCreateSchema(BaseModel):
    id: str = Field(..., min_length=1, max_length=64)
    to_peer_id: int
    book_isbn: str | None = None
    book_title: str = Field(..., min_length=1)
    status: RequestStatus = RequestStatus.PENDING


class RequestStatusUpdate(BaseModel):
    status: RequestStatus


class BorrowRequestRepository(
    BaseRepository[BorrowRequestDB, BorrowRequestCreateSchema, RequestStatusUpdate, BorrowRequest]
):
    """Requests other libraries sent to this one."""

    @property
    def model_class(self) -> type[BorrowRequestDB]:
        return BorrowRequestDB

    @property
    def response_schema(self) -> type[BorrowRequest]:
        return BorrowRequest

    def set_status(
        self, request_id: str, status: RequestStatus, loan_id: int | None = None
    ) -> BorrowRequest:
        """Update status (and the linked loan, when given). Does not commit."""
        request = self._require_db(request_id)
        request.status = status
        if loan_id is not None:
            request.loan_id = loan_id
        self.session.flush()
        return self._to_response_model(request)

    def list_with_peer_names(self) -> list[BorrowRequestView]:
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(BorrowRequestDB, PeerDB.name)
                .outerjoin(PeerDB, BorrowRequestDB.from_peer_id == PeerDB.id)
                .order_by(desc(BorrowRequestDB.created_at), desc(BorrowRequestDB.id))
            ).all(),
            "Failed to list borrow requests",
        )
        return [
            BorrowRequestView.model_validate(request, from_attributes=True).model_copy(
                update={"peer_name": peer_name or UNKNOWN}
            )
            for request, peer_name in rows
        ]


class OutgoingRequestRepository(
    BaseRepository[
        OutgoingDB, OutgoingRequestCreateSchema, RequestStatusUpdate, OutgoingBorrowRequest
    ]
):
    """Requests this library sent to other libraries."""

    @property
    def model_class(self) -> type[OutgoingDB]:
        return OutgoingDB

    @property
    def response_schema(self) -> type[OutgoingBorrowRequest]:
        return OutgoingBorrowRequest

    def set_status(self, request_id: str, status: RequestStatus) -> OutgoingBorrowRequest:
        """Does not commit."""
        request = self._require_db(request_id)
        request.status = status
        self.session.flush()
        return self._to_response_model(request)

    def link_resources(
        self, request_id: str, book_id: int | None, copy_id: int | None
    ) -> OutgoingBorrowRequest:
        """Record (or clear) the placeholder book and temporary copy. Does not commit."""
        request = self._require_db(request_id)
        request.book_id = book_id
        request.copy_id = copy_id
        self.session.flush()
        return self._to_response_model(request)

    def list_with_peer_names(self) -> list[OutgoingRequestView]:
        rows = safe_query(
            self.session,
            lambda s: s.execute(
                select(OutgoingDB, PeerDB.name)
                .outerjoin(PeerDB, OutgoingDB.to_peer_id == PeerDB.id)
                .order_by(desc(OutgoingDB.created_at), desc(OutgoingDB.id))
            ).all(),
            "Failed to list outgoing requests",
        )
        return [
            OutgoingRequestView.model_validate(request, from_attributes=True).model_copy(
                update={"peer_name": peer_name or UNKNOWN}
            )
            for request, peer_name in rows
        ]
