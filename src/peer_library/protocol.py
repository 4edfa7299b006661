"""
Borrow-request protocol messages and state transitions.

Two libraries keep their own record of one loan: the lender's incoming
request and the borrower's outgoing request. They agree only by exchanging
the messages below; there is no shared storage and no retry, so a lost
message leaves the two sides divergent until a user acts.

Transitions are pure functions of (current status, message). Side effects
(claiming a copy, creating a placeholder book) live in the lending service.

Incoming (lender side)::

    pending  --accepted-->  accepted  --returned-->  returned
    pending  --rejected-->  rejected

Outgoing (borrower side)::

    pending  --accepted-->  accepted  --returned-->  returned
    pending | accepted  --rejected-->  rejected
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from .errors import InvalidStateError
from .models.enums import RequestStatus


class RequestCreated(BaseModel):
    """Borrower -> lender: please lend me this book."""

    kind: Literal["created"] = "created"
    request_id: str = Field(..., min_length=1, max_length=64)
    from_peer_url: str
    from_peer_name: str
    book_isbn: str | None = None
    book_title: str = Field(..., min_length=1)


class RequestAccepted(BaseModel):
    kind: Literal["accepted"] = "accepted"
    request_id: str


class RequestRejected(BaseModel):
    kind: Literal["rejected"] = "rejected"
    request_id: str


class RequestReturned(BaseModel):
    kind: Literal["returned"] = "returned"
    request_id: str


StatusMessage = Annotated[
    RequestAccepted | RequestRejected | RequestReturned,
    Field(discriminator="kind"),
]

ProtocolMessage = Annotated[
    RequestCreated | RequestAccepted | RequestRejected | RequestReturned,
    Field(discriminator="kind"),
]

protocol_message_adapter: TypeAdapter[ProtocolMessage] = TypeAdapter(ProtocolMessage)


def parse_message(payload: dict) -> ProtocolMessage:
    """Validate a wire payload into its message type (pydantic ValidationError on failure)."""
    return protocol_message_adapter.validate_python(payload)


def status_message(request_id: str, status: RequestStatus) -> StatusMessage:
    """Build the message announcing ``status`` for a request."""
    match status:
        case RequestStatus.ACCEPTED:
            return RequestAccepted(request_id=request_id)
        case RequestStatus.REJECTED:
            return RequestRejected(request_id=request_id)
        case RequestStatus.RETURNED:
            return RequestReturned(request_id=request_id)
        case _:
            raise InvalidStateError(f"No status message for '{status.value}'")


def message_status(message: StatusMessage) -> RequestStatus:
    match message:
        case RequestAccepted():
            return RequestStatus.ACCEPTED
        case RequestRejected():
            return RequestStatus.REJECTED
        case RequestReturned():
            return RequestStatus.RETURNED


def _illegal(side: str, current: RequestStatus, target: RequestStatus) -> InvalidStateError:
    return InvalidStateError(
        f"Cannot move {side} request from '{current.value}' to '{target.value}'"
    )


def next_incoming_status(current: RequestStatus, message: StatusMessage) -> RequestStatus:
    """
    Next status of an incoming request after the lender decides.

    Raises:
        InvalidStateError: If the transition is not allowed, including repeats
    """
    target = message_status(message)
    allowed = {
        (RequestStatus.PENDING, RequestStatus.ACCEPTED),
        (RequestStatus.PENDING, RequestStatus.REJECTED),
        (RequestStatus.ACCEPTED, RequestStatus.RETURNED),
    }
    if (current, target) not in allowed:
        raise _illegal("incoming", current, target)
    return target


def next_outgoing_status(current: RequestStatus, message: StatusMessage) -> RequestStatus:
    """
    Next status of an outgoing request after a message from the lender.

    A rejection is accepted from any state except ``rejected`` and
    ``returned``.

    Raises:
        InvalidStateError: If the transition is not allowed, including repeats
    """
    target = message_status(message)
    match (current, target):
        case (RequestStatus.PENDING, RequestStatus.ACCEPTED):
            return target
        case (RequestStatus.PENDING | RequestStatus.ACCEPTED, RequestStatus.REJECTED):
            return target
        case (RequestStatus.ACCEPTED, RequestStatus.RETURNED):
            return target
        case _:
            raise _illegal("outgoing", current, target)
