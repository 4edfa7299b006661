"""Tests for borrow-request messages and status transitions."""

import pytest
from pydantic import ValidationError

from peer_library.errors import InvalidStateError
from peer_library.models import RequestStatus
from peer_library.protocol import (
    RequestAccepted,
    RequestCreated,
    RequestRejected,
    RequestReturned,
    message_status,
    next_incoming_status,
    next_outgoing_status,
    parse_message,
    status_message,
)

PENDING = RequestStatus.PENDING
ACCEPTED = RequestStatus.ACCEPTED
REJECTED = RequestStatus.REJECTED
RETURNED = RequestStatus.RETURNED


class TestMessages:
    def test_parse_created(self):
        message = parse_message(
            {
                "kind": "created",
                "request_id": "req-1",
                "from_peer_url": "https://borrower.example.org",
                "from_peer_name": "Borrower",
                "book_isbn": "9780061054884",
                "book_title": "The Dispossessed",
            }
        )

        assert isinstance(message, RequestCreated)
        assert message.book_title == "The Dispossessed"

    @pytest.mark.parametrize(
        ("kind", "cls"),
        [
            ("accepted", RequestAccepted),
            ("rejected", RequestRejected),
            ("returned", RequestReturned),
        ],
    )
    def test_parse_status_messages(self, kind, cls):
        message = parse_message({"kind": kind, "request_id": "req-1"})

        assert isinstance(message, cls)
        assert message_status(message) == RequestStatus(kind)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            parse_message({"kind": "cancelled", "request_id": "req-1"})

    def test_status_message_round_trip(self):
        message = status_message("req-9", RETURNED)

        assert parse_message(message.model_dump()) == message

    def test_no_message_for_pending(self):
        with pytest.raises(InvalidStateError):
            status_message("req-1", PENDING)


class TestIncomingTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [(PENDING, ACCEPTED), (PENDING, REJECTED), (ACCEPTED, RETURNED)],
    )
    def test_allowed(self, current, target):
        assert next_incoming_status(current, status_message("r", target)) == target

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (ACCEPTED, ACCEPTED),
            (REJECTED, REJECTED),
            (RETURNED, RETURNED),
            (PENDING, RETURNED),
            (ACCEPTED, REJECTED),
            (REJECTED, ACCEPTED),
            (RETURNED, ACCEPTED),
        ],
    )
    def test_illegal(self, current, target):
        with pytest.raises(InvalidStateError, match="Cannot move incoming request"):
            next_incoming_status(current, status_message("r", target))


class TestOutgoingTransitions:
    @pytest.mark.parametrize(
        ("current", "target"),
        [(PENDING, ACCEPTED), (PENDING, REJECTED), (ACCEPTED, REJECTED), (ACCEPTED, RETURNED)],
    )
    def test_allowed(self, current, target):
        assert next_outgoing_status(current, status_message("r", target)) == target

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (ACCEPTED, ACCEPTED),
            (RETURNED, RETURNED),
            (REJECTED, REJECTED),
            (PENDING, RETURNED),
            (RETURNED, ACCEPTED),
            (REJECTED, ACCEPTED),
        ],
    )
    def test_illegal(self, current, target):
        with pytest.raises(InvalidStateError, match="Cannot move outgoing request"):
            next_outgoing_status(current, status_message("r", target))
