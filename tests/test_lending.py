"""
Tests for the borrow-request protocol.

Lender side: receiving requests, auto-approval, the librarian's decisions
and the notification sent back to the borrower.

Borrower side: sending requests, the placeholder book and temporary copy
created on acceptance, and their cleanup on return.
"""

import logging

import pytest

from peer_library.database.book_repository import BookRepository
from peer_library.database.copy_repository import CopyRepository
from peer_library.database.library_repository import ContactRepository
from peer_library.database.loan_repository import LoanRepository
from peer_library.database.peer_repository import PeerRepository
from peer_library.errors import (
    DuplicateError,
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
)
from peer_library.models import (
    ContactType,
    CopyStatus,
    LoanStatus,
    ReadingStatus,
    RequestStatus,
)
from peer_library.protocol import RequestAccepted, RequestCreated, RequestReturned

ISBN = "9780061054884"
TITLE = "The Dispossessed"


# === Lender side ===


class TestReceiveRequest:
    async def test_request_from_regular_peer_waits_for_review(self, services, shelf, catalog):
        _, _, copy, _ = shelf
        peer = catalog.peer()

        request = await services.lending.receive_request(peer.id, ISBN, TITLE)

        assert request.status == RequestStatus.PENDING
        assert request.loan_id is None
        assert catalog.copy_status(copy.id) == CopyStatus.AVAILABLE

    async def test_auto_approve_lends_a_copy(self, services, shelf, catalog):
        _, _, copy, _ = shelf
        peer = catalog.peer(auto_approve=True)

        request = await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        assert request.id == "r-1"
        assert request.status == RequestStatus.ACCEPTED
        assert request.loan_id is not None
        assert catalog.copy_status(copy.id) == CopyStatus.BORROWED

        with services.db.session_scope() as session:
            loan = LoanRepository(session).require(request.loan_id)
            contact = ContactRepository(session).require(loan.contact_id)
        assert loan.status == LoanStatus.ACTIVE
        assert loan.copy_id == copy.id
        assert contact.type == ContactType.LIBRARY
        assert contact.name == peer.name

    async def test_auto_approve_without_available_copy(self, services, catalog):
        library = catalog.library()
        book = catalog.book()
        copy = catalog.copy(book.id, library.id, status=CopyStatus.BORROWED)
        peer = catalog.peer(auto_approve=True)

        with pytest.raises(InvalidStateError, match="No available copy"):
            await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        assert services.lending.list_requests() == []
        assert catalog.copy_status(copy.id) == CopyStatus.BORROWED

    async def test_unknown_book_with_auto_approve(self, services, catalog):
        peer = catalog.peer(auto_approve=True)

        with pytest.raises(InvalidStateError, match="No available copy"):
            await services.lending.receive_request(peer.id, None, "No Such Book")

    async def test_missing_peer(self, services):
        with pytest.raises(NotFoundError):
            await services.lending.receive_request(404, ISBN, TITLE)

    async def test_duplicate_request_id(self, services, catalog):
        peer = catalog.peer()
        await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        with pytest.raises(DuplicateError):
            await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

    async def test_request_from_unknown_library_registers_it(self, services):
        message = RequestCreated(
            request_id="r-7",
            from_peer_url="https://hillside.example.org/",
            from_peer_name="Hillside",
            book_isbn=ISBN,
            book_title=TITLE,
        )

        request = await services.lending.receive_request_from(message)

        assert request.status == RequestStatus.PENDING
        with services.db.session_scope() as session:
            peer = PeerRepository(session).find_by_url("https://hillside.example.org")
        assert peer is not None
        assert peer.auto_approve is False
        assert request.from_peer_id == peer.id

    async def test_request_from_loopback_is_refused(self, services):
        message = RequestCreated(
            request_id="r-8",
            from_peer_url="http://127.0.0.1:8000",
            from_peer_name="Sneaky",
            book_title=TITLE,
        )

        with pytest.raises(ValueError):
            await services.lending.receive_request_from(message)


class TestUpdateRequestStatus:
    async def test_accept_opens_loan_and_notifies(self, services, transport, shelf, catalog):
        _, _, copy, _ = shelf
        peer = catalog.peer()
        await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        request = await services.lending.update_request_status("r-1", RequestStatus.ACCEPTED)

        assert request.status == RequestStatus.ACCEPTED
        assert request.loan_id is not None
        assert catalog.copy_status(copy.id) == CopyStatus.BORROWED
        assert transport.status_updates == [(peer.url, "r-1", RequestStatus.ACCEPTED)]

    async def test_accept_without_available_copy(self, services, transport, shelf, catalog):
        library, _, copy, contact = shelf
        catalog.loan(copy.id, contact.id, library.id)
        peer = catalog.peer()
        await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        with pytest.raises(InvalidStateError, match="No available copy"):
            await services.lending.update_request_status("r-1", RequestStatus.ACCEPTED)

        assert services.lending.list_requests()[0].status == RequestStatus.PENDING
        assert transport.status_updates == []

    async def test_reject_leaves_copies_alone(self, services, transport, shelf, catalog):
        _, _, copy, _ = shelf
        peer = catalog.peer()
        await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        request = await services.lending.update_request_status("r-1", RequestStatus.REJECTED)

        assert request.status == RequestStatus.REJECTED
        assert catalog.copy_status(copy.id) == CopyStatus.AVAILABLE
        assert transport.status_updates == [(peer.url, "r-1", RequestStatus.REJECTED)]

    async def test_returned_closes_the_loan(self, services, shelf, catalog):
        _, _, copy, _ = shelf
        peer = catalog.peer(auto_approve=True)
        accepted = await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        request = await services.lending.update_request_status("r-1", RequestStatus.RETURNED)

        assert request.status == RequestStatus.RETURNED
        assert catalog.copy_status(copy.id) == CopyStatus.AVAILABLE
        with services.db.session_scope() as session:
            loan = LoanRepository(session).require(accepted.loan_id)
        assert loan.status == LoanStatus.RETURNED

    async def test_repeated_decision_is_rejected(self, services, shelf, catalog):
        peer = catalog.peer()
        await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")
        await services.lending.update_request_status("r-1", RequestStatus.ACCEPTED)

        with pytest.raises(InvalidStateError):
            await services.lending.update_request_status("r-1", RequestStatus.ACCEPTED)

    async def test_pending_cannot_be_returned(self, services, catalog):
        peer = catalog.peer()
        await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        with pytest.raises(InvalidStateError):
            await services.lending.update_request_status("r-1", RequestStatus.RETURNED)

    async def test_missing_request(self, services):
        with pytest.raises(NotFoundError):
            await services.lending.update_request_status("nope", RequestStatus.ACCEPTED)

    async def test_failed_notification_keeps_local_state(
        self, services, transport, shelf, catalog, caplog
    ):
        _, _, copy, _ = shelf
        peer = catalog.peer()
        transport.status_error = ExternalServiceError("connection refused")
        await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        with caplog.at_level(logging.WARNING):
            request = await services.lending.update_request_status("r-1", RequestStatus.ACCEPTED)

        assert request.status == RequestStatus.ACCEPTED
        assert catalog.copy_status(copy.id) == CopyStatus.BORROWED
        assert "Could not notify" in caplog.text

    async def test_list_and_delete_requests(self, services, catalog):
        peer = catalog.peer(name="Riverside")
        await services.lending.receive_request(peer.id, ISBN, TITLE, request_id="r-1")

        listed = services.lending.list_requests()
        assert [(r.id, r.peer_name) for r in listed] == [("r-1", "Riverside")]

        services.lending.delete_request("r-1")
        assert services.lending.list_requests() == []

        with pytest.raises(NotFoundError):
            services.lending.delete_request("r-1")


# === Borrower side ===


class TestRequestBook:
    async def test_request_is_sent_and_stays_pending(self, services, transport, catalog):
        peer = catalog.peer()

        request = await services.lending.request_book(peer.id, ISBN, TITLE)

        assert request.status == RequestStatus.PENDING
        assert len(transport.sent_requests) == 1
        sent_to, message = transport.sent_requests[0]
        assert sent_to == peer.url
        assert message.request_id == request.id
        assert message.from_peer_url == "https://test-library.example.org"
        assert message.from_peer_name == "Test Library"

    async def test_delivery_failure_keeps_request_pending(self, services, transport, catalog):
        peer = catalog.peer()
        transport.borrow_error = ExternalServiceError("timed out")

        with pytest.raises(ExternalServiceError):
            await services.lending.request_book(peer.id, ISBN, TITLE)

        outgoing = services.lending.list_outgoing_requests()
        assert len(outgoing) == 1
        assert outgoing[0].status == RequestStatus.PENDING
        assert outgoing[0].peer_name == peer.name

    async def test_auto_approved_request_creates_borrowed_copy(
        self, services, transport, catalog
    ):
        peer = catalog.peer()
        transport.ack_status = RequestStatus.ACCEPTED

        request = await services.lending.request_book(peer.id, ISBN, TITLE)

        assert request.status == RequestStatus.ACCEPTED
        assert request.book_id is not None
        assert request.copy_id is not None

    async def test_ack_for_another_request_is_not_applied(self, services, transport, catalog):
        peer = catalog.peer()
        transport.ack_status = RequestStatus.ACCEPTED
        transport.ack_request_id = "someone-elses-request"

        with pytest.raises(ExternalServiceError, match="expected"):
            await services.lending.request_book(peer.id, ISBN, TITLE)

        [outgoing] = services.lending.list_outgoing_requests()
        assert outgoing.status == RequestStatus.PENDING
        assert outgoing.copy_id is None

    async def test_missing_peer(self, services, transport):
        with pytest.raises(NotFoundError):
            await services.lending.request_book(404, ISBN, TITLE)
        assert transport.sent_requests == []

    async def test_request_by_url(self, services, transport, catalog):
        peer = catalog.peer(url="https://riverside.example.org")

        request = await services.lending.request_book_by_url(
            "https://riverside.example.org/", ISBN, TITLE
        )

        assert request.to_peer_id == peer.id

    async def test_request_by_unknown_url(self, services):
        with pytest.raises(NotFoundError):
            await services.lending.request_book_by_url("https://nowhere.example.org", ISBN, TITLE)


class TestOutgoingStatus:
    async def _pending_request(self, services, catalog) -> str:
        peer = catalog.peer()
        request = await services.lending.request_book(peer.id, ISBN, TITLE)
        return request.id

    async def test_accept_creates_placeholder_and_temporary_copy(self, services, catalog):
        request_id = await self._pending_request(services, catalog)

        request = await services.lending.update_outgoing_status(request_id, RequestStatus.ACCEPTED)

        book = catalog.get_book(request.book_id)
        copy = catalog.get_copy(request.copy_id)
        assert book.isbn == ISBN
        assert book.owned is False
        assert book.reading_status == ReadingStatus.TO_READ
        assert copy.is_temporary is True
        assert copy.status == CopyStatus.BORROWED
        assert copy.book_id == book.id

    async def test_accept_reuses_existing_book(self, services, catalog):
        owned = catalog.book(isbn=ISBN, owned=True)
        request_id = await self._pending_request(services, catalog)

        request = await services.lending.update_outgoing_status(request_id, RequestStatus.ACCEPTED)

        assert request.book_id == owned.id
        assert catalog.get_book(owned.id).owned is True

    async def test_reject_changes_nothing_else(self, services, catalog):
        request_id = await self._pending_request(services, catalog)

        request = await services.lending.update_outgoing_status(request_id, RequestStatus.REJECTED)

        assert request.status == RequestStatus.REJECTED
        assert request.book_id is None
        with services.db.session_scope() as session:
            assert BookRepository(session).get_by_isbn(ISBN) is None

    async def test_return_deletes_placeholder(self, services, catalog):
        request_id = await self._pending_request(services, catalog)
        accepted = await services.lending.update_outgoing_status(
            request_id, RequestStatus.ACCEPTED
        )

        returned = await services.lending.update_outgoing_status(
            request_id, RequestStatus.RETURNED
        )

        assert returned.status == RequestStatus.RETURNED
        assert returned.book_id is None
        assert returned.copy_id is None
        assert catalog.get_copy(accepted.copy_id) is None
        assert catalog.get_book(accepted.book_id) is None

    async def test_return_deletes_unowned_book_being_read(self, services, catalog):
        reading = catalog.book(isbn=ISBN, owned=False, reading_status=ReadingStatus.READING)
        request_id = await self._pending_request(services, catalog)
        accepted = await services.lending.update_outgoing_status(
            request_id, RequestStatus.ACCEPTED
        )
        assert accepted.book_id == reading.id

        await services.lending.update_outgoing_status(request_id, RequestStatus.RETURNED)

        assert catalog.get_copy(accepted.copy_id) is None
        assert catalog.get_book(reading.id) is None

    async def test_return_keeps_owned_book(self, services, catalog):
        owned = catalog.book(isbn=ISBN, owned=True)
        request_id = await self._pending_request(services, catalog)
        accepted = await services.lending.update_outgoing_status(
            request_id, RequestStatus.ACCEPTED
        )

        returned = await services.lending.update_outgoing_status(
            request_id, RequestStatus.RETURNED
        )

        assert catalog.get_copy(accepted.copy_id) is None
        assert catalog.get_book(owned.id) is not None
        assert returned.book_id == owned.id

    async def test_return_keeps_wishlisted_book(self, services, catalog):
        wished = catalog.book(isbn=ISBN, owned=False, reading_status=ReadingStatus.WISHLIST)
        request_id = await self._pending_request(services, catalog)
        accepted = await services.lending.update_outgoing_status(
            request_id, RequestStatus.ACCEPTED
        )

        await services.lending.update_outgoing_status(request_id, RequestStatus.RETURNED)

        assert catalog.get_copy(accepted.copy_id) is None
        assert catalog.get_book(wished.id) is not None

    async def test_return_keeps_book_with_other_copies(self, services, catalog):
        library = catalog.library()
        book = catalog.book(isbn=ISBN, owned=False)
        other_copy = catalog.copy(book.id, library.id)
        request_id = await self._pending_request(services, catalog)
        accepted = await services.lending.update_outgoing_status(
            request_id, RequestStatus.ACCEPTED
        )

        await services.lending.update_outgoing_status(request_id, RequestStatus.RETURNED)

        assert catalog.get_copy(accepted.copy_id) is None
        assert catalog.get_book(book.id) is not None
        with services.db.session_scope() as session:
            remaining = CopyRepository(session).list_for_book(book.id)
        assert [c.id for c in remaining] == [other_copy.id]

    async def test_second_return_is_rejected(self, services, catalog):
        request_id = await self._pending_request(services, catalog)
        await services.lending.update_outgoing_status(request_id, RequestStatus.ACCEPTED)
        await services.lending.update_outgoing_status(request_id, RequestStatus.RETURNED)

        with pytest.raises(InvalidStateError):
            await services.lending.update_outgoing_status(request_id, RequestStatus.RETURNED)

    async def test_pending_cannot_be_returned(self, services, catalog):
        request_id = await self._pending_request(services, catalog)

        with pytest.raises(InvalidStateError):
            await services.lending.update_outgoing_status(request_id, RequestStatus.RETURNED)

    async def test_delete_outgoing_request(self, services, catalog):
        request_id = await self._pending_request(services, catalog)

        services.lending.delete_outgoing_request(request_id)

        assert services.lending.list_outgoing_requests() == []


class TestHandleMessage:
    async def test_created_message_is_acknowledged(self, services, catalog):
        catalog.peer(url="https://hillside.example.org")

        ack = await services.lending.handle_message(
            RequestCreated(
                request_id="r-3",
                from_peer_url="https://hillside.example.org",
                from_peer_name="Hillside",
                book_isbn=ISBN,
                book_title=TITLE,
            )
        )

        assert ack.request_id == "r-3"
        assert ack.status == RequestStatus.PENDING

    async def test_status_messages_update_outgoing_requests(self, services, catalog):
        peer = catalog.peer()
        request = await services.lending.request_book(peer.id, ISBN, TITLE)

        accepted = await services.lending.handle_message(RequestAccepted(request_id=request.id))
        returned = await services.lending.handle_message(RequestReturned(request_id=request.id))

        assert accepted.status == RequestStatus.ACCEPTED
        assert returned.status == RequestStatus.RETURNED
