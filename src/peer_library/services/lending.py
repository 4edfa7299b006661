"""
Lending coordinator - the borrow-request protocol between libraries.

Lender side:

1. ``receive_request``: a peer asks to borrow a book. Peers with
   ``auto_approve`` are answered immediately, but only if a copy can actually
   be lent: the copy is claimed and a loan opened in the same transaction as
   the request row, or nothing is written at all.
2. ``update_request_status``: the librarian accepts, rejects or marks the
   loan returned, then the borrower is told about it.

Borrower side:

3. ``request_book``: record an outgoing request, then deliver it.
4. ``update_outgoing_status``: react to the lender's decision. Acceptance
   creates a placeholder book and a temporary copy for the item in hand;
   return deletes the temporary copy and, if nothing else justifies it, the
   placeholder book.

Database work happens in one session per operation. Network calls are made
only after that session has committed, so no lock is ever held across a
peer round-trip.
"""

import logging
from datetime import timedelta
from uuid import uuid4

from sqlalchemy.orm import Session

from ..clock import Clock, SystemClock
from ..config import ServerConfig
from ..database.book_repository import BookRepository
from ..database.copy_repository import CopyRepository
from ..database.library_repository import ContactRepository, LibraryRepository
from ..database.loan_repository import LoanCreateSchema, LoanRepository
from ..database.peer_repository import PeerRepository
from ..database.request_repository import (
    BorrowRequestCreateSchema,
    BorrowRequestRepository,
    OutgoingRequestCreateSchema,
    OutgoingRequestRepository,
)
from ..database.session import DatabaseManager
from ..errors import DuplicateError, ExternalServiceError, InvalidStateError, NotFoundError
from ..models.enums import CopyStatus, LoanStatus, RequestStatus
from ..models.loan import Loan
from ..models.peer import Peer
from ..models.request import (
    BorrowRequest,
    BorrowRequestView,
    OutgoingBorrowRequest,
    OutgoingRequestView,
    RequestAck,
)
from ..protocol import (
    ProtocolMessage,
    RequestCreated,
    message_status,
    next_incoming_status,
    next_outgoing_status,
    status_message,
)
from .transport import PeerTransport, validate_peer_url

logger = logging.getLogger(__name__)


class LendingCoordinator:
    """Runs both sides of the borrow-request protocol for this library."""

    def __init__(
        self,
        db: DatabaseManager,
        transport: PeerTransport,
        config: ServerConfig,
        clock: Clock | None = None,
    ):
        self.db = db
        self.transport = transport
        self.config = config
        self.clock = clock or SystemClock()

    # =========================================================================
    # LENDER SIDE
    # =========================================================================

    async def receive_request(
        self,
        from_peer_id: int,
        isbn: str | None,
        title: str,
        request_id: str | None = None,
    ) -> BorrowRequest:
        """
        Record a borrow request from a registered peer.

        Raises:
            NotFoundError: If the peer is not registered
            DuplicateError: If ``request_id`` is already known
            InvalidStateError: If the peer auto-approves but no copy is available
        """
        with self.db.session_scope() as session:
            peer = PeerRepository(session).require(from_peer_id)
            return self._receive(session, peer, isbn, title, request_id or str(uuid4()))

    async def receive_request_from(self, message: RequestCreated) -> BorrowRequest:
        """
        Record a borrow request delivered over the network.

        The sender is identified by URL and registered on first contact
        (without auto-approve).
        """
        peer_url = validate_peer_url(message.from_peer_url, self.config.allow_private_peers)
        with self.db.session_scope() as session:
            peer = PeerRepository(session).find_or_create(peer_url, message.from_peer_name)
            return self._receive(
                session, peer, message.book_isbn, message.book_title, message.request_id
            )

    def _receive(
        self,
        session: Session,
        peer: Peer,
        isbn: str | None,
        title: str,
        request_id: str,
    ) -> BorrowRequest:
        requests = BorrowRequestRepository(session)
        if requests.exists(request_id):
            raise DuplicateError(f"Borrow request {request_id} already exists")

        request = requests.create(
            BorrowRequestCreateSchema(
                id=request_id,
                from_peer_id=peer.id,
                book_isbn=isbn,
                book_title=title,
                status=RequestStatus.PENDING,
            ),
            commit=False,
        )

        if peer.auto_approve:
            loan = self._lend_to_peer(session, peer, isbn, title)
            request = requests.set_status(request_id, RequestStatus.ACCEPTED, loan_id=loan.id)
            logger.info(
                "Auto-approved request %s from %s for '%s' (loan %s)",
                request_id,
                peer.name,
                title,
                loan.id,
            )
        else:
            logger.info("Request %s from %s for '%s' awaiting review", request_id, peer.name, title)

        return request

    def _lend_to_peer(self, session: Session, peer: Peer, isbn: str | None, title: str) -> Loan:
        """
        Claim an available copy and open a loan to the peer's contact.

        Raises:
            InvalidStateError: If no copy of the book can be claimed
        """
        copy = CopyRepository(session).claim_available_for_book(isbn, title)
        if copy is None:
            raise InvalidStateError("No available copy")

        contact = ContactRepository(session).find_or_create_for_peer(peer.name, copy.library_id)
        today = self.clock.today()
        return LoanRepository(session, self.clock).open_claimed_loan(
            LoanCreateSchema(
                copy_id=copy.id,
                contact_id=contact.id,
                library_id=copy.library_id,
                loan_date=today,
                due_date=today + timedelta(days=self.config.default_loan_days),
                notes=f"Peer loan to {peer.name}",
            ),
            commit=False,
        )

    async def update_request_status(
        self, request_id: str, new_status: RequestStatus
    ) -> BorrowRequest:
        """
        Apply the librarian's decision on an incoming request.

        - pending -> accepted: claims a copy and opens a loan, or fails
        - pending -> rejected: status only
        - accepted -> returned: closes the loan, the copy becomes available

        The borrower is notified afterwards; a failed notification is logged
        and does not undo the local change.

        Raises:
            NotFoundError: If the request does not exist
            InvalidStateError: If the transition is not allowed or no copy is available
        """
        with self.db.session_scope() as session:
            requests = BorrowRequestRepository(session)
            request = requests.require(request_id)
            target = next_incoming_status(request.status, status_message(request_id, new_status))
            peer = PeerRepository(session).require(request.from_peer_id)

            if target == RequestStatus.ACCEPTED:
                loan = self._lend_to_peer(session, peer, request.book_isbn, request.book_title)
                updated = requests.set_status(request_id, target, loan_id=loan.id)
            elif target == RequestStatus.RETURNED:
                self._close_peer_loan(session, request)
                updated = requests.set_status(request_id, target)
            else:
                updated = requests.set_status(request_id, target)

        logger.info("Request %s from %s is now %s", request_id, peer.name, target.value)
        await self._notify_borrower(peer, request_id, target)
        return updated

    def _close_peer_loan(self, session: Session, request: BorrowRequest) -> None:
        loans = LoanRepository(session, self.clock)
        loan = loans.get_by_id(request.loan_id) if request.loan_id is not None else None
        if loan is None:
            logger.warning("Request %s has no loan to close", request.id)
            return
        if loan.status == LoanStatus.RETURNED:
            logger.info("Loan %s for request %s was already returned", loan.id, request.id)
            return
        loans.return_loan(loan.id, commit=False)

    async def _notify_borrower(self, peer: Peer, request_id: str, status: RequestStatus) -> None:
        try:
            await self.transport.send_status_update(
                peer.url, request_id, status, timeout=self.config.status_update_timeout
            )
        except ExternalServiceError as e:
            logger.warning(
                "Could not notify %s that request %s is %s: %s",
                peer.name,
                request_id,
                status.value,
                e,
            )

    def list_requests(self) -> list[BorrowRequestView]:
        with self.db.session_scope() as session:
            return BorrowRequestRepository(session).list_with_peer_names()

    def delete_request(self, request_id: str) -> None:
        """
        Raises:
            NotFoundError: If the request does not exist
        """
        with self.db.session_scope() as session:
            BorrowRequestRepository(session).delete(request_id, commit=False)

    # =========================================================================
    # BORROWER SIDE
    # =========================================================================

    async def request_book(
        self, peer_id: int, isbn: str | None, title: str
    ) -> OutgoingBorrowRequest:
        """
        Ask a peer to lend a book.

        The outgoing request is stored as ``pending`` before delivery. If the
        lender's acknowledgement already carries a decision (auto-approve),
        it is applied locally straight away.

        Raises:
            NotFoundError: If the peer is not registered
            ExternalServiceError: If delivery fails or the acknowledgement is for
                another request; the request stays ``pending``
        """
        request_id = str(uuid4())
        with self.db.session_scope() as session:
            peer = PeerRepository(session).require(peer_id)
            request = OutgoingRequestRepository(session).create(
                OutgoingRequestCreateSchema(
                    id=request_id,
                    to_peer_id=peer.id,
                    book_isbn=isbn,
                    book_title=title,
                ),
                commit=False,
            )

        message = RequestCreated(
            request_id=request_id,
            from_peer_url=self.config.public_url,
            from_peer_name=self.config.library_name,
            book_isbn=isbn,
            book_title=title,
        )
        try:
            ack = await self.transport.send_borrow_request(
                peer.url, message, timeout=self.config.peer_timeout
            )
        except ExternalServiceError:
            logger.warning("Request %s to %s was not delivered", request_id, peer.name)
            raise

        if ack.request_id != request_id:
            logger.warning(
                "Request %s to %s was acknowledged as %s", request_id, peer.name, ack.request_id
            )
            raise ExternalServiceError(
                f"Peer {peer.name} acknowledged request {ack.request_id}, expected {request_id}"
            )

        logger.info("Request %s delivered to %s (%s)", request_id, peer.name, ack.status.value)
        if ack.status in (RequestStatus.ACCEPTED, RequestStatus.REJECTED):
            return await self.update_outgoing_status(request_id, ack.status)
        return request

    async def request_book_by_url(
        self, peer_url: str, isbn: str | None, title: str
    ) -> OutgoingBorrowRequest:
        with self.db.session_scope() as session:
            peer = PeerRepository(session).find_by_url(peer_url)
        if peer is None:
            raise NotFoundError(f"No peer registered at {peer_url}")
        return await self.request_book(peer.id, isbn, title)

    async def update_outgoing_status(
        self, outgoing_id: str, new_status: RequestStatus
    ) -> OutgoingBorrowRequest:
        """
        Apply the lender's decision to an outgoing request.

        - pending -> accepted: placeholder book (matched by ISBN) and a
          temporary ``borrowed`` copy are created
        - any -> rejected: status only
        - accepted -> returned: temporary copy deleted, placeholder book
          deleted if it is not owned, not wishlisted and has no copies left

        Everything happens in one transaction.

        Raises:
            NotFoundError: If the request does not exist
            InvalidStateError: If the transition is not allowed
        """
        with self.db.session_scope() as session:
            outgoing = OutgoingRequestRepository(session)
            request = outgoing.require(outgoing_id)
            target = next_outgoing_status(request.status, status_message(outgoing_id, new_status))

            if target == RequestStatus.ACCEPTED:
                self._receive_borrowed_copy(session, request)
            elif target == RequestStatus.RETURNED:
                self._reclaim_borrowed_copy(session, request)

            updated = outgoing.set_status(outgoing_id, target)

        logger.info("Outgoing request %s is now %s", outgoing_id, target.value)
        return updated

    def _receive_borrowed_copy(self, session: Session, request: OutgoingBorrowRequest) -> None:
        book = BookRepository(session).find_or_create_placeholder(
            request.book_isbn, request.book_title
        )
        library = LibraryRepository(session).get_or_create_default(self.config.library_name)
        copy = CopyRepository(session).create_copy(
            book.id,
            library.id,
            initial_status=CopyStatus.BORROWED,
            is_temporary=True,
            acquisition_date=self.clock.today(),
            notes=f"Borrowed via request {request.id}",
            commit=False,
        )
        OutgoingRequestRepository(session).link_resources(request.id, book.id, copy.id)

    def _reclaim_borrowed_copy(self, session: Session, request: OutgoingBorrowRequest) -> None:
        copies = CopyRepository(session)
        books = BookRepository(session)

        if request.copy_id is not None and copies.exists(request.copy_id):
            copies.delete(request.copy_id, commit=False)

        book_id = request.book_id
        if book_id is not None and books.is_reclaimable(book_id):
            books.delete(book_id, commit=False)
            logger.info("Placeholder book %s removed after return of %s", book_id, request.id)
            book_id = None

        OutgoingRequestRepository(session).link_resources(request.id, book_id, None)

    def list_outgoing_requests(self) -> list[OutgoingRequestView]:
        with self.db.session_scope() as session:
            return OutgoingRequestRepository(session).list_with_peer_names()

    def delete_outgoing_request(self, outgoing_id: str) -> None:
        """
        Raises:
            NotFoundError: If the request does not exist
        """
        with self.db.session_scope() as session:
            OutgoingRequestRepository(session).delete(outgoing_id, commit=False)

    # =========================================================================
    # INBOUND MESSAGES
    # =========================================================================

    async def handle_message(self, message: ProtocolMessage) -> RequestAck:
        """Dispatch a protocol message received from a peer."""
        match message:
            case RequestCreated():
                request = await self.receive_request_from(message)
                return RequestAck(request_id=request.id, status=request.status)
            case _:
                updated = await self.update_outgoing_status(
                    message.request_id, message_status(message)
                )
                return RequestAck(request_id=updated.id, status=updated.status)
