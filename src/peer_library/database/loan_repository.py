"""
Loan repository - the loan lifecycle.

Opening and closing a loan always touches two rows, the loan and its copy,
and both changes land in one commit:

1. **create_loan**: the copy is claimed ``available -> borrowed`` with a
   compare-and-swap, then the loan is inserted as ``active``
2. **return_loan**: the loan moves to ``returned`` only if it is not already,
   and its copy goes back ``borrowed -> available``, both as conditional updates

Repeating either operation is rejected with ``InvalidStateError`` rather than
silently ignored, so callers can tell "already done" from "nothing happened".
"""

import logging
from datetime import date

from pydantic import BaseModel, Field, model_validator
from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import IntegrityError

from ..clock import Clock, SystemClock
from ..database.schema import Book as BookDB
from ..database.schema import Contact as ContactDB
from ..database.schema import Copy as CopyDB
from ..database.schema import Loan as LoanDB
from ..errors import InvalidStateError, NotFoundError
from ..models.enums import CopyStatus, LoanStatus
from ..models.loan import UNKNOWN, Loan, LoanWithDetails
from .copy_repository import CopyRepository
from .repository import BaseRepository
from .session import safe_query

logger = logging.getLogger(__name__)


class LoanCreateSchema(BaseModel):
    """Schema for opening a loan."""

    copy_id: int
    contact_id: int
    library_id: int
    loan_date: date
    due_date: date
    notes: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_dates(self) -> "LoanCreateSchema":
        if self.due_date < self.loan_date:
            raise ValueError("Due date must be on or after loan date")
        return self


class LoanUpdateSchema(BaseModel):
    due_date: date | None = None
    notes: str | None = Field(None, max_length=1000)


class LoanFilter(BaseModel):
    """Optional filters for listing loans. Unset fields do not filter."""

    library_id: int | None = None
    status: LoanStatus | None = None
    contact_id: int | None = None


class LoanRepository(BaseRepository[LoanDB, LoanCreateSchema, LoanUpdateSchema, Loan]):
    """Repository for loan operations."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self.clock = clock or SystemClock()
        self.copies = CopyRepository(session)

    @property
    def model_class(self) -> type[LoanDB]:
        return LoanDB

    @property
    def response_schema(self) -> type[Loan]:
        return Loan

    def create_loan(self, data: LoanCreateSchema, commit: bool = True) -> Loan:
        """
        Lend a copy to a contact.

        Args:
            data: Loan details
            commit: Commit on success; pass False to compose into a larger unit

        Returns:
            The new active loan

        Raises:
            NotFoundError: If the copy, contact or library does not exist
            InvalidStateError: If the copy is not ``available``
        """
        if not self.copies.exists(data.copy_id):
            raise NotFoundError(f"Copy {data.copy_id} not found")

        if not self.copies.claim(data.copy_id):
            status = self.copies.current_status(data.copy_id)
            self.session.rollback()
            if status is None:
                raise NotFoundError(f"Copy {data.copy_id} not found")
            raise InvalidStateError(f"Copy is currently {CopyStatus(status).value}")

        return self.open_claimed_loan(data, commit=commit)

    def open_claimed_loan(self, data: LoanCreateSchema, commit: bool = True) -> Loan:
        """
        Insert the active loan for a copy this session already claimed.

        Callers must have moved the copy to ``borrowed`` with
        ``CopyRepository.claim`` in the same transaction.
        """
        loan = LoanDB(
            copy_id=data.copy_id,
            contact_id=data.contact_id,
            library_id=data.library_id,
            loan_date=data.loan_date,
            due_date=data.due_date,
            status=LoanStatus.ACTIVE,
            return_date=None,
            notes=data.notes,
        )
        self.session.add(loan)
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            if "FOREIGN KEY" in str(e.orig):
                raise NotFoundError("Contact or library not found") from e
            raise InvalidStateError("Copy is currently borrowed") from e

        self._finish("create loan", commit)
        logger.info("Loan %s opened for copy %s", loan.id, data.copy_id)
        return self._to_response_model(loan)

    def return_loan(self, loan_id: int, commit: bool = True) -> Loan:
        """
        Close a loan and put its copy back on the shelf.

        Raises:
            NotFoundError: If the loan, or the copy it points at, does not exist
            InvalidStateError: If the loan is already returned
        """
        loan = self._require_db(loan_id)
        copy_id = loan.copy_id

        # Conditional on the stored status, so a stale read cannot close it twice.
        stmt = (
            update(LoanDB)
            .where(LoanDB.id == loan_id, LoanDB.status != LoanStatus.RETURNED)
            .values(status=LoanStatus.RETURNED, return_date=self.clock.now())
            .execution_options(synchronize_session=False)
        )
        result = safe_query(self.session, lambda s: s.execute(stmt), "Failed to return loan")
        if result.rowcount != 1:
            self.session.rollback()
            raise InvalidStateError("Loan is already returned")

        if not self.copies.claim(copy_id, CopyStatus.BORROWED, CopyStatus.AVAILABLE):
            status = self.copies.current_status(copy_id)
            if status is None:
                self.session.rollback()
                raise NotFoundError(f"Copy {copy_id} not found")
            logger.warning(
                "Copy %s was %s, not borrowed, when loan %s was returned; left as is",
                copy_id,
                CopyStatus(status).value,
                loan_id,
            )

        self._finish("return loan", commit)
        self.session.refresh(loan)
        logger.info("Loan %s returned, copy %s released", loan_id, copy_id)
        return self._to_response_model(loan)

    def list_loans(self, filters: LoanFilter | None = None) -> list[LoanWithDetails]:
        """
        List loans, newest first, with borrower name and book title resolved.

        A loan whose contact or book cannot be resolved is still listed, with
        ``"Unknown"`` in place of the missing name.
        """
        filters = filters or LoanFilter()
        stmt = (
            select(LoanDB, ContactDB.name, BookDB.title)
            .outerjoin(ContactDB, LoanDB.contact_id == ContactDB.id)
            .outerjoin(CopyDB, LoanDB.copy_id == CopyDB.id)
            .outerjoin(BookDB, CopyDB.book_id == BookDB.id)
            .order_by(desc(LoanDB.loan_date), desc(LoanDB.id))
        )
        if filters.library_id is not None:
            stmt = stmt.where(LoanDB.library_id == filters.library_id)
        if filters.status is not None:
            stmt = stmt.where(LoanDB.status == filters.status)
        if filters.contact_id is not None:
            stmt = stmt.where(LoanDB.contact_id == filters.contact_id)

        rows = safe_query(self.session, lambda s: s.execute(stmt).all(), "Failed to list loans")

        return [
            LoanWithDetails.model_validate(loan, from_attributes=True).model_copy(
                update={
                    "contact_name": contact_name or UNKNOWN,
                    "book_title": book_title or UNKNOWN,
                }
            )
            for loan, contact_name, book_title in rows
        ]

    def count_loans(self) -> int:
        return safe_query(
            self.session,
            lambda s: s.execute(select(func.count()).select_from(LoanDB)).scalar(),
            "Failed to count loans",
        ) or 0

    def count_active_loans(self) -> int:
        return safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count())
                .select_from(LoanDB)
                .where(LoanDB.status == LoanStatus.ACTIVE)
            ).scalar(),
            "Failed to count active loans",
        ) or 0
