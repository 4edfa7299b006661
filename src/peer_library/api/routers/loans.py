"""Loan endpoints."""

from fastapi import APIRouter, status

from ...database.loan_repository import LoanCreateSchema, LoanFilter, LoanRepository
from ...models.enums import LoanStatus
from ...models.loan import Loan, LoanWithDetails
from ..dependencies import DbSession, Services

router = APIRouter(prefix="/loans", tags=["Loans"])


@router.post("", response_model=Loan, status_code=status.HTTP_201_CREATED)
def create_loan(data: LoanCreateSchema, session: DbSession, services: Services):
    return LoanRepository(session, services.clock).create_loan(data)


@router.put("/{loan_id}/return", response_model=Loan)
def return_loan(loan_id: int, session: DbSession, services: Services):
    return LoanRepository(session, services.clock).return_loan(loan_id)


@router.get("", response_model=list[LoanWithDetails])
def list_loans(
    session: DbSession,
    library_id: int | None = None,
    status: LoanStatus | None = None,
    contact_id: int | None = None,
):
    filters = LoanFilter(library_id=library_id, status=status, contact_id=contact_id)
    return LoanRepository(session).list_loans(filters)


@router.get("/{loan_id}", response_model=Loan)
def get_loan(loan_id: int, session: DbSession):
    return LoanRepository(session).require(loan_id)
