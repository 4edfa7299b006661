"""Loan Tools - lending local copies to contacts.

Tools:
- create_loan: Lend an available copy
- return_loan: Close a loan and put the copy back on the shelf
- list_loans: Loans with borrower and book names resolved
"""

import logging
from datetime import date, timedelta
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from ..database.loan_repository import LoanCreateSchema, LoanFilter, LoanRepository
from ..errors import LibraryError
from ..models.enums import LoanStatus
from ..services.container import get_services
from .responses import format_error_response, format_library_error, format_success, log_operation

logger = logging.getLogger(__name__)


class CreateLoanInput(BaseModel):
    """Input schema for opening a loan."""

    copy_id: int = Field(..., description="Copy to lend", examples=[12])
    contact_id: int = Field(..., description="Contact borrowing the copy", examples=[3])
    library_id: int = Field(..., description="Library the loan is recorded in", examples=[1])

    loan_date: date | None = Field(
        default=None,
        description="Start of the loan. Defaults to today",
        examples=["2024-02-01"],
    )

    due_date: date | None = Field(
        default=None,
        description="Due date. Defaults to the configured loan period after the start",
        examples=["2024-02-15"],
    )

    notes: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def validate_dates(self) -> "CreateLoanInput":
        if self.loan_date and self.due_date and self.due_date < self.loan_date:
            raise ValueError("Due date must be on or after loan date")
        return self


class ReturnLoanInput(BaseModel):
    loan_id: int = Field(..., description="Loan to close", examples=[7])


class ListLoansInput(BaseModel):
    library_id: int | None = None
    status: LoanStatus | None = Field(default=None, examples=["active", "returned"])
    contact_id: int | None = None


async def create_loan_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Lend a copy to a contact.

    Client calls: tool.call("create_loan", {"copy_id": 12, "contact_id": 3, "library_id": 1})
    """
    try:
        params = CreateLoanInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid create_loan parameters: %s", e)
        return format_error_response("Invalid parameters", str(e))

    services = get_services()
    loan_date = params.loan_date or services.clock.today()
    due_date = params.due_date or loan_date + timedelta(days=services.config.default_loan_days)

    try:
        with services.db.session_scope() as session:
            loan = LoanRepository(session, services.clock).create_loan(
                LoanCreateSchema(
                    copy_id=params.copy_id,
                    contact_id=params.contact_id,
                    library_id=params.library_id,
                    loan_date=loan_date,
                    due_date=due_date,
                    notes=params.notes,
                )
            )
    except LibraryError as e:
        return format_library_error("create_loan", e)
    except ValueError as e:
        return format_error_response("Invalid parameters", str(e))

    log_operation("create_loan_success", loan_id=loan.id, copy_id=loan.copy_id)
    return format_success(
        f"Copy {loan.copy_id} lent to contact {loan.contact_id}, "
        f"due {loan.due_date.strftime('%B %d, %Y')}",
        {"loan": loan.model_dump(mode="json")},
    )


async def return_loan_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Close a loan. Returning a loan twice is reported as an invalid state."""
    try:
        params = ReturnLoanInput.model_validate(arguments)
    except ValidationError as e:
        logger.warning("Invalid return_loan parameters: %s", e)
        return format_error_response("Invalid parameters", str(e))

    services = get_services()
    try:
        with services.db.session_scope() as session:
            loan = LoanRepository(session, services.clock).return_loan(params.loan_id)
    except LibraryError as e:
        return format_library_error("return_loan", e)

    log_operation("return_loan_success", loan_id=loan.id, copy_id=loan.copy_id)
    return format_success(
        f"Loan {loan.id} returned; copy {loan.copy_id} is available again",
        {"loan": loan.model_dump(mode="json")},
    )


async def list_loans_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = ListLoansInput.model_validate(arguments or {})
    except ValidationError as e:
        return format_error_response("Invalid parameters", str(e))

    services = get_services()
    try:
        with services.db.session_scope() as session:
            loans = LoanRepository(session).list_loans(LoanFilter(**params.model_dump()))
    except LibraryError as e:
        return format_library_error("list_loans", e)

    lines = [
        f"- #{loan.id} '{loan.book_title}' to {loan.contact_name} "
        f"({loan.status.value}, due {loan.due_date.isoformat()})"
        for loan in loans
    ]
    message = f"Found {len(loans)} loan(s)" + ("\n" + "\n".join(lines) if lines else "")
    return format_success(
        message, {"loans": [loan.model_dump(mode="json") for loan in loans], "total": len(loans)}
    )


create_loan = {
    "name": "create_loan",
    "description": (
        "Lend a copy to a contact. The copy must be available; it is marked borrowed "
        "and an active loan is opened in the same transaction."
    ),
    "inputSchema": CreateLoanInput.model_json_schema(),
    "handler": create_loan_handler,
}

return_loan = {
    "name": "return_loan",
    "description": "Close an active loan and make its copy available again.",
    "inputSchema": ReturnLoanInput.model_json_schema(),
    "handler": return_loan_handler,
}

list_loans = {
    "name": "list_loans",
    "description": (
        "List loans newest first, optionally filtered by library, status or contact. "
        "Missing borrower or book names are reported as 'Unknown'."
    ),
    "inputSchema": ListLoansInput.model_json_schema(),
    "handler": list_loans_handler,
}
