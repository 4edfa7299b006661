"""
Loan models.

A Loan ties one Copy to one borrowing Contact. While a loan is ``active``
its copy is ``borrowed``; returning the loan makes the copy ``available``
again.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import LoanStatus

UNKNOWN = "Unknown"


class Loan(BaseModel):
    """A single loan of a copy to a contact."""

    id: int = Field(..., description="Loan identifier")
    copy_id: int = Field(..., description="Copy on loan")
    contact_id: int = Field(..., description="Borrowing contact")
    library_id: int = Field(..., description="Library the loan belongs to")

    loan_date: date = Field(..., description="Date the copy was handed out")
    due_date: date = Field(..., description="Date the copy should come back")
    return_date: datetime | None = Field(
        None,
        description="When the copy came back; null while the loan is open",
    )

    status: LoanStatus = Field(default=LoanStatus.ACTIVE)
    notes: str | None = Field(None, max_length=1000)

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def validate_dates(self) -> "Loan":
        if self.due_date < self.loan_date:
            raise ValueError("Due date must be on or after loan date")
        return self

    model_config = ConfigDict(from_attributes=True)


class LoanWithDetails(Loan):
    """Loan with the borrower name and book title resolved for display."""

    contact_name: str = Field(default=UNKNOWN)
    book_title: str = Field(default=UNKNOWN)
