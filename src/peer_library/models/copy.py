"""
Copy model.

A Copy is one concrete instance of a Book held by a Library. Its ``status``
is the single source of truth for whether it can be lent.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import CopyStatus


class Copy(BaseModel):
    """One lendable instance of a book."""

    id: int = Field(..., description="Copy identifier")
    book_id: int = Field(..., description="Book this copy belongs to")
    library_id: int = Field(..., description="Library holding this copy")

    status: CopyStatus = Field(
        default=CopyStatus.AVAILABLE,
        description="Current lend-ability of the copy",
    )

    is_temporary: bool = Field(
        default=False,
        description="True when the copy only represents an item borrowed from a peer",
    )

    acquisition_date: date | None = None
    price: float | None = Field(None, ge=0)
    sold_at: datetime | None = None
    notes: str | None = Field(None, max_length=1000)

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_available(self) -> bool:
        return self.status == CopyStatus.AVAILABLE

    model_config = ConfigDict(from_attributes=True)
