"""Sale models."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import SaleStatus
from .loan import UNKNOWN


class Sale(BaseModel):
    """A copy sold out of the library. Cancelling puts the copy back on the shelf."""

    id: int
    copy_id: int
    contact_id: int | None = None
    library_id: int
    sale_date: date
    sale_price: float = Field(..., ge=0)
    status: SaleStatus = SaleStatus.COMPLETED
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SaleWithDetails(Sale):
    contact_name: str = Field(default=UNKNOWN)
    book_title: str = Field(default=UNKNOWN)
