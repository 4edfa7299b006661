"""Contact and Library models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import ContactType


class Library(BaseModel):
    """A library owned by this instance. Copies and loans are scoped to one."""

    id: int
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class Contact(BaseModel):
    """
    Someone this library lends to or buys from.

    Peer libraries that borrow books are recorded as contacts of type
    ``library`` named after the peer.
    """

    id: int
    type: ContactType = Field(default=ContactType.BORROWER)
    name: str = Field(..., min_length=1, max_length=200)
    email: str | None = None
    phone: str | None = None
    notes: str | None = None
    library_owner_id: int | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
