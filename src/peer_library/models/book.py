"""
Book models.

A Book is a catalog entry. Physical or digital instances of it are Copies.
Books acquired only through a peer loan are "placeholder" books: they are
stored with ``owned=False`` and are removed once the borrowed copy goes back,
unless something else (a wishlist entry, another copy) justifies keeping them.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ReadingStatus


def normalize_isbn(value: str | None) -> str | None:
    """Strip hyphens and spaces so ISBN lookups match regardless of formatting."""
    if value is None:
        return None
    normalized = value.replace("-", "").replace(" ", "").strip()
    return normalized or None


class Book(BaseModel):
    """A book in the local catalog."""

    id: int = Field(..., description="Book identifier")

    title: str = Field(
        ...,
        description="The title of the book",
        min_length=1,
        max_length=500,
        examples=["The Left Hand of Darkness", "Dune"],
    )

    isbn: str | None = Field(
        None,
        description="ISBN, normalized without hyphens",
        examples=["9780441478125"],
    )

    author: str | None = Field(None, description="Author display name")
    summary: str | None = Field(None, description="Short description of the book")
    cover_url: str | None = Field(None, description="Cover image URL")
    publisher: str | None = Field(None, description="Publisher name")

    owned: bool = Field(
        default=True,
        description="False for placeholder books held only because of a peer loan",
    )

    reading_status: ReadingStatus = Field(
        default=ReadingStatus.TO_READ,
        description="Reading progress of the library owner",
    )

    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "The Left Hand of Darkness",
                "isbn": "9780441478125",
                "author": "Ursula K. Le Guin",
                "owned": True,
                "reading_status": "read",
            }
        },
    )


class BookSummary(BaseModel):
    """
    Catalog entry as exchanged between peers.

    This is the shape a library returns from ``GET /api/books`` and from its
    peer search endpoint. ``id`` is the identifier on the library that sent it.
    """

    id: int | None = Field(None, description="Book identifier on the sending library")
    title: str = Field(..., min_length=1)
    isbn: str | None = None
    author: str | None = None
    cover_url: str | None = None
    summary: str | None = None

    @field_validator("isbn")
    @classmethod
    def clean_isbn(cls, v: str | None) -> str | None:
        return normalize_isbn(v)

    model_config = ConfigDict(from_attributes=True, extra="ignore")
