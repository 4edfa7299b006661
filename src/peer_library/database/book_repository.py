"""
Book repository for the Peer Library.

Besides plain catalog CRUD this repository owns the placeholder-book rules
used by the borrow protocol:

- ``find_or_create_placeholder``: a borrowed book is matched to an existing
  catalog entry by ISBN, or recorded as a new ``owned=False`` book
- ``is_reclaimable``: once the borrowed copy is gone, a placeholder is deleted
  only if nothing else justifies keeping it
"""

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import asc, func, or_, select

from ..database.schema import Book as BookDB
from ..database.schema import Copy as CopyDB
from ..models.book import Book as BookModel
from ..models.book import normalize_isbn
from ..models.enums import ReadingStatus
from .repository import BaseRepository
from .session import safe_query


class BookCreateSchema(BaseModel):
    """Schema for creating a book."""

    title: str = Field(..., min_length=1, max_length=500)
    isbn: str | None = None
    author: str | None = None
    summary: str | None = None
    cover_url: str | None = None
    publisher: str | None = None
    owned: bool = True
    reading_status: ReadingStatus = ReadingStatus.TO_READ

    @field_validator("isbn")
    @classmethod
    def clean_isbn(cls, v: str | None) -> str | None:
        return normalize_isbn(v)


class BookUpdateSchema(BaseModel):
    """Schema for updating a book. All fields optional."""

    title: str | None = Field(None, min_length=1, max_length=500)
    isbn: str | None = None
    author: str | None = None
    summary: str | None = None
    cover_url: str | None = None
    publisher: str | None = None
    owned: bool | None = None
    reading_status: ReadingStatus | None = None

    @field_validator("isbn")
    @classmethod
    def clean_isbn(cls, v: str | None) -> str | None:
        return normalize_isbn(v)


class BookRepository(BaseRepository[BookDB, BookCreateSchema, BookUpdateSchema, BookModel]):
    """Repository for book catalog operations."""

    @property
    def model_class(self) -> type[BookDB]:
        return BookDB

    @property
    def response_schema(self) -> type[BookModel]:
        return BookModel

    def search(self, query: str, limit: int = 50) -> list[BookModel]:
        """
        Match books whose title, author or ISBN contains ``query``.

        An empty query matches nothing.
        """
        query = query.strip()
        if not query:
            return []

        term = f"%{query}%"
        stmt = (
            select(BookDB)
            .where(
                or_(
                    BookDB.title.ilike(term),
                    BookDB.author.ilike(term),
                    BookDB.isbn.like(term),
                )
            )
            .order_by(asc(BookDB.title))
            .limit(limit)
        )
        results = safe_query(
            self.session, lambda s: s.execute(stmt).scalars().all(), "Failed to search books"
        )
        return [self._to_response_model(book) for book in results]

    def get_by_isbn(self, isbn: str) -> BookModel | None:
        """Get the first book with the given ISBN (hyphens ignored)."""
        normalized = normalize_isbn(isbn)
        if normalized is None:
            return None

        book = safe_query(
            self.session,
            lambda s: s.execute(
                select(BookDB).where(BookDB.isbn == normalized).order_by(asc(BookDB.id)).limit(1)
            )
            .scalars()
            .first(),
            "Failed to get book by ISBN",
        )
        return self._to_response_model(book) if book else None

    def count_copies(self, book_id: int) -> int:
        count = safe_query(
            self.session,
            lambda s: s.execute(
                select(func.count()).select_from(CopyDB).where(CopyDB.book_id == book_id)
            ).scalar(),
            "Failed to count copies",
        )
        return count or 0

    def find_or_create_placeholder(
        self, isbn: str | None, title: str, author: str | None = None
    ) -> BookModel:
        """
        Return the local book matching ``isbn``, or create a placeholder for it.

        Placeholders are ``owned=False`` and ``to_read``. An existing book is
        returned untouched, whatever its ownership. Does not commit.
        """
        if isbn:
            existing = self.get_by_isbn(isbn)
            if existing is not None:
                return existing

        return self.create(
            BookCreateSchema(
                title=title,
                isbn=isbn,
                author=author,
                owned=False,
                reading_status=ReadingStatus.TO_READ,
            ),
            commit=False,
        )

    def is_reclaimable(self, book_id: int) -> bool:
        """
        True when a book exists only as a placeholder for a peer loan.

        That is: not owned, not on the wishlist, and no copies left.
        """
        book = self._get_db(book_id)
        if book is None:
            return False
        if book.owned or book.reading_status == ReadingStatus.WISHLIST:
            return False
        return self.count_copies(book_id) == 0
