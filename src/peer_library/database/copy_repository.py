"""
Copy repository - the copy state machine.

The repository itself is a dumb status holder: ``set_status`` accepts any
transition. Legality is decided by the loan and borrow-request layers, which
use ``claim`` to move a copy out of ``available`` atomically.
"""

from datetime import date

from pydantic import BaseModel, Field
from sqlalchemy import asc, func, select, update

from ..database.schema import Book as BookDB
from ..database.schema import Copy as CopyDB
from ..models.book import normalize_isbn
from ..models.copy import Copy as CopyModel
from ..models.enums import CopyStatus
from .repository import BaseRepository
from .session import safe_query


class CopyCreateSchema(BaseModel):
    """Schema for creating a copy."""

    book_id: int
    library_id: int
    status: CopyStatus = CopyStatus.AVAILABLE
    is_temporary: bool = False
    acquisition_date: date | None = None
    price: float | None = Field(None, ge=0)
    notes: str | None = None


class CopyUpdateSchema(BaseModel):
    acquisition_date: date | None = None
    price: float | None = Field(None, ge=0)
    notes: str | None = None


class CopyRepository(BaseRepository[CopyDB, CopyCreateSchema, CopyUpdateSchema, CopyModel]):
    """Repository for copy operations."""

    @property
    def model_class(self) -> type[CopyDB]:
        return CopyDB

    @property
    def response_schema(self) -> type[CopyModel]:
        return CopyModel

    def create_copy(
        self,
        book_id: int,
        library_id: int,
        initial_status: CopyStatus = CopyStatus.AVAILABLE,
        is_temporary: bool = False,
        acquisition_date: date | None = None,
        price: float | None = None,
        notes: str | None = None,
        commit: bool = True,
    ) -> CopyModel:
        """
        Create a copy of a book in a library.

        Raises:
            NotFoundError: If ``book_id`` or ``library_id`` does not exist
        """
        return self.create(
            CopyCreateSchema(
                book_id=book_id,
                library_id=library_id,
                status=initial_status,
                is_temporary=is_temporary,
                acquisition_date=acquisition_date,
                price=price,
                notes=notes,
            ),
            commit=commit,
        )

    def set_status(
        self, copy_id: int, new_status: CopyStatus, commit: bool = True
    ) -> CopyModel:
        """
        Set a copy's status. Any transition is allowed here.

        Raises:
            NotFoundError: If the copy does not exist
        """
        copy = self._require_db(copy_id)
        copy.status = new_status
        self._finish("set copy status", commit)
        return self._to_response_model(copy)

    def current_status(self, copy_id: int) -> CopyStatus | None:
        """Read the stored status, bypassing anything cached in the session."""
        return safe_query(
            self.session,
            lambda s: s.execute(select(CopyDB.status).where(CopyDB.id == copy_id)).scalar(),
            "Failed to read copy status",
        )

    def claim(
        self,
        copy_id: int,
        expected: CopyStatus = CopyStatus.AVAILABLE,
        new_status: CopyStatus = CopyStatus.BORROWED,
    ) -> bool:
        """
        Compare-and-swap the copy's status. Does not commit.

        The status only changes if the stored value is still ``expected``, so
        two sessions racing for the same copy cannot both win.

        Returns:
            True if this call changed the status
        """
        stmt = (
            update(CopyDB)
            .where(CopyDB.id == copy_id, CopyDB.status == expected)
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        result = safe_query(self.session, lambda s: s.execute(stmt), "Failed to claim copy")
        claimed = result.rowcount == 1

        cached = self.session.identity_map.get(self.session.identity_key(CopyDB, copy_id))
        if cached is not None:
            self.session.expire(cached, ["status"])
        return claimed

    def _book_filter(self, isbn: str | None, title: str | None):
        """ISBN match when some book carries the ISBN, else exact title match."""
        normalized = normalize_isbn(isbn)
        if normalized:
            has_isbn_match = safe_query(
                self.session,
                lambda s: s.execute(
                    select(BookDB.id).where(BookDB.isbn == normalized).limit(1)
                ).first(),
                "Failed to look up book by ISBN",
            )
            if has_isbn_match:
                return BookDB.isbn == normalized

        if title:
            return func.lower(BookDB.title) == title.strip().lower()
        return None

    def _available_for_book(self, isbn: str | None, title: str | None) -> list[CopyDB]:
        book_filter = self._book_filter(isbn, title)
        if book_filter is None:
            return []

        return safe_query(
            self.session,
            lambda s: s.execute(
                select(CopyDB)
                .join(BookDB, CopyDB.book_id == BookDB.id)
                .where(
                    book_filter,
                    CopyDB.status == CopyStatus.AVAILABLE,
                    CopyDB.is_temporary.is_(False),
                )
                .order_by(asc(CopyDB.id))
            )
            .scalars()
            .all(),
            "Failed to find available copies",
        )

    def find_available_for_book(
        self, isbn: str | None, title: str | None = None
    ) -> CopyModel | None:
        """
        Find the first lendable copy of a book.

        Books are matched by ISBN; when no book carries the ISBN, an exact
        (case-insensitive) title match is tried instead. Temporary copies are
        never lent on.
        """
        candidates = self._available_for_book(isbn, title)
        return self._to_response_model(candidates[0]) if candidates else None

    def claim_available_for_book(
        self, isbn: str | None, title: str | None = None
    ) -> CopyModel | None:
        """
        Claim the first lendable copy of a book, moving it to ``borrowed``.

        Candidates lost to a concurrent claim are skipped. Does not commit.

        Returns:
            The claimed copy, or None if no copy could be claimed
        """
        for candidate in self._available_for_book(isbn, title):
            if self.claim(candidate.id):
                self.session.refresh(candidate)
                return self._to_response_model(candidate)
        return None

    def list_for_book(self, book_id: int) -> list[CopyModel]:
        results = safe_query(
            self.session,
            lambda s: s.execute(
                select(CopyDB).where(CopyDB.book_id == book_id).order_by(asc(CopyDB.id))
            )
            .scalars()
            .all(),
            "Failed to list copies",
        )
        return [self._to_response_model(copy) for copy in results]
