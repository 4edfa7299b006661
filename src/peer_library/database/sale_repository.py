"""
Sale repository.

Selling a copy takes it out of circulation (``sold``); cancelling the sale
puts it back to ``available``.
"""

import logging
from datetime import date

from pydantic import BaseModel, Field
from sqlalchemy import desc, func, select

from ..clock import Clock, SystemClock
from ..database.schema import Book as BookDB
from ..database.schema import Contact as ContactDB
from ..database.schema import Copy as CopyDB
from ..database.schema import Sale as SaleDB
from ..errors import InvalidStateError, NotFoundError
from ..models.enums import CopyStatus, SaleStatus
from ..models.loan import UNKNOWN
from ..models.sale import Sale, SaleWithDetails
from .repository import BaseRepository
from .session import safe_query

logger = logging.getLogger(__name__)


class SaleCreateSchema(BaseModel):
    copy_id: int
    library_id: int
    contact_id: int | None = None
    sale_date: date
    sale_price: float = Field(..., ge=0)
    notes: str | None = None


class SaleUpdateSchema(BaseModel):
    notes: str | None = None


class SaleFilter(BaseModel):
    library_id: int | None = None
    status: SaleStatus | None = None
    contact_id: int | None = None


class SaleRepository(BaseRepository[SaleDB, SaleCreateSchema, SaleUpdateSchema, Sale]):
    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self.clock = clock or SystemClock()

    @property
    def model_class(self) -> type[SaleDB]:
        return SaleDB

    @property
    def response_schema(self) -> type[Sale]:
        return Sale

    def record_sale(self, data: SaleCreateSchema, commit: bool = True) -> Sale:
        """
        Record the sale of a copy and mark the copy ``sold``.

        Raises:
            NotFoundError: If the copy, contact or library does not exist
        """
        copy = self.session.get(CopyDB, data.copy_id)
        if copy is None:
            raise NotFoundError(f"Copy {data.copy_id} not found")

        sale = SaleDB(**data.model_dump(), status=SaleStatus.COMPLETED)
        self.session.add(sale)
        self._flush_new(sale)

        copy.status = CopyStatus.SOLD
        copy.sold_at = self.clock.now()

        self._finish("record sale", commit)
        logger.info("Copy %s sold for %.2f", copy.id, data.sale_price)
        return self._to_response_model(sale)

    def cancel_sale(self, sale_id: int, commit: bool = True) -> Sale:
        """
        Cancel a sale and return the copy to ``available``.

        Raises:
            NotFoundError: If the sale does not exist
            InvalidStateError: If the sale is already cancelled
        """
        sale = self._require_db(sale_id)
        if sale.status == SaleStatus.CANCELLED:
            raise InvalidStateError("Sale is already cancelled")

        sale.status = SaleStatus.CANCELLED
        copy = self.session.get(CopyDB, sale.copy_id)
        if copy is not None:
            copy.status = CopyStatus.AVAILABLE
            copy.sold_at = None

        self._finish("cancel sale", commit)
        return self._to_response_model(sale)

    def list_sales(self, filters: SaleFilter | None = None) -> list[SaleWithDetails]:
        """List sales, newest first, with buyer name and book title resolved."""
        filters = filters or SaleFilter()
        stmt = (
            select(SaleDB, ContactDB.name, BookDB.title)
            .outerjoin(ContactDB, SaleDB.contact_id == ContactDB.id)
            .outerjoin(CopyDB, SaleDB.copy_id == CopyDB.id)
            .outerjoin(BookDB, CopyDB.book_id == BookDB.id)
            .order_by(desc(SaleDB.sale_date), desc(SaleDB.id))
        )
        if filters.library_id is not None:
            stmt = stmt.where(SaleDB.library_id == filters.library_id)
        if filters.status is not None:
            stmt = stmt.where(SaleDB.status == filters.status)
        if filters.contact_id is not None:
            stmt = stmt.where(SaleDB.contact_id == filters.contact_id)

        rows = safe_query(self.session, lambda s: s.execute(stmt).all(), "Failed to list sales")
        return [
            SaleWithDetails.model_validate(sale, from_attributes=True).model_copy(
                update={
                    "contact_name": contact_name or UNKNOWN,
                    "book_title": book_title or UNKNOWN,
                }
            )
            for sale, contact_name, book_title in rows
        ]

    def total_revenue(self, library_id: int | None = None) -> float:
        """Sum of completed sale prices."""
        stmt = select(func.coalesce(func.sum(SaleDB.sale_price), 0.0)).where(
            SaleDB.status == SaleStatus.COMPLETED
        )
        if library_id is not None:
            stmt = stmt.where(SaleDB.library_id == library_id)
        return float(
            safe_query(self.session, lambda s: s.execute(stmt).scalar(), "Failed to sum revenue")
        )
