"""Sale endpoints."""

from fastapi import APIRouter, status

from ...database.sale_repository import SaleCreateSchema, SaleFilter, SaleRepository
from ...models.enums import SaleStatus
from ...models.sale import Sale, SaleWithDetails
from ..dependencies import DbSession, Services

router = APIRouter(prefix="/sales", tags=["Sales"])


@router.post("", response_model=Sale, status_code=status.HTTP_201_CREATED)
def record_sale(data: SaleCreateSchema, session: DbSession, services: Services):
    return SaleRepository(session, services.clock).record_sale(data)


@router.put("/{sale_id}/cancel", response_model=Sale)
def cancel_sale(sale_id: int, session: DbSession, services: Services):
    return SaleRepository(session, services.clock).cancel_sale(sale_id)


@router.get("", response_model=list[SaleWithDetails])
def list_sales(
    session: DbSession,
    library_id: int | None = None,
    status: SaleStatus | None = None,
    contact_id: int | None = None,
):
    filters = SaleFilter(library_id=library_id, status=status, contact_id=contact_id)
    return SaleRepository(session).list_sales(filters)


@router.get("/revenue")
def total_revenue(session: DbSession, library_id: int | None = None):
    return {"library_id": library_id, "total": SaleRepository(session).total_revenue(library_id)}
