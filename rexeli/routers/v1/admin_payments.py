"""Admin payment listing, revenue statistics and manual payment records."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.pagination import PaginationParams
from rexeli.core.response import DataResponse, ListResponse, paginated
from rexeli.core.security import require_admin
from rexeli.db.base import get_db
from rexeli.domain.account import Account
from rexeli.schemas.payment import PaymentCreate, PaymentOut, PaymentStatsOut
from rexeli.services.payment_service import PaymentService

router = APIRouter(prefix="/admin/payments", tags=["Admin: Payments"])


@router.get("", response_model=ListResponse[PaymentOut])
async def list_payments(
    filter_status: Optional[str] = Query(default=None, alias="status"),
    plan_type: Optional[str] = Query(default=None, alias="planType"),
    pagination: PaginationParams = Depends(),
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    items, total = await PaymentService(session).list_payments(
        pagination, status=filter_status, plan_type=plan_type,
    )
    return paginated(
        [PaymentOut.model_validate(p) for p in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/stats", response_model=DataResponse[PaymentStatsOut])
async def payment_stats(
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    return {"data": PaymentStatsOut(**await PaymentService(session).stats())}


@router.post("", response_model=DataResponse[PaymentOut], status_code=status.HTTP_201_CREATED)
async def record_payment(
    body: PaymentCreate,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    payment = await PaymentService(session).record_payment(body, admin_id=admin.id)
    return {"data": PaymentOut.model_validate(payment)}
