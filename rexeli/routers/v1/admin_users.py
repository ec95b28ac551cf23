"""Admin user management endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.pagination import PaginationParams
from rexeli.core.response import DataResponse, ListResponse, paginated
from rexeli.core.security import require_admin
from rexeli.db.base import get_db
from rexeli.domain.account import Account
from rexeli.schemas.account import (
    AccountDetailOut,
    AccountOut,
    AccountStatusUpdate,
    CreditTransactionOut,
    PlanAssignment,
    UsageLogOut,
    UsageStatsOut,
)
from rexeli.schemas.common import CreditGrant
from rexeli.schemas.group import CreditBalanceOut
from rexeli.services.credit_service import CreditService
from rexeli.services.subscription import SubscriptionService
from rexeli.services.user_admin_service import UserAdminService

router = APIRouter(prefix="/admin/users", tags=["Admin: Users"])


@router.get("", response_model=ListResponse[AccountOut])
async def list_users(
    search: Optional[str] = Query(default=None, description="Match on email or name"),
    filter_status: Optional[str] = Query(default=None, alias="status", description="Subscription status"),
    pagination: PaginationParams = Depends(),
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    items, total = await UserAdminService(session).list_users(
        pagination, search=search, status=filter_status,
    )
    return paginated(
        [AccountOut.model_validate(a) for a in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/{user_id}", response_model=DataResponse[AccountDetailOut])
async def get_user(
    user_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    detail = await UserAdminService(session).get_user_detail(user_id)
    return {
        "data": AccountDetailOut(
            account=AccountOut.model_validate(detail["account"]),
            usage_logs=[UsageLogOut.model_validate(u) for u in detail["usage_logs"]],
            transactions=[CreditTransactionOut.model_validate(t) for t in detail["transactions"]],
            stats=UsageStatsOut(**detail["stats"]),
        )
    }


@router.patch("/{user_id}", response_model=DataResponse[AccountOut])
async def set_user_status(
    user_id: str,
    body: AccountStatusUpdate,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """Activate or deactivate an account."""
    account = await UserAdminService(session).set_active(user_id, body.is_active, admin=admin)
    return {
        "data": AccountOut.model_validate(account),
        "message": "User activated" if body.is_active else "User deactivated",
    }


@router.post("/{user_id}/credits", response_model=DataResponse[CreditBalanceOut])
async def add_user_credits(
    user_id: str,
    body: CreditGrant,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    new_balance = await CreditService(session).add_credits(
        user_id,
        body.amount,
        admin_id=admin.id,
        description=body.description or f"Admin credit grant by {admin.email}",
    )
    return {
        "data": CreditBalanceOut(new_balance=new_balance),
        "message": f"Successfully added {body.amount} credits",
    }


@router.post("/{user_id}/plan", response_model=DataResponse[AccountOut])
async def assign_user_plan(
    user_id: str,
    body: PlanAssignment,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    account = await SubscriptionService(session).assign_plan(
        user_id, body.plan_type, admin_id=admin.id,
    )
    return {
        "data": AccountOut.model_validate(account),
        "message": f"Plan {body.plan_type} assigned",
    }
