"""Scheduled billing jobs, triggered by an external scheduler as an admin."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.response import DataResponse
from rexeli.core.security import require_admin
from rexeli.db.base import get_db
from rexeli.domain.account import Account
from rexeli.services.subscription import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/billing", tags=["Admin: Billing"])


@router.post("/reset-monthly-credits", response_model=DataResponse[dict[str, int]])
async def reset_monthly_credits(
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """Renew credit allocations for subscriptions whose billing cycle ended."""
    result = await SubscriptionService(session).reset_monthly_credits()
    logger.info("[ADMIN ACTION] Admin %s ran the monthly credit reset: %s", admin.email, result)
    return {"data": result}


@router.post("/check-expiry", response_model=DataResponse[dict[str, int]])
async def check_subscription_expiry(
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """Expire one-time plans past the end of their cycle."""
    result = await SubscriptionService(session).check_subscription_expiry()
    logger.info("[ADMIN ACTION] Admin %s ran the expiry check: %s", admin.email, result)
    return {"data": result}
