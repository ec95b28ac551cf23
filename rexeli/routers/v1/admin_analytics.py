"""Admin analytics endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.response import DataResponse
from rexeli.core.security import require_admin
from rexeli.db.base import get_db
from rexeli.domain.account import Account
from rexeli.schemas.analytics import AnalyticsOut
from rexeli.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/admin/analytics", tags=["Admin: Analytics"])


@router.get("", response_model=DataResponse[AnalyticsOut])
async def platform_analytics(
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """Users, plans, processing volume, credit flow and revenue."""
    return {"data": AnalyticsOut(**await AnalyticsService(session).platform_summary())}
