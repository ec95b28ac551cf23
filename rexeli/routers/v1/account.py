"""Self-service endpoints for the signed-in account: dashboard, credits, usage and documents."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.pagination import PaginationParams
from rexeli.core.response import DataResponse, ListResponse, paginated
from rexeli.core.security import get_current_account
from rexeli.db.base import get_db
from rexeli.domain.account import Account
from rexeli.schemas.account import (
    CreditInfoOut,
    CreditTransactionOut,
    DashboardGroupOut,
    DashboardOut,
    DashboardStatsOut,
    DocumentOut,
    DocumentSummaryOut,
    UsageLogOut,
    UsageOut,
    UsageStatsOut,
)
from rexeli.services.credit_service import CreditService
from rexeli.services.usage_service import UsageService

router = APIRouter(prefix="/user", tags=["Account"])


@router.get("/credits", response_model=DataResponse[CreditInfoOut])
async def get_credits(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_db),
):
    """Effective balance (group pool when the account belongs to an active group)."""
    info = await CreditService(session).get_credit_info(account.id)
    return {"data": CreditInfoOut(**info)}


@router.get("/dashboard", response_model=DataResponse[DashboardOut])
async def get_dashboard(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_db),
):
    summary = await UsageService(session).dashboard(account)
    group = summary["group"]
    return {
        "data": DashboardOut(
            credits=CreditInfoOut(**summary["credits"]),
            stats=DashboardStatsOut(**summary["stats"]),
            recent_documents=[
                DocumentSummaryOut.model_validate(d) for d in summary["recent_documents"]
            ],
            group=DashboardGroupOut(**group) if group else None,
        )
    }


@router.get("/usage", response_model=DataResponse[UsageOut])
async def get_usage(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_db),
):
    usage = await UsageService(session).get_usage(account.id)
    return {
        "data": UsageOut(
            usage_logs=[UsageLogOut.model_validate(u) for u in usage["usage_logs"]],
            transactions=[CreditTransactionOut.model_validate(t) for t in usage["transactions"]],
            stats=UsageStatsOut(**usage["stats"]),
        )
    }


@router.get("/documents", response_model=ListResponse[DocumentSummaryOut])
async def list_documents(
    document_type: Optional[str] = Query(default=None, alias="documentType"),
    pagination: PaginationParams = Depends(),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_db),
):
    """Own documents plus those shared by the account's group."""
    items, total = await UsageService(session).list_documents(account, pagination, document_type)
    return paginated(
        [DocumentSummaryOut.model_validate(d) for d in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/documents/{document_id}", response_model=DataResponse[DocumentOut])
async def get_document(
    document_id: str,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_db),
):
    document = await UsageService(session).get_document(account, document_id)
    return {"data": DocumentOut.model_validate(document)}
