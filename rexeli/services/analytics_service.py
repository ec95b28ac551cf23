"""Platform-wide usage, credit and revenue figures for the admin dashboard."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.domain.mixins import utcnow
from rexeli.repositories.account import AccountRepository
from rexeli.repositories.group import GroupRepository
from rexeli.repositories.ledger import CreditRepository, UsageLogRepository
from rexeli.repositories.payment import PaymentRepository


class AnalyticsService:
    def __init__(self, session: AsyncSession):
        self._accounts = AccountRepository(session)
        self._groups = GroupRepository(session)
        self._credits = CreditRepository(session)
        self._usage = UsageLogRepository(session)
        self._payments = PaymentRepository(session)

    async def platform_summary(self) -> dict[str, Any]:
        month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        users = await self._accounts.summary(month_start)
        plans = await self._accounts.active_plan_counts()
        usage = await self._usage.totals()
        monthly = await self._usage.totals(since=month_start)
        ledger = await self._credits.ledger_totals()
        groups = await self._groups.stats()

        return {
            "users": {
                "total": users["total"],
                "active": users["active"],
                "new_this_month": users["new_this_month"],
                "active_subscriptions": sum(n for plan, n in plans.items() if plan != "free"),
                "free_users": users["free_users"],
            },
            "subscriptions": plans,
            "usage": {
                "total_documents": usage["total"],
                "successful": usage["successful"],
                "total_pages": usage["pages"],
                "total_credits_used": usage["credits"],
                "monthly_documents": monthly["total"],
                "monthly_pages": monthly["pages"],
                "success_rate": (
                    round(usage["successful"] / usage["total"] * 100, 1) if usage["total"] else 0.0
                ),
            },
            "credits": {
                "total_issued": ledger["issued"],
                "total_used": ledger["used"],
                "individual_balance": users["credits"],
                "group_balance": groups["total_credits"],
            },
            "revenue": {
                "total": await self._payments.revenue(),
                "monthly": await self._payments.revenue(since=month_start),
            },
        }
