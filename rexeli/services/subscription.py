"""Subscription plans: credit allocations, warning thresholds, billing cycles.

Plan assignment and the monthly reset set a balance to the plan allocation.
The ledger row written for that change carries the signed difference so the
ledger keeps summing to the balance.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.exceptions import NotFoundError, ValidationError
from rexeli.domain.account import Account
from rexeli.domain.group import Group
from rexeli.domain.mixins import utcnow
from rexeli.repositories.account import AccountRepository
from rexeli.repositories.group import GroupRepository
from rexeli.services.credit_holder import GroupHolder, IndividualHolder

logger = logging.getLogger(__name__)

SUBSCRIPTION_CREDITS: dict[str, int] = {
    "free": 0,
    "entrepreneur_monthly": 250,
    "entrepreneur_annual": 250,
    "professional_monthly": 1500,
    "professional_annual": 1500,
    "business_monthly": 7500,
    "business_annual": 7500,
    "one_time_entrepreneur": 250,
    "one_time_professional": 1250,
    "one_time_business": 6250,
}

GROUP_SUBSCRIPTION_CREDITS: dict[str, int] = {
    "professional_monthly": 1500,
    "professional_annual": 1500,
    "business_monthly": 7500,
    "business_annual": 7500,
    "enterprise_monthly": 50000,
    "enterprise_annual": 50000,
}

GROUP_MAX_MEMBERS: dict[str, int] = {
    "professional_monthly": 3,
    "professional_annual": 3,
    "business_monthly": 10,
    "business_annual": 10,
    "enterprise_monthly": 999,
    "enterprise_annual": 999,
}

LOW_CREDIT_THRESHOLDS: dict[str, int] = {
    "entrepreneur_monthly": 25,
    "entrepreneur_annual": 25,
    "professional_monthly": 150,
    "professional_annual": 150,
    "business_monthly": 750,
    "business_annual": 750,
    "one_time": 5,
    "free": 2,
}
DEFAULT_LOW_CREDIT_THRESHOLD = 5


def low_credit_threshold(plan: str | None) -> int:
    """Warning threshold for a plan; every one-time pack shares one entry."""
    if plan and plan.startswith("one_time"):
        plan = "one_time"
    return LOW_CREDIT_THRESHOLDS.get(plan or "", DEFAULT_LOW_CREDIT_THRESHOLD)


def is_one_time(plan: str) -> bool:
    return plan.startswith("one_time")


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping the day (Jan 31 + 1 month = Feb 28/29)."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def billing_cycle_end(plan: str, start: datetime) -> datetime:
    if is_one_time(plan):
        return add_months(start, 1200)  # one-time packs never renew
    if plan.endswith("_annual"):
        return add_months(start, 12)
    return add_months(start, 1)


class SubscriptionService:
    def __init__(self, session: AsyncSession):
        self._session = session
        self._accounts = AccountRepository(session)
        self._groups = GroupRepository(session)

    async def assign_plan(
        self, account_id: str, plan: str, *, admin_id: str | None = None,
    ) -> Account:
        if plan not in SUBSCRIPTION_CREDITS:
            raise ValidationError(f"Invalid plan type: {plan}")
        account = await self._accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("User", account_id)

        credits = SUBSCRIPTION_CREDITS[plan]
        start = utcnow()
        holder = IndividualHolder(self._session, account)
        current = await holder.get_balance()
        if credits != current:
            await holder.credit(
                credits - current,
                "admin_add" if admin_id else "purchase",
                admin_id=admin_id,
                description=f"Subscription plan assigned: {plan}",
            )
        updated = await self._accounts.update(
            account_id,
            subscription_type=plan,
            subscription_status="active",
            monthly_usage=0,
            billing_cycle_start=start,
            billing_cycle_end=billing_cycle_end(plan, start),
        )
        logger.info(
            "Assigned plan %s to account %s (%d credits, admin=%s)",
            plan, account_id, credits, admin_id,
        )
        return updated  # type: ignore[return-value]

    async def assign_group_plan(
        self, group: Group, plan: str, *, admin_id: str | None = None,
    ) -> Group:
        if plan not in GROUP_SUBSCRIPTION_CREDITS:
            raise ValidationError(f"Invalid group plan type: {plan}")
        credits = GROUP_SUBSCRIPTION_CREDITS[plan]
        start = utcnow()
        holder = GroupHolder(self._session, group)
        current = await holder.get_balance()
        if credits != current:
            await holder.credit(
                credits - current,
                "admin_add" if admin_id else "purchase",
                admin_id=admin_id,
                description=f"Group subscription plan assigned: {plan}",
            )
        updated = await self._groups.update(
            group.id,
            subscription_type=plan,
            subscription_status="active",
            max_members=GROUP_MAX_MEMBERS[plan],
            monthly_usage=0,
            billing_cycle_start=start,
            billing_cycle_end=billing_cycle_end(plan, start),
        )
        return updated  # type: ignore[return-value]

    async def reset_monthly_credits(self) -> dict[str, int]:
        """Renew allocations for every subscription whose billing cycle has ended."""
        now = utcnow()
        users_reset = 0
        for account in await self._accounts.list_due_for_reset(now):
            credits = SUBSCRIPTION_CREDITS.get(account.subscription_type, 0)
            holder = IndividualHolder(self._session, account)
            delta = credits - await holder.get_balance()
            if delta:
                await holder.credit(
                    delta,
                    "subscription_reset",
                    description=f"Monthly credit reset: {account.subscription_type}",
                )
            await self._accounts.update(
                account.id,
                monthly_usage=0,
                billing_cycle_start=now,
                billing_cycle_end=billing_cycle_end(account.subscription_type, now),
            )
            users_reset += 1
            logger.info("[CREDIT RESET] Account %s credits renewed: %d", account.email, credits)

        groups_reset = 0
        for group in await self._groups.list_due_for_reset(now):
            credits = GROUP_SUBSCRIPTION_CREDITS.get(group.subscription_type, 0)
            holder = GroupHolder(self._session, group)
            delta = credits - await holder.get_balance()
            if delta:
                await holder.credit(
                    delta,
                    "subscription_reset",
                    description=f"Monthly credit reset: {group.subscription_type}",
                )
            await self._groups.update(
                group.id,
                monthly_usage=0,
                billing_cycle_start=now,
                billing_cycle_end=billing_cycle_end(group.subscription_type, now),
            )
            groups_reset += 1
            logger.info("[CREDIT RESET] Group %s credits renewed: %d", group.name, credits)

        return {"users_reset": users_reset, "groups_reset": groups_reset}

    async def check_subscription_expiry(self) -> dict[str, int]:
        """Expire one-time packs whose validity window has passed."""
        now = utcnow()
        expired = 0
        for account in await self._accounts.list_expired_one_time(now):
            holder = IndividualHolder(self._session, account)
            remaining = await holder.get_balance()
            if remaining:
                await holder.credit(
                    -remaining,
                    "subscription_reset",
                    description=f"One-time credits expired: {account.subscription_type}",
                )
            await self._accounts.update(account.id, subscription_status="expired")
            expired += 1
            logger.info("[EXPIRY] Account %s one-time plan expired", account.email)
        return {"expired": expired}
