"""Account repository."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func, or_, select, update

from rexeli.domain.account import Account
from rexeli.repositories.base import BaseRepository


class AccountRepository(BaseRepository[Account]):
    model = Account

    async def get_by_email(self, email: str) -> Account | None:
        result = await self._session.execute(
            select(Account).where(Account.email == email.lower())
        )
        return result.scalars().first()

    async def search(
        self,
        *,
        search: str | None,
        status: str | None,
        offset: int,
        limit: int,
        order_by: str = "created_at",
        order: str = "desc",
    ) -> tuple[list[Account], int]:
        """Admin listing: substring match on email/name, filter on subscription status."""
        q = self._base_query()
        if search:
            pattern = f"%{search}%"
            q = q.where(or_(Account.email.ilike(pattern), Account.name.ilike(pattern)))
        if status:
            q = q.where(Account.subscription_status == status)
        return await self._paginate(
            q, offset=offset, limit=limit, order_by=order_by, order=order,
        )

    async def set_group(self, account_id: str, group_id: str | None) -> None:
        await self._session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(group_id=group_id)
        )

    async def clear_group_for_all(self, group_id: str) -> int:
        result = await self._session.execute(
            update(Account)
            .where(Account.group_id == group_id)
            .values(group_id=None)
        )
        return result.rowcount

    async def list_due_for_reset(self, now: datetime) -> list[Account]:
        """Active recurring subscriptions whose billing cycle has ended."""
        result = await self._session.execute(
            select(Account).where(
                Account.subscription_status == "active",
                Account.subscription_type != "free",
                Account.subscription_type.not_like("one_time%"),
                Account.billing_cycle_end.is_not(None),
                Account.billing_cycle_end <= now,
            )
        )
        return list(result.scalars().all())

    async def list_expired_one_time(self, now: datetime) -> list[Account]:
        result = await self._session.execute(
            select(Account).where(
                Account.subscription_status == "active",
                Account.subscription_type.like("one_time%"),
                Account.billing_cycle_end.is_not(None),
                Account.billing_cycle_end <= now,
            )
        )
        return list(result.scalars().all())

    async def summary(self, month_start: datetime) -> dict[str, int]:
        row = (
            await self._session.execute(
                select(
                    func.count(Account.id),
                    func.coalesce(func.sum(case((Account.is_active.is_(True), 1), else_=0)), 0),
                    func.coalesce(func.sum(case((Account.created_at >= month_start, 1), else_=0)), 0),
                    func.coalesce(func.sum(case((Account.subscription_type == "free", 1), else_=0)), 0),
                    func.coalesce(func.sum(Account.credits), 0),
                )
            )
        ).one()
        return {
            "total": row[0],
            "active": int(row[1]),
            "new_this_month": int(row[2]),
            "free_users": int(row[3]),
            "credits": int(row[4]),
        }

    async def active_plan_counts(self) -> dict[str, int]:
        """Accounts with an active subscription, per plan."""
        result = await self._session.execute(
            select(Account.subscription_type, func.count())
            .where(Account.subscription_status == "active")
            .group_by(Account.subscription_type)
        )
        return {plan: n for plan, n in result.all()}
