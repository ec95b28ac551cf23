"""Credit ledger and usage-log repository.

Balance mutations are single conditional UPDATE statements so that two
requests racing on the same balance are serialized by the database: the
``WHERE credits >= n`` guard is evaluated under the row's write lock and
the losing statement simply matches zero rows.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.domain.account import Account
from rexeli.domain.group import Group
from rexeli.domain.ledger import CreditTransaction, GroupCreditTransaction, UsageLog
from rexeli.repositories.base import BaseRepository


class CreditRepository:
    """Atomic balance primitives plus the two append-only ledgers."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def account_balance(self, account_id: str) -> int | None:
        result = await self._session.execute(
            select(Account.credits).where(Account.id == account_id)
        )
        return result.scalar_one_or_none()

    async def group_balance(self, group_id: str) -> int | None:
        result = await self._session.execute(
            select(Group.credits).where(Group.id == group_id)
        )
        return result.scalar_one_or_none()

    async def decrement_account(self, account_id: str, amount: int) -> bool:
        result = await self._session.execute(
            update(Account)
            .where(Account.id == account_id, Account.credits >= amount)
            .values(
                credits=Account.credits - amount,
                monthly_usage=Account.monthly_usage + amount,
                lifetime_usage=Account.lifetime_usage + amount,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def decrement_group(self, group_id: str, amount: int) -> bool:
        result = await self._session.execute(
            update(Group)
            .where(
                Group.id == group_id,
                Group.is_active.is_(True),
                Group.credits >= amount,
            )
            .values(
                credits=Group.credits - amount,
                monthly_usage=Group.monthly_usage + amount,
                lifetime_usage=Group.lifetime_usage + amount,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_account(self, account_id: str, amount: int) -> bool:
        result = await self._session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(credits=Account.credits + amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def increment_group(self, group_id: str, amount: int) -> bool:
        result = await self._session.execute(
            update(Group)
            .where(Group.id == group_id)
            .values(credits=Group.credits + amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Ledgers
    # ------------------------------------------------------------------

    async def add_transaction(self, **kwargs: Any) -> CreditTransaction:
        row = CreditTransaction(**kwargs)
        self._session.add(row)
        await self._session.flush()
        return row

    async def add_group_transaction(self, **kwargs: Any) -> GroupCreditTransaction:
        row = GroupCreditTransaction(**kwargs)
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_transactions(
        self, account_id: str, *, limit: int = 30,
    ) -> list[CreditTransaction]:
        result = await self._session.execute(
            select(CreditTransaction)
            .where(CreditTransaction.account_id == account_id)
            .order_by(CreditTransaction.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_group_transactions(
        self, group_id: str, *, offset: int = 0, limit: int = 50,
    ) -> tuple[list[GroupCreditTransaction], int]:
        total = (
            await self._session.execute(
                select(func.count())
                .select_from(GroupCreditTransaction)
                .where(GroupCreditTransaction.group_id == group_id)
            )
        ).scalar_one()
        result = await self._session.execute(
            select(GroupCreditTransaction)
            .where(GroupCreditTransaction.group_id == group_id)
            .order_by(GroupCreditTransaction.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def ledger_totals(self) -> dict[str, int]:
        """Credits granted and consumed across both ledgers."""
        issued = used = 0
        for table in (CreditTransaction, GroupCreditTransaction):
            row = (
                await self._session.execute(
                    select(
                        func.coalesce(func.sum(case((table.amount > 0, table.amount), else_=0)), 0),
                        func.coalesce(func.sum(case((table.amount < 0, -table.amount), else_=0)), 0),
                    )
                )
            ).one()
            issued += int(row[0])
            used += int(row[1])
        return {"issued": issued, "used": used}


class UsageLogRepository(BaseRepository[UsageLog]):
    model = UsageLog

    async def recent_for_account(self, account_id: str, *, limit: int = 50) -> list[UsageLog]:
        result = await self._session.execute(
            select(UsageLog)
            .where(UsageLog.account_id == account_id)
            .order_by(UsageLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def totals(
        self, *, account_id: str | None = None, since: datetime | None = None,
    ) -> dict[str, int]:
        """Aggregate counters over processing attempts, platform-wide or for one account."""
        q = select(
            func.count(UsageLog.id),
            func.coalesce(
                func.sum(case((UsageLog.processing_status == "success", 1), else_=0)),
                0,
            ),
            func.coalesce(func.sum(UsageLog.page_count), 0),
            func.coalesce(func.sum(UsageLog.credits_used), 0),
        )
        if account_id is not None:
            q = q.where(UsageLog.account_id == account_id)
        if since is not None:
            q = q.where(UsageLog.created_at >= since)
        row = (await self._session.execute(q)).one()
        return {
            "total": row[0],
            "successful": int(row[1]),
            "pages": int(row[2]),
            "credits": int(row[3]),
        }
