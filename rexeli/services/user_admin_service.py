"""Admin user management: search, detail, activation, credits and plans."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.exceptions import NotFoundError, ValidationError
from rexeli.core.pagination import PaginationParams
from rexeli.domain.account import Account
from rexeli.repositories.account import AccountRepository
from rexeli.repositories.ledger import CreditRepository, UsageLogRepository
from rexeli.services.usage_service import usage_stats

logger = logging.getLogger(__name__)


class UserAdminService:
    def __init__(self, session: AsyncSession):
        self._accounts = AccountRepository(session)
        self._usage = UsageLogRepository(session)
        self._credits = CreditRepository(session)

    async def list_users(
        self,
        pagination: PaginationParams,
        *,
        search: str | None = None,
        status: str | None = None,
    ) -> tuple[list[Account], int]:
        return await self._accounts.search(
            search=search,
            status=status,
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
        )

    async def get_user(self, user_id: str) -> Account:
        account = await self._accounts.get_by_id(user_id)
        if account is None:
            raise NotFoundError("User", user_id)
        return account

    async def get_user_detail(self, user_id: str) -> dict:
        account = await self.get_user(user_id)
        return {
            "account": account,
            "usage_logs": await self._usage.recent_for_account(user_id, limit=20),
            "transactions": await self._credits.list_transactions(user_id, limit=20),
            "stats": usage_stats(await self._usage.totals(account_id=user_id)),
        }

    async def set_active(self, user_id: str, is_active: bool, *, admin: Account) -> Account:
        if user_id == admin.id and not is_active:
            raise ValidationError("You cannot deactivate your own account")
        await self.get_user(user_id)
        updated = await self._accounts.update(user_id, is_active=is_active)
        logger.info(
            "[ADMIN ACTION] Admin %s %s account %s",
            admin.email, "activated" if is_active else "deactivated", user_id,
        )
        return updated  # type: ignore[return-value]
