"""Payment listing, revenue statistics and manual payment records."""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.exceptions import ConflictError, NotFoundError
from rexeli.core.pagination import PaginationParams
from rexeli.domain.mixins import utcnow
from rexeli.domain.payment import Payment
from rexeli.repositories.account import AccountRepository
from rexeli.repositories.payment import PaymentRepository
from rexeli.schemas.payment import PaymentCreate

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, session: AsyncSession):
        self._payments = PaymentRepository(session)
        self._accounts = AccountRepository(session)

    async def list_payments(
        self,
        pagination: PaginationParams,
        *,
        status: str | None = None,
        plan_type: str | None = None,
    ) -> tuple[list[Payment], int]:
        return await self._payments.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters={"status": status, "plan_type": plan_type},
        )

    async def stats(self) -> dict[str, Decimal | int]:
        month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        active = await self._accounts.count(subscription_status="active")
        free = await self._accounts.count(subscription_status="active", subscription_type="free")
        return {
            "total_revenue": await self._payments.revenue(),
            "monthly_revenue": await self._payments.revenue(since=month_start),
            "total_payments": await self._payments.count(),
            "active_subscriptions": active - free,
        }

    async def record_payment(self, data: PaymentCreate, *, admin_id: str) -> Payment:
        if data.account_id and await self._accounts.get_by_id(data.account_id) is None:
            raise NotFoundError("User", data.account_id)
        if data.provider_payment_id:
            existing, _ = await self._payments.list(
                limit=1, filters={"provider_payment_id": data.provider_payment_id},
            )
            if existing:
                raise ConflictError(
                    f"Payment '{data.provider_payment_id}' has already been recorded"
                )
        payment = await self._payments.create(
            **data.model_dump(exclude_none=True) | {"currency": data.currency.lower()},
        )
        logger.info(
            "[ADMIN ACTION] Admin %s recorded payment %s of %s %s",
            admin_id, payment.id, payment.amount, payment.currency,
        )
        return payment
