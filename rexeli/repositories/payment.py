"""Payment repository."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select

from rexeli.domain.payment import REVENUE_STATUSES, Payment
from rexeli.repositories.base import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    model = Payment

    async def revenue(self, since: datetime | None = None) -> Decimal:
        q = select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.status.in_(REVENUE_STATUSES)
        )
        if since is not None:
            q = q.where(Payment.created_at >= since)
        value = (await self._session.execute(q)).scalar_one()
        return Decimal(str(value))
