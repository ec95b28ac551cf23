"""Payment schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from rexeli.schemas.common import CamelModel


class PaymentCreate(CamelModel):
    account_id: str | None = None
    provider_payment_id: str | None = None
    amount: Decimal = Field(ge=0)
    currency: str = "usd"
    plan_type: str | None = None
    status: str = "succeeded"
    payment_method: str | None = None
    description: str | None = None


class PaymentOut(CamelModel):
    id: str
    account_id: str | None = None
    provider_payment_id: str | None = None
    amount: Decimal
    currency: str
    plan_type: str | None = None
    status: str
    payment_method: str | None = None
    description: str | None = None
    created_at: datetime


class PaymentStatsOut(CamelModel):
    total_revenue: Decimal
    monthly_revenue: Decimal
    total_payments: int
    active_subscriptions: int
