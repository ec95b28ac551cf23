"""Admin analytics schemas."""

from decimal import Decimal

from rexeli.schemas.common import CamelModel


class UserAnalyticsOut(CamelModel):
    total: int
    active: int
    new_this_month: int
    active_subscriptions: int
    free_users: int


class UsageAnalyticsOut(CamelModel):
    total_documents: int
    successful: int
    total_pages: int
    total_credits_used: int
    monthly_documents: int
    monthly_pages: int
    success_rate: float


class CreditAnalyticsOut(CamelModel):
    total_issued: int
    total_used: int
    individual_balance: int
    group_balance: int


class RevenueAnalyticsOut(CamelModel):
    total: Decimal
    monthly: Decimal


class AnalyticsOut(CamelModel):
    users: UserAnalyticsOut
    subscriptions: dict[str, int]
    usage: UsageAnalyticsOut
    credits: CreditAnalyticsOut
    revenue: RevenueAnalyticsOut
