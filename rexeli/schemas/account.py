"""Account, credit and usage schemas."""

from datetime import datetime
from typing import Any

from pydantic import Field

from rexeli.schemas.common import CamelModel


class AccountOut(CamelModel):
    id: str
    email: str
    name: str | None = None
    role: str
    credits: int
    subscription_type: str
    subscription_status: str
    monthly_usage: int
    lifetime_usage: int
    billing_cycle_end: datetime | None = None
    is_active: bool
    group_id: str | None = None
    created_at: datetime


class CreditInfoOut(CamelModel):
    credits: int
    individual_credits: int
    credit_source: str
    group_id: str | None = None
    group_name: str | None = None
    subscription_type: str
    subscription_status: str
    monthly_usage: int
    lifetime_usage: int
    billing_cycle_end: datetime | None = None
    low_credit_threshold: int


class UsageLogOut(CamelModel):
    id: str
    document_type: str | None = None
    file_name: str | None = None
    page_count: int
    credits_used: int
    processing_status: str
    processing_time_ms: int | None = None
    error_message: str | None = None
    created_at: datetime


class CreditTransactionOut(CamelModel):
    id: str
    amount: int
    transaction_type: str
    description: str | None = None
    admin_id: str | None = None
    created_at: datetime


class UsageStatsOut(CamelModel):
    total_processed: int
    successful: int
    failed: int
    total_pages: int
    total_credits_used: int
    success_rate: float
    avg_pages_per_doc: float


class UsageOut(CamelModel):
    usage_logs: list[UsageLogOut]
    transactions: list[CreditTransactionOut]
    stats: UsageStatsOut


class DocumentSummaryOut(CamelModel):
    id: str
    account_id: str
    group_id: str | None = None
    file_name: str
    file_path: str | None = None
    document_type: str
    page_count: int
    credits_used: int
    processing_status: str
    created_at: datetime


class DocumentOut(DocumentSummaryOut):
    extracted_data: Any = None


class DashboardStatsOut(CamelModel):
    total_documents: int
    monthly_documents: int
    successful: int
    total_pages: int
    success_rate: float


class DashboardGroupOut(CamelModel):
    id: str
    name: str
    description: str | None = None
    credits: int
    subscription_type: str
    subscription_status: str
    document_visibility: str
    is_active: bool
    role: str
    is_owner: bool
    member_count: int


class DashboardOut(CamelModel):
    credits: CreditInfoOut
    stats: DashboardStatsOut
    recent_documents: list[DocumentSummaryOut]
    group: DashboardGroupOut | None = None


class AccountDetailOut(CamelModel):
    account: AccountOut
    usage_logs: list[UsageLogOut]
    transactions: list[CreditTransactionOut]
    stats: UsageStatsOut


class AccountStatusUpdate(CamelModel):
    is_active: bool


class PlanAssignment(CamelModel):
    plan_type: str = Field(min_length=1)
