"""Group administration schemas."""

from datetime import datetime

from rexeli.schemas.common import CamelModel


class GroupCreate(CamelModel):
    name: str
    owner_id: str
    subscription_type: str
    description: str | None = None
    document_visibility: str = "shared"
    initial_credits: int | None = None


class GroupUpdate(CamelModel):
    name: str | None = None
    description: str | None = None
    subscription_type: str | None = None
    subscription_status: str | None = None
    document_visibility: str | None = None
    max_members: int | None = None
    is_active: bool | None = None


class GroupOut(CamelModel):
    id: str
    name: str
    description: str | None = None
    owner_id: str
    credits: int
    monthly_usage: int
    lifetime_usage: int
    subscription_type: str
    subscription_status: str
    billing_cycle_end: datetime | None = None
    document_visibility: str
    max_members: int
    is_active: bool
    member_count: int = 0
    created_at: datetime


class GroupStatsOut(CamelModel):
    total_groups: int
    active_groups: int
    total_credits: int
    total_members: int


class GroupListOut(CamelModel):
    groups: list[GroupOut]
    total: int
    stats: GroupStatsOut


class MemberAdd(CamelModel):
    user_id: str
    role: str = "member"


class MemberOut(CamelModel):
    id: str
    account_id: str
    email: str
    name: str | None = None
    role: str
    is_active: bool
    joined_at: datetime


class CapacityOut(CamelModel):
    current: int
    max: int
    can_add_more: bool


class MembersOut(CamelModel):
    members: list[MemberOut]
    capacity: CapacityOut


class GroupTransactionOut(CamelModel):
    id: str
    account_id: str | None = None
    amount: int
    transaction_type: str
    description: str | None = None
    admin_id: str | None = None
    created_at: datetime


class GroupCreditsOut(CamelModel):
    group_id: str
    credits: int
    transactions: list[GroupTransactionOut]
    total: int


class CreditBalanceOut(CamelModel):
    new_balance: int
