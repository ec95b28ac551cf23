"""SQLAlchemy ORM models for shared-credit groups and their memberships."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rexeli.db.base import Base
from rexeli.domain.mixins import TimestampMixin, UUIDMixin, utcnow


class Group(Base, UUIDMixin, TimestampMixin):
    """A billing pool shared by several accounts."""

    __tablename__ = "user_groups"
    __table_args__ = (CheckConstraint("credits >= 0", name="ck_user_groups_credits_non_negative"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Plain reference: accounts.group_id already points back at this table
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    monthly_usage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lifetime_usage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    subscription_type: Mapped[str] = mapped_column(
        String(50), default="professional_monthly", nullable=False
    )
    # "active" | "inactive" | "cancelled" | "expired"
    subscription_status: Mapped[str] = mapped_column(
        String(20), default="active", nullable=False
    )
    billing_cycle_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    billing_cycle_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # "shared" | "private"
    document_visibility: Mapped[str] = mapped_column(
        String(20), default="shared", nullable=False
    )
    max_members: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)


class GroupMember(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "group_members"

    group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # One group per account
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    # "owner" | "member"
    role: Mapped[str] = mapped_column(String(20), default="member", nullable=False)
    invited_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
