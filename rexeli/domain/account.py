"""SQLAlchemy ORM model for subscriber accounts.

Accounts are provisioned by the external auth provider's sign-up hook; the
primary key is the provider's user id (the ``sub`` claim of its tokens).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rexeli.db.base import Base
from rexeli.domain.mixins import TimestampMixin, UUIDMixin


class Account(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("credits >= 0", name="ck_accounts_credits_non_negative"),)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # "user" | "admin"
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)

    # Prepaid balance: 1 credit = 1 processed page
    credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    subscription_type: Mapped[str] = mapped_column(String(50), default="free", nullable=False)
    # "active" | "inactive" | "cancelled" | "expired"
    subscription_status: Mapped[str] = mapped_column(
        String(20), default="active", nullable=False
    )
    monthly_usage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lifetime_usage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    billing_cycle_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    billing_cycle_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Non-null while the account draws from a shared group pool
    group_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("user_groups.id", ondelete="SET NULL"), nullable=True, index=True
    )
