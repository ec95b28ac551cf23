"""SQLAlchemy ORM model for recorded payments."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rexeli.db.base import Base
from rexeli.domain.mixins import TimestampMixin, UUIDMixin

REVENUE_STATUSES = ("succeeded", "paid")


class Payment(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "payments"

    account_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    provider_payment_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="usd", nullable=False)
    plan_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    # "succeeded" | "paid" | "pending" | "failed" | "refunded"
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
