"""Append-only accounting rows: usage logs and credit ledgers.

None of these rows are updated or deleted by application code (group ledger
rows go away only together with their group).
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rexeli.db.base import Base
from rexeli.domain.mixins import CreatedAtMixin, UUIDMixin

TRANSACTION_TYPES = (
    "purchase",
    "deduction",
    "admin_add",
    "subscription_reset",
    "refund",
    "bonus",
    "initial_creation",
)


class UsageLog(Base, UUIDMixin, CreatedAtMixin):
    """One row per processing attempt, successful or not."""

    __tablename__ = "usage_logs"

    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    group_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    document_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    page_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    credits_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # "success" | "failed"
    processing_status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    processing_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class CreditTransaction(Base, UUIDMixin, CreatedAtMixin):
    """Signed balance change on an individual account."""

    __tablename__ = "credit_transactions"

    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)
    admin_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class GroupCreditTransaction(Base, UUIDMixin, CreatedAtMixin):
    """Signed balance change on a group pool."""

    __tablename__ = "group_credit_transactions"

    group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Member whose document consumed the credits (deductions only)
    account_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)
    admin_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
