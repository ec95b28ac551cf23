"""SQLAlchemy ORM model for processed-document history."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from rexeli.db.base import Base
from rexeli.domain.mixins import TimestampMixin, UUIDMixin


class UserDocument(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "user_documents"

    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Stamped when the owner belongs to a group; drives shared visibility
    group_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    document_type: Mapped[str] = mapped_column(String(50), nullable=False)
    extracted_data: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    page_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    credits_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processing_status: Mapped[str] = mapped_column(String(20), default="completed", nullable=False)
