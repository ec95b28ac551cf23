"""SQLAlchemy ORM models for the fine-tuning data curation pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rexeli.db.base import Base
from rexeli.domain.mixins import CreatedAtMixin, TimestampMixin, UUIDMixin


class TrainingDocument(Base, UUIDMixin, TimestampMixin):
    """A source document whose extraction is curated for fine-tuning."""

    __tablename__ = "training_documents"

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    document_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # "pending" | "processing" | "completed" | "failed"
    processing_status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False, index=True
    )
    processing_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    raw_extraction: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    extraction_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # "unverified" | "in_review" | "verified" | "rejected"
    verification_status: Mapped[str] = mapped_column(
        String(20), default="unverified", nullable=False, index=True
    )
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_extraction: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    verified_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    verification_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quality_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # "train" | "validation" | "test"
    dataset_split: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    include_in_training: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)


class VerificationEdit(Base, UUIDMixin, CreatedAtMixin):
    """Reviewer action on a training document (verify or reject)."""

    __tablename__ = "verification_edits"

    training_document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("training_documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    editor_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    before_data: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    after_data: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    changes_made: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # "verify" | "reject"
    verification_action: Mapped[str] = mapped_column(String(20), nullable=False)


class TrainingTrigger(Base, UUIDMixin, TimestampMixin):
    """Per document type counter deciding when to start a fine-tuning job."""

    __tablename__ = "training_triggers"

    document_type: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    trigger_interval: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    min_documents_required: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    last_trigger_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    next_trigger_at: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    auto_trigger_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    total_triggers: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_job_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    last_triggered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class FineTuningJob(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "fine_tuning_jobs"

    document_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    # "pending" | "running" | "succeeded" | "failed" | "cancelled"
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    base_model: Mapped[str] = mapped_column(String(100), nullable=False)
    openai_job_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    openai_file_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    openai_validation_file_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    fine_tuned_model: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    training_examples_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    validation_examples_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    training_file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    validation_file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # "auto" | "manual"
    triggered_by: Mapped[str] = mapped_column(String(36), default="manual", nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class TrainingRun(Base, UUIDMixin, CreatedAtMixin):
    """Record of one JSONL export."""

    __tablename__ = "training_runs"

    document_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    train_file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    validation_file_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    train_examples: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    validation_examples: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped_examples: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    exported_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
