"""Training-data curation schemas."""

from datetime import datetime
from typing import Any

from rexeli.schemas.common import CamelModel


class TrainingDocumentOut(CamelModel):
    id: str
    file_name: str
    file_path: str
    file_url: str | None = None
    document_type: str
    processing_status: str
    processing_error: str | None = None
    extraction_confidence: float | None = None
    verification_status: str
    is_verified: bool
    quality_score: float | None = None
    dataset_split: str | None = None
    include_in_training: bool
    verified_at: datetime | None = None
    created_at: datetime


class TrainingDocumentDetailOut(TrainingDocumentOut):
    raw_extraction: Any = None
    verified_extraction: Any = None
    verification_notes: str | None = None


class BatchUploadOut(CamelModel):
    document_type: str
    uploaded: list[TrainingDocumentOut]
    failed: list[str]


class ProcessBatchRequest(CamelModel):
    document_type: str
    limit: int = 10


class ProcessBatchOut(CamelModel):
    processed: int
    failed: int
    document_ids: list[str]


class VerifyRequest(CamelModel):
    verified_extraction: dict[str, Any] | None = None
    quality_score: float | None = None
    verification_notes: str | None = None


class VerifyOut(CamelModel):
    document: TrainingDocumentOut
    fine_tuning_triggered: bool
    fine_tuning_job_id: str | None = None
    message: str


class RejectRequest(CamelModel):
    reason: str | None = None


class AutoSplitRequest(CamelModel):
    document_type: str
    seed: int | None = None


class AutoSplitOut(CamelModel):
    train: int
    validation: int


class ExportRequest(CamelModel):
    document_type: str


class ExportOut(CamelModel):
    run_id: str
    train_file_path: str | None = None
    validation_file_path: str | None = None
    train_examples: int
    validation_examples: int
    skipped_examples: int


class TypeMetricsOut(CamelModel):
    document_type: str
    total_documents: int = 0
    pending_documents: int = 0
    completed_documents: int = 0
    failed_documents: int = 0
    verified_documents: int = 0
    rejected_documents: int = 0
    train_set_size: int = 0
    validation_set_size: int = 0
    avg_quality_score: float | None = None
    ready_for_training: bool = False


class MetricsOut(CamelModel):
    by_type: list[TypeMetricsOut]
    total_documents: int
    total_verified: int
    ready_types: list[str]


class FineTuningJobOut(CamelModel):
    id: str
    document_type: str
    status: str
    base_model: str
    openai_job_id: str | None = None
    fine_tuned_model: str | None = None
    training_examples_count: int
    validation_examples_count: int
    triggered_by: str
    error_message: str | None = None
    notes: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    created_at: datetime


class JobProgressOut(CamelModel):
    current_step: str
    percentage: int


class FineTuningStatusOut(CamelModel):
    job: FineTuningJobOut
    progress: JobProgressOut | None = None


class MonitorOut(CamelModel):
    checked: int
    succeeded: int
    failed: int
    still_running: int
    errors: int
