"""Training-data curation endpoints (admin only)."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.exceptions import AppException
from rexeli.core.pagination import PaginationParams
from rexeli.core.response import DataResponse, ListResponse, paginated
from rexeli.core.security import require_admin
from rexeli.db.base import get_db
from rexeli.domain.account import Account
from rexeli.routers.v1.processing import read_upload
from rexeli.schemas.training import (
    AutoSplitOut,
    AutoSplitRequest,
    BatchUploadOut,
    ExportOut,
    ExportRequest,
    FineTuningJobOut,
    FineTuningStatusOut,
    MetricsOut,
    MonitorOut,
    ProcessBatchOut,
    ProcessBatchRequest,
    RejectRequest,
    TrainingDocumentDetailOut,
    TrainingDocumentOut,
    VerifyOut,
    VerifyRequest,
)
from rexeli.services.training_service import TrainingService, job_progress

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/training", tags=["Training"])


def _svc(session: AsyncSession) -> TrainingService:
    return TrainingService(session)


@router.post("/batch-upload", response_model=DataResponse[BatchUploadOut])
async def batch_upload(
    files: List[UploadFile] = File(...),
    document_type: str = Form(..., alias="documentType"),
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """Store training files; each becomes a pending training document."""
    uploads = []
    rejected = []
    for file in files:
        try:
            uploads.append(await read_upload(file))
        except AppException as exc:
            logger.warning("Skipping training file %s: %s", file.filename, exc.message)
            rejected.append(file.filename or "")
    created, failed = await _svc(session).batch_upload(uploads, document_type, admin_id=admin.id)
    return {
        "data": BatchUploadOut(
            document_type=document_type,
            uploaded=[TrainingDocumentOut.model_validate(d) for d in created],
            failed=rejected + failed,
        ),
        "message": f"Uploaded {len(created)} of {len(files)} file(s)",
    }


@router.post("/process-batch", response_model=DataResponse[ProcessBatchOut])
async def process_batch(
    body: ProcessBatchRequest,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    result = await _svc(session).process_batch(body.document_type, limit=body.limit)
    return {"data": ProcessBatchOut(**result)}


@router.get("/documents", response_model=ListResponse[TrainingDocumentOut])
async def list_training_documents(
    document_type: Optional[str] = Query(default=None, alias="documentType"),
    verification_status: Optional[str] = Query(default=None, alias="verificationStatus"),
    processing_status: Optional[str] = Query(default=None, alias="processingStatus"),
    pagination: PaginationParams = Depends(),
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    items, total = await _svc(session).list_documents(
        pagination,
        document_type=document_type,
        verification_status=verification_status,
        processing_status=processing_status,
    )
    return paginated(
        [TrainingDocumentOut.model_validate(d) for d in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/documents/{document_id}", response_model=DataResponse[TrainingDocumentDetailOut])
async def get_training_document(
    document_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    document = await _svc(session).get_document(document_id)
    return {"data": TrainingDocumentDetailOut.model_validate(document)}


@router.patch("/verify/{document_id}", response_model=DataResponse[VerifyOut])
async def verify_training_document(
    document_id: str,
    body: VerifyRequest,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """Accept a reviewed extraction as ground truth; may start a fine-tuning job."""
    document, job = await _svc(session).verify(
        document_id,
        body.verified_extraction,
        body.quality_score,
        notes=body.verification_notes,
        admin_id=admin.id,
    )
    message = (
        f"Document verified. Fine-tuning job {job.id} started for {document.document_type}."
        if job else "Document verified successfully"
    )
    return {
        "data": VerifyOut(
            document=TrainingDocumentOut.model_validate(document),
            fine_tuning_triggered=job is not None,
            fine_tuning_job_id=job.id if job else None,
            message=message,
        )
    }


@router.patch("/reject/{document_id}", response_model=DataResponse[TrainingDocumentOut])
async def reject_training_document(
    document_id: str,
    body: RejectRequest,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    document = await _svc(session).reject(document_id, body.reason, admin_id=admin.id)
    return {"data": TrainingDocumentOut.model_validate(document), "message": "Document rejected"}


@router.post("/auto-split", response_model=DataResponse[AutoSplitOut])
async def auto_split(
    body: AutoSplitRequest,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    result = await _svc(session).auto_split(body.document_type, seed=body.seed)
    return {"data": AutoSplitOut(**result)}


@router.post("/export", response_model=DataResponse[ExportOut])
async def export_dataset(
    body: ExportRequest,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """Write chat-format JSONL training and validation files."""
    run = await _svc(session).export(body.document_type, admin_id=admin.id)
    return {
        "data": ExportOut(
            run_id=run.id,
            train_file_path=run.train_file_path,
            validation_file_path=run.validation_file_path,
            train_examples=run.train_examples,
            validation_examples=run.validation_examples,
            skipped_examples=run.skipped_examples,
        )
    }


@router.get("/metrics", response_model=DataResponse[MetricsOut])
async def training_metrics(
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    return {"data": MetricsOut(**await _svc(session).metrics())}


@router.get("/fine-tune/jobs", response_model=ListResponse[FineTuningJobOut])
async def list_fine_tuning_jobs(
    document_type: Optional[str] = Query(default=None, alias="documentType"),
    pagination: PaginationParams = Depends(),
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    items, total = await _svc(session).list_jobs(pagination, document_type=document_type)
    return paginated(
        [FineTuningJobOut.model_validate(j) for j in items],
        total, pagination.page, pagination.limit,
    )


@router.get("/fine-tune/status/{job_id}", response_model=DataResponse[FineTuningStatusOut])
async def fine_tuning_job_status(
    job_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """Refresh one job from the provider and report its progress."""
    job = await _svc(session).refresh_job_status(job_id)
    return {
        "data": FineTuningStatusOut(
            job=FineTuningJobOut.model_validate(job), progress=job_progress(job.status),
        ),
        "message": f"Job status: {job.status}",
    }


@router.post("/fine-tune/monitor", response_model=DataResponse[MonitorOut])
async def monitor_fine_tuning_jobs(
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    counts = await _svc(session).monitor_jobs()
    logger.info("[ADMIN ACTION] Admin %s ran the fine-tuning monitor", admin.id)
    return {"data": MonitorOut(**counts)}
