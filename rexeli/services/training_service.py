"""Training-data curation: batch intake, review, dataset export and fine-tune triggers.

Verified extractions are the ground truth. Every N newly verified documents of
a type start a fine-tuning job for that type; the counter lives in
``training_triggers``.
"""

from __future__ import annotations

import json
import logging
import random
from datetime import datetime, timezone
from typing import Any

from openai import OpenAIError
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.config import settings
from rexeli.core.exceptions import AppException, NotFoundError, ValidationError
from rexeli.core.pagination import PaginationParams
from rexeli.domain.mixins import utcnow
from rexeli.domain.training import FineTuningJob, TrainingDocument, TrainingRun
from rexeli.repositories.training import (
    FineTuningJobRepository,
    TrainingDocumentRepository,
    TrainingRunRepository,
    TrainingTriggerRepository,
    VerificationEditRepository,
)
from rexeli.services.openai_service import (
    DocumentAIService,
    get_ai_service,
    to_data_url,
    translate_openai_error,
)
from rexeli.services.processing import UploadedDocument
from rexeli.services.prompts import TRAINING_DOCUMENT_TYPES, system_prompt_for, user_instruction_for
from rexeli.services.storage import EXPORTS_BUCKET, TRAINING_BUCKET, LocalStorage, get_storage

logger = logging.getLogger(__name__)

TRAIN_SPLIT_RATIO = 0.8
REQUIRED_EXTRACTION_KEYS = ("documentType", "metadata", "data")

# Provider job states onto ours; anything unlisted is still in progress
REMOTE_JOB_STATUSES = {
    "validating_files": "running",
    "queued": "running",
    "running": "running",
    "succeeded": "succeeded",
    "failed": "failed",
    "cancelled": "cancelled",
}
FINISHED_JOB_STATUSES = ("succeeded", "failed", "cancelled")


def job_progress(status: str) -> dict[str, Any] | None:
    """Coarse progress hint; the provider reports no percentage."""
    if status == "pending":
        return {"current_step": "Waiting for submission", "percentage": 0}
    if status == "running":
        return {"current_step": "Training model", "percentage": 50}
    if status == "succeeded":
        return {"current_step": "Completed", "percentage": 100}
    return None


def confidence_score(extraction: dict[str, Any]) -> float:
    """Heuristic completeness score; never 1.0 without a human review."""
    score = 0.5
    metadata = extraction.get("metadata")
    if isinstance(metadata, dict):
        filled = [v for v in metadata.values() if v not in (None, "")]
        score += len(filled) / 10 * 0.2
    data = extraction.get("data")
    if data:
        size = len(json.dumps(data))
        if size > 1000:
            score += 0.15
        elif size > 500:
            score += 0.10
        elif size > 100:
            score += 0.05
    return round(min(score, 0.95), 3)


def summarize_changes(before: dict[str, Any] | None, after: dict[str, Any]) -> str:
    if not before:
        return "Initial verification"
    changes = []
    if before.get("documentType") != after.get("documentType"):
        changes.append(
            f"Document type changed from {before.get('documentType')} to {after.get('documentType')}"
        )
    if before.get("metadata") != after.get("metadata"):
        changes.append("Metadata modified")
    if before.get("data") != after.get("data"):
        changes.append("Data content modified")
    return "; ".join(changes) if changes else "No significant changes detected"


def _check_document_type(document_type: str) -> None:
    if document_type not in TRAINING_DOCUMENT_TYPES:
        raise ValidationError(
            f"Invalid document type. Must be one of: {', '.join(TRAINING_DOCUMENT_TYPES)}"
        )


def _kind_for(mime_type: str | None) -> str:
    return "pdf" if mime_type == "application/pdf" else "image"


class TrainingService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        ai: DocumentAIService | None = None,
        storage: LocalStorage | None = None,
    ):
        self._session = session
        self._ai = ai
        self._storage = storage or get_storage()
        self._documents = TrainingDocumentRepository(session)
        self._edits = VerificationEditRepository(session)
        self._triggers = TrainingTriggerRepository(session)
        self._jobs = FineTuningJobRepository(session)
        self._runs = TrainingRunRepository(session)

    @property
    def ai(self) -> DocumentAIService:
        if self._ai is None:
            self._ai = get_ai_service()
        return self._ai

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def batch_upload(
        self, uploads: list[UploadedDocument], document_type: str, *, admin_id: str,
    ) -> tuple[list[TrainingDocument], list[str]]:
        _check_document_type(document_type)
        if not uploads:
            raise ValidationError("No files provided")

        created: list[TrainingDocument] = []
        failed: list[str] = []
        for upload in uploads:
            try:
                stored = await self._storage.save(
                    TRAINING_BUCKET, document_type, upload.file_name, upload.contents,
                )
            except OSError as exc:
                logger.error("Failed to store training file %s: %s", upload.file_name, exc)
                failed.append(upload.file_name)
                continue
            created.append(await self._documents.create(
                file_name=upload.file_name,
                file_path=stored.path,
                file_url=stored.url,
                file_size_bytes=stored.size,
                mime_type=upload.mime_type,
                document_type=document_type,
                uploaded_by=admin_id,
            ))
        logger.info(
            "Batch upload for %s: %d stored, %d failed", document_type, len(created), len(failed),
        )
        return created, failed

    async def process_batch(self, document_type: str, *, limit: int = 10) -> dict[str, Any]:
        """Run extraction over pending documents; one failure does not stop the batch."""
        _check_document_type(document_type)
        pending = await self._documents.list_pending(document_type, limit=max(1, min(limit, 50)))
        processed: list[str] = []
        failed = 0

        for document in pending:
            doc_id = document.id
            await self._documents.update(doc_id, processing_status="processing")
            await self._session.commit()
            try:
                contents = await self._storage.read(document.file_path)
                extraction = await self.ai.extract(
                    contents, _kind_for(document.mime_type),
                    document.mime_type or "application/pdf", document_type,
                )
            except AppException as exc:
                await self._mark_failed(doc_id, exc.message)
                failed += 1
                continue
            except (OSError, RuntimeError) as exc:
                # Storage reads and PyMuPDF rendering (fitz errors are RuntimeErrors)
                await self._mark_failed(doc_id, str(exc) or type(exc).__name__)
                failed += 1
                continue

            await self._documents.update(
                doc_id,
                processing_status="completed",
                processing_error=None,
                raw_extraction=extraction,
                extraction_confidence=confidence_score(extraction),
                verification_status="in_review",
            )
            await self._session.commit()
            processed.append(doc_id)

        return {"processed": len(processed), "failed": failed, "document_ids": processed}

    async def _mark_failed(self, doc_id: str, error: str) -> None:
        logger.warning("Training extraction failed for %s: %s", doc_id, error)
        await self._documents.update(doc_id, processing_status="failed", processing_error=error)
        await self._session.commit()

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    async def list_documents(
        self,
        pagination: PaginationParams,
        *,
        document_type: str | None = None,
        verification_status: str | None = None,
        processing_status: str | None = None,
    ) -> tuple[list[TrainingDocument], int]:
        return await self._documents.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters={
                "document_type": document_type,
                "verification_status": verification_status,
                "processing_status": processing_status,
            },
        )

    async def get_document(self, document_id: str) -> TrainingDocument:
        document = await self._documents.get_by_id(document_id)
        if document is None:
            raise NotFoundError("Training document", document_id)
        return document

    async def verify(
        self,
        document_id: str,
        verified_extraction: dict[str, Any] | None,
        quality_score: float | None,
        *,
        notes: str | None = None,
        admin_id: str,
    ) -> tuple[TrainingDocument, FineTuningJob | None]:
        if not verified_extraction:
            raise ValidationError("Verified extraction data is required")
        if quality_score is None or not 0 <= quality_score <= 1:
            raise ValidationError("Quality score must be between 0 and 1")
        missing = [k for k in REQUIRED_EXTRACTION_KEYS if k not in verified_extraction]
        if missing:
            raise ValidationError(f"Invalid extraction data: missing {', '.join(missing)}")

        document = await self.get_document(document_id)
        document_type = document.document_type
        before = document.raw_extraction

        updated = await self._documents.update(
            document_id,
            verification_status="verified",
            is_verified=True,
            verified_extraction=verified_extraction,
            verified_by=admin_id,
            verified_at=utcnow(),
            verification_notes=notes,
            quality_score=quality_score,
        )
        await self._edits.create(
            training_document_id=document_id,
            editor_id=admin_id,
            before_data=before,
            after_data=verified_extraction,
            changes_made=summarize_changes(before, verified_extraction),
            verification_action="verify",
        )
        await self._session.commit()
        logger.info("Training document %s verified by %s", document_id, admin_id)

        job = None
        try:
            job = await self.check_trigger(document_type)
        except Exception as exc:
            await self._session.rollback()
            logger.error("Fine-tuning trigger check failed for %s: %s", document_type, exc, exc_info=True)
        updated = await self.get_document(document_id)
        return updated, job

    async def reject(self, document_id: str, reason: str | None, *, admin_id: str) -> TrainingDocument:
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")
        document = await self.get_document(document_id)
        updated = await self._documents.update(
            document_id,
            verification_status="rejected",
            is_verified=False,
            include_in_training=False,
            verified_by=admin_id,
            verified_at=utcnow(),
            verification_notes=reason.strip(),
        )
        await self._edits.create(
            training_document_id=document_id,
            editor_id=admin_id,
            before_data=document.raw_extraction,
            after_data=None,
            changes_made=f"Rejected: {reason.strip()}",
            verification_action="reject",
        )
        logger.info("Training document %s rejected by %s", document_id, admin_id)
        return updated  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Dataset
    # ------------------------------------------------------------------

    async def auto_split(self, document_type: str, *, seed: int | None = None) -> dict[str, int]:
        _check_document_type(document_type)
        documents = await self._documents.list_for_training(document_type)
        random.Random(seed).shuffle(documents)
        cut = round(len(documents) * TRAIN_SPLIT_RATIO)
        for index, document in enumerate(documents):
            await self._documents.update(
                document.id, dataset_split="train" if index < cut else "validation",
            )
        logger.info(
            "Split %d %s document(s): %d train, %d validation",
            len(documents), document_type, cut, len(documents) - cut,
        )
        return {"train": cut, "validation": len(documents) - cut}

    async def _training_example(self, document: TrainingDocument) -> dict[str, Any]:
        contents = await self._storage.read(document.file_path)
        return {
            "messages": [
                {"role": "system", "content": system_prompt_for(document.document_type)},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": user_instruction_for(document.document_type)},
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": to_data_url(contents, document.mime_type or "image/png"),
                                "detail": "high",
                            },
                        },
                    ],
                },
                {"role": "assistant", "content": json.dumps(document.verified_extraction, indent=2)},
            ]
        }

    async def export(self, document_type: str, *, admin_id: str | None = None) -> TrainingRun:
        """Write chat-format JSONL files for the train and validation splits."""
        _check_document_type(document_type)
        verified = await self._documents.list_for_training(document_type)
        if len(verified) < settings.fine_tune_min_examples:
            raise ValidationError(
                f"At least {settings.fine_tune_min_examples} verified documents are required "
                f"for export ({len(verified)} available)"
            )

        lines: dict[str, list[str]] = {"train": [], "validation": []}
        skipped = 0
        for document in verified:
            if not document.verified_extraction:
                skipped += 1
                continue
            try:
                example = await self._training_example(document)
            except NotFoundError:
                logger.warning("Training file missing for %s; skipped", document.id)
                skipped += 1
                continue
            split = "validation" if document.dataset_split == "validation" else "train"
            lines[split].append(json.dumps(example))

        stamp = utcnow().strftime("%Y%m%dT%H%M%S")
        paths: dict[str, str | None] = {}
        for split, rows in lines.items():
            if not rows:
                paths[split] = None
                continue
            path = f"{EXPORTS_BUCKET}/{document_type}/{stamp}_{split}.jsonl"
            await self._storage.write(path, ("\n".join(rows) + "\n").encode("utf-8"))
            paths[split] = path

        run = await self._runs.create(
            document_type=document_type,
            train_file_path=paths["train"],
            validation_file_path=paths["validation"],
            train_examples=len(lines["train"]),
            validation_examples=len(lines["validation"]),
            skipped_examples=skipped,
            exported_by=admin_id,
        )
        logger.info(
            "Exported %s: %d train, %d validation, %d skipped",
            document_type, run.train_examples, run.validation_examples, skipped,
        )
        return run

    async def metrics(self) -> dict[str, Any]:
        by_type = await self._documents.metrics_by_type()
        rows = []
        for document_type in TRAINING_DOCUMENT_TYPES:
            row = {"document_type": document_type, **by_type.get(document_type, {})}
            row["ready_for_training"] = (
                row.get("verified_documents", 0) >= settings.fine_tune_min_examples
            )
            rows.append(row)
        return {
            "by_type": rows,
            "total_documents": sum(r.get("total_documents", 0) for r in rows),
            "total_verified": sum(r.get("verified_documents", 0) for r in rows),
            "ready_types": [r["document_type"] for r in rows if r["ready_for_training"]],
        }

    # ------------------------------------------------------------------
    # Fine-tuning
    # ------------------------------------------------------------------

    async def check_trigger(self, document_type: str) -> FineTuningJob | None:
        """Start a fine-tuning job when enough newly verified documents have accumulated."""
        trigger = await self._triggers.get_or_create(document_type)
        if not trigger.auto_trigger_enabled:
            return None
        count = await self._documents.count_verified(document_type)
        if (
            count < trigger.next_trigger_at
            or count < trigger.min_documents_required
            or count - trigger.last_trigger_count < trigger.trigger_interval
        ):
            logger.debug(
                "No trigger for %s: %d verified, next at %d",
                document_type, count, trigger.next_trigger_at,
            )
            return None

        logger.info(
            "Reached %d verified %s documents (trigger every %d); starting fine-tuning",
            count, document_type, trigger.trigger_interval,
        )
        job = await self.start_fine_tuning_job(document_type, triggered_by="auto")
        await self._triggers.update(
            trigger.id,
            last_trigger_count=count,
            next_trigger_at=count + trigger.trigger_interval,
            total_triggers=trigger.total_triggers + 1,
            last_job_id=job.id,
            last_triggered_at=utcnow(),
        )
        await self._session.commit()
        return job

    async def start_fine_tuning_job(
        self, document_type: str, *, triggered_by: str = "manual",
    ) -> FineTuningJob:
        run = await self.export(document_type, admin_id=None if triggered_by == "auto" else triggered_by)
        job = await self._jobs.create(
            document_type=document_type,
            status="pending",
            base_model=settings.fine_tune_base_model,
            training_examples_count=run.train_examples,
            validation_examples_count=run.validation_examples,
            training_file_path=run.train_file_path,
            validation_file_path=run.validation_file_path,
            triggered_by=triggered_by,
        )
        if settings.fine_tune_submit_enabled and settings.ai_enabled and run.train_file_path:
            await self._submit(job)
        return job

    async def _submit(self, job: FineTuningJob) -> None:
        """Upload the JSONL files and create the provider-side job."""
        client = self.ai.client
        try:
            training = await client.files.create(
                file=(f"{job.document_type}_train.jsonl", await self._storage.read(job.training_file_path)),
                purpose="fine-tune",
            )
            validation_id = None
            if job.validation_file_path:
                validation = await client.files.create(
                    file=(
                        f"{job.document_type}_validation.jsonl",
                        await self._storage.read(job.validation_file_path),
                    ),
                    purpose="fine-tune",
                )
                validation_id = validation.id
            remote = await client.fine_tuning.jobs.create(
                model=job.base_model,
                training_file=training.id,
                validation_file=validation_id,
                suffix=f"rexeli-{job.document_type.replace('_', '-')}"[:18],
            )
        except OpenAIError as exc:
            logger.error("Fine-tuning submission failed for %s: %s", job.document_type, exc)
            await self._jobs.update(job.id, status="failed", error_message=str(exc), finished_at=utcnow())
            return
        await self._jobs.update(
            job.id,
            status="running",
            openai_job_id=remote.id,
            openai_file_id=training.id,
            openai_validation_file_id=validation_id,
            started_at=utcnow(),
        )
        logger.info("Submitted fine-tuning job %s (%s)", job.id, remote.id)

    async def refresh_job_status(self, job_id: str) -> FineTuningJob:
        """Pull the provider's view of a submitted job onto the local record."""
        job = await self._jobs.get_by_id(job_id)
        if job is None:
            raise NotFoundError("Fine-tuning job", job_id)
        if not job.openai_job_id or job.status in FINISHED_JOB_STATUSES:
            return job

        try:
            remote = await self.ai.client.fine_tuning.jobs.retrieve(job.openai_job_id)
        except OpenAIError as exc:
            logger.error("Status check for fine-tuning job %s failed: %s", job.id, exc)
            raise translate_openai_error(exc) from exc

        status = REMOTE_JOB_STATUSES.get(remote.status, "running")
        changes: dict[str, Any] = {"status": status}
        if remote.fine_tuned_model:
            changes["fine_tuned_model"] = remote.fine_tuned_model
        if status in FINISHED_JOB_STATUSES:
            changes["finished_at"] = (
                datetime.fromtimestamp(remote.finished_at, tz=timezone.utc)
                if remote.finished_at else utcnow()
            )
        if status == "failed":
            error = getattr(remote, "error", None)
            changes["error_message"] = getattr(error, "message", None) or "Fine-tuning failed"

        if status != job.status:
            logger.info("Fine-tuning job %s: %s -> %s", job.id, job.status, status)
        return await self._jobs.update(job.id, **changes)  # type: ignore[return-value]

    async def monitor_jobs(self) -> dict[str, Any]:
        """Refresh every submitted job still running; one failed check does not stop the sweep."""
        counts = {"checked": 0, "succeeded": 0, "failed": 0, "still_running": 0, "errors": 0}
        for job in await self._jobs.list_submitted_running():
            counts["checked"] += 1
            try:
                refreshed = await self.refresh_job_status(job.id)
            except AppException as exc:
                logger.warning("Could not refresh fine-tuning job %s: %s", job.id, exc.message)
                counts["errors"] += 1
                continue
            await self._session.commit()
            if refreshed.status == "succeeded":
                counts["succeeded"] += 1
            elif refreshed.status in ("failed", "cancelled"):
                counts["failed"] += 1
            else:
                counts["still_running"] += 1
        logger.info("Fine-tuning monitor: %s", counts)
        return counts

    async def list_jobs(
        self, pagination: PaginationParams, *, document_type: str | None = None,
    ) -> tuple[list[FineTuningJob], int]:
        return await self._jobs.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters={"document_type": document_type},
        )
