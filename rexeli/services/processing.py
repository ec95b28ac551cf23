"""Document processing pipeline: upload, classification and credit-metered extraction.

One extraction request moves through:

    received -> pages counted -> credits validated -> extraction
             -> credits deducted -> usage logged -> document saved -> response

Validation rejects with 402 before any provider call. A provider failure is
recorded as a failed usage row (no credits charged) and re-raised. After a
successful extraction the result is always returned: a deduction that loses a
race, or a failed usage/history write, only adds a warning.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.exceptions import (
    InsufficientCreditsError,
    UpstreamAIError,
    UpstreamTimeoutError,
    ValidationError,
)
from rexeli.domain.account import Account
from rexeli.repositories.document import UserDocumentRepository
from rexeli.repositories.ledger import UsageLogRepository
from rexeli.services import pdf_utils
from rexeli.services.credit_service import CreditService
from rexeli.services.openai_service import DocumentAIService, get_ai_service
from rexeli.services.post_tasks import PostSuccessTasks
from rexeli.services.prompts import EXTRACTION_DOCUMENT_TYPES
from rexeli.services.storage import DOCUMENTS_BUCKET, LocalStorage, get_storage

logger = logging.getLogger(__name__)

DEDUCTION_WARNING = (
    "Credits could not be deducted because the balance changed during processing. "
    "Your results are shown below."
)
DEDUCTION_ERROR_WARNING = (
    "Credits could not be deducted because of a temporary error. "
    "Your results are shown below."
)
USAGE_LOG_WARNING = "Usage could not be recorded for this document."
DOCUMENT_SAVE_WARNING = "The extracted data could not be saved to your document history."


@dataclass
class UploadedDocument:
    """An upload as received by the HTTP layer."""

    file_name: str
    contents: bytes
    kind: str  # "pdf" | "image"
    mime_type: str


@dataclass
class ExtractionOutcome:
    extracted_data: dict[str, Any]
    document_type: str
    page_count: int
    credits_used: int
    remaining_credits: int
    processing_time_ms: int
    document_id: str | None = None
    warnings: list[str] = field(default_factory=list)


class DocumentProcessingService:
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
        self._credits = CreditService(session)
        self._usage = UsageLogRepository(session)
        self._documents = UserDocumentRepository(session)

    @property
    def ai(self) -> DocumentAIService:
        if self._ai is None:
            self._ai = get_ai_service()
        return self._ai

    # ------------------------------------------------------------------
    # Upload / classify
    # ------------------------------------------------------------------

    async def upload(self, account: Account, upload: UploadedDocument) -> dict[str, Any]:
        page_count = pdf_utils.count_pages(upload.contents, upload.kind)
        stored = await self._storage.save(
            DOCUMENTS_BUCKET, account.id, upload.file_name, upload.contents,
        )
        logger.info(
            "Stored upload %s for account %s (%d page(s))", stored.path, account.id, page_count,
        )
        return {
            "file_path": stored.path,
            "file_url": stored.url,
            "file_name": upload.file_name,
            "file_size": stored.size,
            "page_count": page_count,
        }

    async def classify(self, upload: UploadedDocument) -> dict[str, Any]:
        pdf_utils.count_pages(upload.contents, upload.kind)
        classification = await self.ai.classify(upload.contents, upload.kind, upload.mime_type)
        logger.info(
            "Classified %s as %s (%.2f)",
            upload.file_name, classification["type"], classification["confidence"],
        )
        return classification

    # ------------------------------------------------------------------
    # Extract
    # ------------------------------------------------------------------

    async def extract(
        self,
        account: Account,
        upload: UploadedDocument,
        document_type: str,
        *,
        file_path: str | None = None,
    ) -> ExtractionOutcome:
        if document_type not in EXTRACTION_DOCUMENT_TYPES:
            raise ValidationError("Invalid document type")

        # Plain values only from here on: post-task rollbacks expire ORM instances
        account_id = account.id
        group_id = account.group_id
        file_name = upload.file_name

        page_count = pdf_utils.count_pages(upload.contents, upload.kind)

        validation = await self._credits.validate_credit_transaction(account_id, page_count)
        if not validation.is_valid:
            raise InsufficientCreditsError(
                validation.message,
                required=page_count,
                available=validation.current_credits,
                group_name=validation.group_name,
            )

        started = time.monotonic()
        try:
            extracted = await self.ai.extract(
                upload.contents, upload.kind, upload.mime_type, document_type,
            )
        except (UpstreamAIError, UpstreamTimeoutError) as exc:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            await self._record_failure(
                account_id=account_id,
                group_id=group_id,
                document_type=document_type,
                file_name=file_name,
                file_path=file_path,
                page_count=page_count,
                elapsed_ms=elapsed_ms,
                error=exc.message,
            )
            raise
        elapsed_ms = int((time.monotonic() - started) * 1000)

        warnings: list[str] = []
        deduction = await self._credits.deduct_credits(account_id, page_count)
        await self._session.commit()
        credits_used = page_count if deduction.success else 0
        if not deduction.success:
            warnings.append(
                DEDUCTION_ERROR_WARNING if deduction.error == "deduction_failed"
                else DEDUCTION_WARNING
            )

        saved: dict[str, str] = {}

        async def log_usage() -> None:
            await self._usage.create(
                account_id=account_id,
                group_id=group_id,
                document_type=document_type,
                file_name=file_name,
                file_path=file_path,
                page_count=page_count,
                credits_used=credits_used,
                processing_status="success",
                processing_time_ms=elapsed_ms,
            )

        async def save_document() -> None:
            document = await self._documents.create(
                account_id=account_id,
                group_id=group_id,
                file_name=file_name,
                file_path=file_path,
                document_type=document_type,
                extracted_data=extracted,
                page_count=page_count,
                credits_used=credits_used,
                processing_status="completed",
            )
            saved["id"] = document.id

        tasks = PostSuccessTasks(self._session)
        tasks.add("usage_log", log_usage, warning=USAGE_LOG_WARNING)
        tasks.add("document_history", save_document, warning=DOCUMENT_SAVE_WARNING)
        warnings.extend(await tasks.run())

        logger.info(
            "Extracted %s for account %s: %d page(s), %d credit(s), %dms, %d warning(s)",
            document_type, account_id, page_count, credits_used, elapsed_ms, len(warnings),
        )
        return ExtractionOutcome(
            extracted_data=extracted,
            document_type=document_type,
            page_count=page_count,
            credits_used=credits_used,
            remaining_credits=deduction.remaining_credits,
            processing_time_ms=elapsed_ms,
            document_id=saved.get("id"),
            warnings=warnings,
        )

    async def _record_failure(self, *, elapsed_ms: int, error: str, **values: Any) -> None:
        """Write the failed-attempt usage row; never masks the provider error."""
        tasks = PostSuccessTasks(self._session)

        async def log_failure() -> None:
            await self._usage.create(
                credits_used=0,
                processing_status="failed",
                processing_time_ms=elapsed_ms,
                error_message=error,
                **values,
            )

        tasks.add("failed_usage_log", log_failure, warning=USAGE_LOG_WARNING)
        await tasks.run()
