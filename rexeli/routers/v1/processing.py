"""Document upload, classification and credit-metered extraction endpoints.

Business logic lives in :mod:`rexeli.services.processing`. This router only
handles HTTP concerns: multipart parsing and file validation.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.config import settings
from rexeli.core.exceptions import ValidationError
from rexeli.core.response import DataResponse
from rexeli.core.security import get_current_account
from rexeli.db.base import get_db
from rexeli.domain.account import Account
from rexeli.schemas.processing import ClassifyOut, ExtractionOut, UploadOut
from rexeli.services.openai_service import DocumentAIService, get_ai_service
from rexeli.services.processing import DocumentProcessingService, UploadedDocument
from rexeli.services.prompts import extraction_prompt_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Documents"])

_ALLOWED_CONTENT_TYPES: dict[str, str] = {
    "application/pdf": "pdf",
    "image/jpeg": "image",
    "image/png": "image",
    "image/webp": "image",
}
_ALLOWED_EXTENSIONS: dict[str, str] = {
    ".pdf": "pdf",
    ".jpg": "image",
    ".jpeg": "image",
    ".png": "image",
    ".webp": "image",
}
_MIME_BY_EXTENSION: dict[str, str] = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}


# ---------------------------------------------------------------------------
# Shared file validation (HTTP concern, stays in the router)
# ---------------------------------------------------------------------------

def _detect_file_kind(file: UploadFile) -> tuple[str, str]:
    """Return ``(kind, mime_type)`` where *kind* is ``'pdf'`` or ``'image'``."""
    content_type = (file.content_type or "").lower()
    kind_by_ct = _ALLOWED_CONTENT_TYPES.get(content_type)

    filename = (file.filename or "").lower()
    ext = next((e for e in _ALLOWED_EXTENSIONS if filename.endswith(e)), "")
    kind_by_ext = _ALLOWED_EXTENSIONS.get(ext)

    # Accept if either content-type or extension matches
    kind = kind_by_ct or kind_by_ext
    if not kind:
        accepted = ", ".join(sorted(_ALLOWED_EXTENSIONS))
        raise ValidationError(
            f"Unsupported file type '{file.content_type}'. Accepted formats: {accepted}"
        )
    mime_type = content_type if kind_by_ct else _MIME_BY_EXTENSION[ext]
    return kind, mime_type


async def read_upload(file: UploadFile) -> UploadedDocument:
    """Validate the uploaded file and read it into memory."""
    kind, mime_type = _detect_file_kind(file)
    contents = await file.read()

    if len(contents) == 0:
        raise ValidationError("Uploaded file is empty.")
    if len(contents) > settings.max_upload_size_bytes:
        raise ValidationError(f"File size exceeds the {settings.max_upload_size_mb}MB limit.")
    return UploadedDocument(
        file_name=file.filename or "document",
        contents=contents,
        kind=kind,
        mime_type=mime_type,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/upload", response_model=DataResponse[UploadOut])
async def upload_document(
    file: UploadFile = File(...),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_db),
):
    """Store a PDF or image and report its page count."""
    upload = await read_upload(file)
    stored = await DocumentProcessingService(session).upload(account, upload)
    return {"data": UploadOut(**stored)}


@router.post("/classify", response_model=DataResponse[ClassifyOut])
async def classify_document(
    file: UploadFile = File(...),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_db),
    ai: DocumentAIService = Depends(get_ai_service),
):
    """Classify a document into one of the supported real-estate document types."""
    upload = await read_upload(file)
    classification = await DocumentProcessingService(session, ai=ai).classify(upload)
    return {
        "data": ClassifyOut(
            classification=classification,
            extraction_prompt=extraction_prompt_for(classification["type"]),
        )
    }


@router.post("/extract", response_model=DataResponse[ExtractionOut])
async def extract_document(
    file: UploadFile = File(...),
    document_type: str = Form(..., alias="documentType"),
    file_path: Optional[str] = Form(default=None, alias="filePath"),
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_db),
    ai: DocumentAIService = Depends(get_ai_service),
):
    """Extract structured data; one credit is charged per page on success.

    Responds 402 with ``requiredCredits``, ``currentCredits`` and ``shortage``
    when the effective balance does not cover the document.
    """
    upload = await read_upload(file)
    outcome = await DocumentProcessingService(session, ai=ai).extract(
        account, upload, document_type, file_path=file_path,
    )
    return {
        "data": ExtractionOut(
            extracted_data=outcome.extracted_data,
            document_type=outcome.document_type,
            page_count=outcome.page_count,
            credits_used=outcome.credits_used,
            remaining_credits=outcome.remaining_credits,
            processing_time=outcome.processing_time_ms,
            document_id=outcome.document_id,
        ),
        "message": (
            f"Extraction complete. {outcome.credits_used} credit(s) used, "
            f"{outcome.remaining_credits} remaining."
        ),
        "warnings": outcome.warnings,
    }
