"""Page counting, page rendering and text-layer extraction for uploads."""

from __future__ import annotations

import io
import logging

import fitz  # PyMuPDF
import pdfplumber

from rexeli.core.config import settings
from rexeli.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_MAX_TEXT_CHARS = 12000


def _open_pdf(contents: bytes) -> "fitz.Document":
    try:
        doc = fitz.open(stream=contents, filetype="pdf")
    except Exception as exc:
        raise ValidationError(f"Unable to open PDF: {exc}") from exc

    if doc.is_encrypted:
        doc.close()
        raise ValidationError(
            "Password-protected PDFs are not supported. "
            "Please upload an unprotected document."
        )
    return doc


def count_pages(contents: bytes, kind: str) -> int:
    """Number of credits a document costs: PDF page count, 1 for an image."""
    if kind == "image":
        return 1

    doc = _open_pdf(contents)
    try:
        pages = len(doc)
    finally:
        doc.close()

    if pages < 1:
        raise ValidationError("PDF contains no pages.")
    if pages > settings.max_pages_per_document:
        raise ValidationError(
            f"Document has {pages} pages. The maximum is "
            f"{settings.max_pages_per_document} pages per document."
        )
    return pages


def render_pages(contents: bytes) -> list[bytes]:
    """Render PDF pages as PNG images.

    Returns a list of raw PNG bytes (one per page), limited to
    ``settings.max_pdf_pages_for_vision`` pages.
    """
    doc = _open_pdf(contents)
    zoom = settings.vision_dpi / 72  # PyMuPDF default is 72 DPI

    images: list[bytes] = []
    try:
        for page_num in range(min(len(doc), settings.max_pdf_pages_for_vision)):
            pix = doc[page_num].get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            images.append(pix.tobytes("png"))
    finally:
        doc.close()

    if not images:
        raise ValidationError("PDF contains no renderable pages.")

    logger.info("Rendered %d PDF page(s) to images (dpi=%d)", len(images), settings.vision_dpi)
    return images


def extract_text(contents: bytes) -> str:
    """Text layer of a PDF, empty for scanned documents; capped for prompt size."""
    try:
        with pdfplumber.open(io.BytesIO(contents)) as pdf:
            parts = []
            for page in pdf.pages[: settings.max_pdf_pages_for_vision]:
                parts.append(page.extract_text() or "")
    except Exception as exc:
        logger.warning("pdfplumber text extraction failed: %s", exc)
        return ""
    return "\n".join(parts).strip()[:_MAX_TEXT_CHARS]
