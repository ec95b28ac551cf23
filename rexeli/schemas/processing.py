"""Upload, classification and extraction response schemas."""

from typing import Any

from rexeli.schemas.common import CamelModel


class UploadOut(CamelModel):
    file_path: str
    file_url: str
    file_name: str
    file_size: int
    page_count: int


class ClassificationOut(CamelModel):
    type: str
    confidence: float
    reasoning: str


class ClassifyOut(CamelModel):
    classification: ClassificationOut
    extraction_prompt: str


class ExtractionOut(CamelModel):
    extracted_data: dict[str, Any]
    document_type: str
    page_count: int
    credits_used: int
    remaining_credits: int
    processing_time: int
    document_id: str | None = None
