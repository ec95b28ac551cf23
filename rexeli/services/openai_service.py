"""Document AI service: OpenAI vision calls for classification and extraction.

Provider failures are translated into messages a user can act on and raised
as upstream errors; nothing here retries.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, List, Optional

from openai import (
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    OpenAIError,
    RateLimitError,
)

from rexeli.core.config import settings
from rexeli.core.exceptions import AIUnavailableError, UpstreamAIError, UpstreamTimeoutError
from rexeli.services import pdf_utils
from rexeli.services.prompts import (
    CLASSIFICATION_PROMPT,
    EXTRACTION_DOCUMENT_TYPES,
    extraction_prompt_for,
    user_instruction_for,
)

logger = logging.getLogger(__name__)


def translate_openai_error(exc: OpenAIError) -> UpstreamAIError | UpstreamTimeoutError:
    """Map a provider exception onto the message shown to the user."""
    if isinstance(exc, APITimeoutError):
        return UpstreamTimeoutError()
    if isinstance(exc, AuthenticationError):
        return UpstreamAIError("OpenAI API authentication failed. Please check your API key.")
    if isinstance(exc, RateLimitError):
        if "quota" in str(exc).lower():
            return UpstreamAIError("OpenAI API quota exceeded. Please check your billing.")
        return UpstreamAIError("OpenAI API rate limit exceeded. Please try again later.")
    if isinstance(exc, APIStatusError) and exc.status_code >= 500:
        return UpstreamAIError("OpenAI API server error. Please try again later.")
    return UpstreamAIError(f"OpenAI service error: {exc}")


def to_data_url(contents: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(contents).decode('ascii')}"


class DocumentAIService:
    """Thin async wrapper around OpenAI for document classification and data extraction."""

    def __init__(self) -> None:
        if not settings.ai_enabled:
            raise AIUnavailableError()
        self.client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.openai_timeout,
            max_retries=0,
        )
        self.model = settings.openai_model
        self.max_tokens = settings.openai_max_tokens

    # ── Core OpenAI call ──────────────────────────────────────────────────

    async def _call_openai(
        self,
        system_prompt: str,
        user_content: List[Dict[str, Any]],
        *,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Send an async request to OpenAI and return parsed JSON."""
        try:
            logger.info(
                "Calling OpenAI model=%s, parts=%d", self.model, len(user_content),
            )
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                max_tokens=max_tokens or self.max_tokens,
                temperature=0.1,
                response_format={"type": "json_object"},
            )

            content = response.choices[0].message.content
            if not content:
                raise UpstreamAIError("Empty response from OpenAI")

            logger.info("OpenAI call successful")
            return json.loads(content)

        except OpenAIError as exc:
            logger.error("OpenAI API error: %s", exc)
            raise translate_openai_error(exc) from exc
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from OpenAI: %s", exc)
            raise UpstreamAIError(f"Invalid JSON response: {exc}") from exc

    # ── Content building ──────────────────────────────────────────────────

    def _document_parts(self, contents: bytes, kind: str, mime_type: str) -> List[Dict[str, Any]]:
        """Image parts for the document, plus the PDF text layer when there is one."""
        if kind == "image":
            images = [(contents, mime_type)]
            text = ""
        else:
            images = [(png, "image/png") for png in pdf_utils.render_pages(contents)]
            text = pdf_utils.extract_text(contents)

        parts: List[Dict[str, Any]] = []
        if text:
            parts.append({"type": "text", "text": f"Extracted text layer:\n{text}"})
        for data, mime in images:
            parts.append({
                "type": "image_url",
                "image_url": {
                    "url": to_data_url(data, mime),
                    "detail": settings.openai_vision_detail,
                },
            })
        return parts

    # ── Public methods ────────────────────────────────────────────────────

    async def classify(self, contents: bytes, kind: str, mime_type: str) -> Dict[str, Any]:
        """Return ``{type, confidence, reasoning}`` for the uploaded document."""
        result = await self._call_openai(
            CLASSIFICATION_PROMPT,
            [{"type": "text", "text": "Classify this document."}]
            + self._document_parts(contents, kind, mime_type),
            max_tokens=settings.openai_classify_max_tokens,
        )
        if (
            result.get("type") not in EXTRACTION_DOCUMENT_TYPES
            or result.get("confidence") is None
            or not result.get("reasoning")
        ):
            raise UpstreamAIError("Invalid classification response from OpenAI")
        return {
            "type": result["type"],
            "confidence": float(result["confidence"]),
            "reasoning": result["reasoning"],
        }

    async def extract(
        self, contents: bytes, kind: str, mime_type: str, document_type: str,
    ) -> Dict[str, Any]:
        """Extract structured data as ``{documentType, metadata, data}``."""
        result = await self._call_openai(
            extraction_prompt_for(document_type),
            [{"type": "text", "text": user_instruction_for(document_type)}]
            + self._document_parts(contents, kind, mime_type),
        )
        if "data" not in result:
            result = {"documentType": document_type, "metadata": {}, "data": result}
        result.setdefault("documentType", document_type)
        result.setdefault("metadata", {})
        return result


def get_ai_service() -> DocumentAIService:
    """Factory that creates a DocumentAIService instance.

    Raises ``AIUnavailableError`` when the OpenAI key is not configured.
    """
    return DocumentAIService()
