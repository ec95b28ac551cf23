"""Application-level exceptions and FastAPI exception handlers."""


from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        super().__init__(message)

class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: str | None = None):
        msg = f"{entity} not found" if not entity_id else f"{entity} '{entity_id}' not found"
        super().__init__(msg, status_code=404, code="NOT_FOUND")

class ForbiddenError(AppException):
    def __init__(self, message: str = "Access denied"):
        super().__init__(message, status_code=403, code="FORBIDDEN")

class UnauthorizedError(AppException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401, code="UNAUTHORIZED")

class ConflictError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=409, code="CONFLICT")

class ValidationError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=400, code="VALIDATION_ERROR")

class AccountNotFoundError(AppException):
    """The requesting account has no profile row."""

    def __init__(self, account_id: str):
        super().__init__(
            f"Account '{account_id}' not found", status_code=404, code="ACCOUNT_NOT_FOUND",
        )

class AccountInactiveError(AppException):
    """The account exists but has been deactivated by an administrator."""

    def __init__(self, message: str = "Account is inactive. Please contact support."):
        super().__init__(message, status_code=403, code="ACCOUNT_INACTIVE")

class InsufficientCreditsError(AppException):
    """Effective balance is lower than the number of pages in the document."""

    def __init__(self, message: str, *, required: int, available: int, group_name: str | None = None):
        self.required = required
        self.available = available
        self.shortage = required - available
        super().__init__(
            message,
            status_code=402,
            code="INSUFFICIENT_CREDITS",
            details={
                "requiredCredits": required,
                "currentCredits": available,
                "shortage": self.shortage,
                "groupName": group_name,
            },
        )

class UpstreamAIError(AppException):
    """Raised when the AI provider call fails (upstream service error)."""

    def __init__(self, message: str):
        super().__init__(message, status_code=502, code="AI_PROVIDER_ERROR")

class UpstreamTimeoutError(AppException):
    def __init__(self, message: str = "The AI provider did not respond in time. Please try again."):
        super().__init__(message, status_code=504, code="AI_PROVIDER_TIMEOUT")

class AIUnavailableError(AppException):
    def __init__(self, message: str = "AI features are not available. Configure OPENAI_API_KEY to enable."):
        super().__init__(message, status_code=503, code="AI_UNAVAILABLE")

# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_body(code: str, message: str, details: dict[str, Any] | None = None) -> dict:
    body: dict[str, Any] = {"success": False, "error": message, "code": code}
    if details:
        body["data"] = details
    return body

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query"))
        message = first.get("msg", "Invalid request")
        if field:
            message = f"{field}: {message}"
        return JSONResponse(status_code=400, content=_error_body("VALIDATION_ERROR", message))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException,
    ) -> JSONResponse:
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(code, str(exc.detail)),
        )

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", "An unexpected error occurred"),
        )
