
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "RExeli API"
    app_env: str = "development"
    app_port: int = 8000
    frontend_url: str = "http://localhost:3000"
    max_upload_size_mb: int = 50
    max_pages_per_document: int = Field(default=100, alias="MAX_PAGES_PER_DOCUMENT")

    # OpenAI
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_max_tokens: int = Field(default=2000, alias="OPENAI_MAX_TOKENS")
    openai_classify_max_tokens: int = Field(default=500, alias="OPENAI_CLASSIFY_MAX_TOKENS")
    openai_timeout: int = Field(default=300, alias="OPENAI_TIMEOUT")  # seconds

    # Vision (page images sent to the model)
    openai_vision_detail: str = Field(
        default="high", alias="OPENAI_VISION_DETAIL",
    )  # "low" | "high" | "auto"
    max_pdf_pages_for_vision: int = Field(
        default=10, alias="MAX_PDF_PAGES_FOR_VISION",
    )
    vision_dpi: int = Field(default=150, alias="VISION_DPI")

    # Fine-tuning
    fine_tune_base_model: str = Field(
        default="gpt-4o-mini-2024-07-18", alias="FINE_TUNE_BASE_MODEL",
    )
    fine_tune_min_examples: int = Field(default=5, alias="FINE_TUNE_MIN_EXAMPLES")
    fine_tune_submit_enabled: bool = Field(default=False, alias="FINE_TUNE_SUBMIT_ENABLED")

    # Database (Postgres via asyncpg or SQLite for local dev)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./rexeli_dev.db",
        alias="DATABASE_URL",
    )

    # Object storage (local filesystem backend)
    storage_dir: str = Field(default="./storage", alias="STORAGE_DIR")
    storage_public_url: str = Field(
        default="http://localhost:8000/files", alias="STORAGE_PUBLIC_URL",
    )

    # Bearer tokens issued by the external auth provider
    auth_jwt_secret: str = Field(default="change-me", alias="AUTH_JWT_SECRET")
    auth_jwt_algorithm: str = Field(default="HS256", alias="AUTH_JWT_ALGORITHM")

    # Transactional email
    email_api_key: str | None = Field(default=None, alias="EMAIL_API_KEY")
    email_api_url: str = Field(
        default="https://api.resend.com/emails", alias="EMAIL_API_URL",
    )
    email_from: str = Field(default="RExeli <noreply@rexeli.com>", alias="EMAIL_FROM")
    email_timeout: int = Field(default=10, alias="EMAIL_TIMEOUT")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def ai_enabled(self) -> bool:
        """AI features are available only when an OpenAI key is configured."""
        return bool(self.openai_api_key)

    @property
    def email_enabled(self) -> bool:
        return bool(self.email_api_key)

settings = Settings()
