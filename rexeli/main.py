"""RExeli API: FastAPI application factory."""


import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rexeli.core.config import settings
from rexeli.core.exceptions import register_exception_handlers
from rexeli.schemas.common import HealthResponse

# v1 routers
from rexeli.routers.v1.account import router as account_v1_router
from rexeli.routers.v1.admin_analytics import router as admin_analytics_v1_router
from rexeli.routers.v1.admin_groups import router as admin_groups_v1_router
from rexeli.routers.v1.admin_payments import router as admin_payments_v1_router
from rexeli.routers.v1.admin_users import router as admin_users_v1_router
from rexeli.routers.v1.billing import router as billing_v1_router
from rexeli.routers.v1.processing import router as processing_v1_router
from rexeli.routers.v1.training import router as training_v1_router


def _configure_logging() -> None:
    """Set up structured logging for the application."""
    level = logging.DEBUG if settings.app_env == "development" else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("pdfminer").setLevel(logging.WARNING)


def create_app() -> FastAPI:
    _configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url="/docs" if settings.app_env == "development" else None,
        redoc_url="/redoc" if settings.app_env == "development" else None,
    )

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # --- Global exception handlers ---
    register_exception_handlers(app)

    # --- v1 API routes (/api/v1/*) ---
    for router in (
        processing_v1_router,
        account_v1_router,
        admin_users_v1_router,
        admin_groups_v1_router,
        admin_payments_v1_router,
        admin_analytics_v1_router,
        billing_v1_router,
        training_v1_router,
    ):
        app.include_router(router, prefix="/api/v1")

    # --- Health check ---
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health():
        return HealthResponse(app=settings.app_name, env=settings.app_env)

    return app


app = create_app()
