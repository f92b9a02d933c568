import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401
from .config import Settings, load_settings
from .csrf import CSRFMiddleware
from .database import Base, build_engine, build_session_factory
from .domain.verification import admin_router as verification_admin_router
from .domain.verification import cron_router as verification_cron_router
from .errors import (
    AuthorizationError,
    StorageReadError,
    StorageWriteError,
    VerificationPassInProgressError,
)
from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Reduce verbosity of third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=app.state.engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")

    try:
        app.state.redis = get_redis_client(app.state.settings)
    except Exception as e:
        app.state.redis = None
        logger.warning(f"Redis connection failed - Rate limiting will operate in fail-open mode: {e}")

    yield

    logger.info("Application shutting down...")
    if app.state.redis is not None:
        app.state.redis.close()
    app.state.engine.dispose()


def _error(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(request: Request, exc: AuthorizationError):
        return _error(401, "Unauthorized")

    @app.exception_handler(VerificationPassInProgressError)
    async def pass_in_progress_handler(request: Request, exc: VerificationPassInProgressError):
        return _error(409, str(exc))

    @app.exception_handler(StorageReadError)
    async def storage_read_error_handler(request: Request, exc: StorageReadError):
        logger.error(f"❌ {request.method} {request.url.path} - storage read failed: {exc}")
        return _error(500, "Internal server error")

    @app.exception_handler(StorageWriteError)
    async def storage_write_error_handler(request: Request, exc: StorageWriteError):
        logger.error(f"❌ {request.method} {request.url.path} - storage write failed: {exc}")
        return _error(500, "Internal server error")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(title="Services Marketplace API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.redis = None

    register_exception_handlers(app)

    if settings.csrf_enabled:
        app.add_middleware(CSRFMiddleware)
        logger.info("CSRF protection enabled")
    else:
        logger.info("CSRF protection disabled")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )

    app.include_router(verification_cron_router)
    app.include_router(verification_admin_router)

    @app.get("/")
    def root():
        return {"message": "Services Marketplace API is running"}

    @app.get("/health")
    def health(request: Request):
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            with request.app.state.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"❌ Health check failed: {e}")
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "timestamp": timestamp,
                    "database": "disconnected",
                    "error": str(e),
                },
            )
        return {"status": "healthy", "timestamp": timestamp, "database": "connected"}

    return app


def get_app() -> FastAPI:
    """Entry point for `uvicorn marketplace.main:get_app --factory`"""
    configure_logging()
    return create_app()
