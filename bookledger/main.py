"""
FastAPI application factory.
- Preflight database test and table creation on startup
- Core components built once and kept on app.state
- Ledger errors mapped to HTTP status codes in one place
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from bookledger.config import Settings, get_settings
from bookledger.database import build_engine_from_settings, build_session_factory, check_connection, init_db
from bookledger.errors import (
    AllocationError,
    ConcurrencyConflictError,
    InsufficientStockError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from bookledger.routers import items, purchases, reports, students
from bookledger.services import Services
from bookledger.utils.pdf_reports import PDFReportGenerator

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (InsufficientStockError, 409),
    (ConcurrencyConflictError, 409),
    (AllocationError, 503),
    (PersistenceError, 503),
]


def status_for(error: LedgerError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    content = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, InsufficientStockError):
        content.update(item_id=exc.item_id, requested=exc.requested, available=exc.available)
    return JSONResponse(status_code=status_code, content=content)


def create_app(settings: Optional[Settings] = None, session_factory: Optional[sessionmaker] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if session_factory is None:
        session_factory = build_session_factory(build_engine_from_settings(settings))
    engine = session_factory.kw["bind"]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}")

        logger.info("Running preflight database test...")
        success, message = check_connection(engine)
        if not success:
            logger.error(f"Preflight test failed: {message}")
        else:
            logger.info(f"Preflight test passed: {message}")
            init_db(engine)
            logger.info("Database tables verified")

        yield

        logger.info(f"Shutting down {settings.APP_NAME}")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Stock ledger and reporting for a school book shop",
        version=settings.APP_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.services = Services(session_factory, settings)
    app.state.pdf_generator = PDFReportGenerator()

    app.add_exception_handler(LedgerError, ledger_error_handler)

    for router in (items.router, purchases.router, students.router, reports.router):
        app.include_router(router, prefix="/api")

    @app.get("/health")
    def health_check():
        """System health check; reports database status instead of failing"""
        try:
            with session_factory() as session:
                session.execute(text("SELECT 1"))
            db_status = "connected"
        except SQLAlchemyError as e:
            db_status = f"error: {e}"
            logger.warning(f"Health check database error: {e}")

        return {
            "status": "healthy",
            "service": "bookledger",
            "database": db_status,
            "version": settings.APP_VERSION,
        }

    @app.get("/")
    def root():
        return {
            "message": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "endpoints": {
                "docs": "/api/docs",
                "health": "/health",
                "items": "/api/items",
                "purchases": "/api/purchases",
                "reports": "/api/reports",
            },
        }

    return app


app = create_app()
