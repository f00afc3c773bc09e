# app/main.py - Application factory: middleware, error envelope and routers
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError
from contextlib import asynccontextmanager
import logging
import traceback
import time

from app.core.config import settings
from app.core.db import db_manager, get_engine
from app.core.errors import AppError, error_body
from app.core.system_mode import system_mode
from app.models import Base
from app.api.routers import auth, admin, owner, system
from app.api.routers import company, journals, invoices, payments, reports
from app.api.routers import notifications, finance, attachments, company_backups
from app.services import scheduler


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"Starting {settings.API_TITLE}...")
    logger.info(f"Environment: {settings.ENV}")
    logger.info(f"Database URL: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'local'}")

    (settings.upload_path / "logos").mkdir(parents=True, exist_ok=True)

    # Create tables if they don't exist (for development)
    if settings.is_development or settings.ENV == "test":
        logger.info("Creating database tables...")
        try:
            Base.metadata.create_all(bind=get_engine())
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Error creating tables: {e}")

    if settings.ENABLE_BACKUP_SCHEDULER:
        scheduler.start_scheduler()

    yield

    if settings.ENABLE_BACKUP_SCHEDULER:
        scheduler.shutdown_scheduler()
    db_manager.close()
    logger.info(f"Shutting down {settings.API_TITLE}...")


# Create FastAPI app
app = FastAPI(
    title=settings.API_TITLE,
    description="Multi-company double-entry accounting",
    version=settings.API_VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)


@app.middleware("http")
async def system_mode_header(request: Request, call_next):
    """Refresh the database liveness check and report it on every response"""
    await run_in_threadpool(system_mode.check_database)
    response = await call_next(request)
    response.headers["X-System-Mode"] = system_mode.mode
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and elapsed time"""
    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"Error processing {request.method} {request.url.path}: {str(e)}")
        raise
    process_time = time.time() - start_time
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")
    return response


app.add_middleware(CORSMiddleware, **settings.get_cors_config())


# Error envelope

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.status_code))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), exc.status_code),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Validation failed"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", message)
    return JSONResponse(status_code=422, content=error_body(message, 422))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=409, content=error_body("Record already exists", 409))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    logger.error(traceback.format_exc())
    message = str(exc) if settings.is_development else "Internal server error"
    # Runs outside the http middlewares, so the mode header is set here
    return JSONResponse(
        status_code=500,
        content=error_body(message, 500),
        headers={"X-System-Mode": system_mode.mode},
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    database = await run_in_threadpool(db_manager.health_check)
    return {
        "status": "healthy",
        "database": database["status"],
        "environment": settings.ENV,
        "version": settings.API_VERSION,
        "mode": system_mode.mode,
    }


# Include routers
logger.info("Registering API routers...")
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
app.include_router(owner.router, prefix="/api/owner", tags=["Owner"])
app.include_router(system.router, prefix="/api/system", tags=["System"])
app.include_router(company.router, prefix="/api/company", tags=["Company"])
app.include_router(journals.router, prefix="/api/company", tags=["Journals"])
app.include_router(invoices.router, prefix="/api/company", tags=["Invoices"])
app.include_router(payments.router, prefix="/api/company", tags=["Payments"])
app.include_router(reports.router, prefix="/api/company", tags=["Reports"])
app.include_router(notifications.router, prefix="/api/company", tags=["Notifications"])
app.include_router(finance.router, prefix="/api/company", tags=["Loans & LCs"])
app.include_router(attachments.router, prefix="/api/company", tags=["Attachments"])
app.include_router(company_backups.router, prefix="/api/company", tags=["Company Backups"])
logger.info("All routers registered successfully")

app.mount("/uploads/logos", StaticFiles(directory=str(settings.upload_path / "logos"), check_dir=False), name="logos")


# Root endpoint
@app.get("/")
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs_url": "/docs" if settings.is_development else "Documentation disabled in production",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.is_development)
