"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auditdesk.core.config import settings
from auditdesk.core.errors import AuditDeskError
from auditdesk.api import router as api_router
from auditdesk.services.scheduler import JobCoordinator
from auditdesk.workers.jobs import build_job_tasks

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME}")

    # NOTE: Database schema is managed by Alembic migrations.
    # Run `alembic upgrade head` before starting the app.

    coordinator = JobCoordinator(
        build_job_tasks(),
        settings.scheduler_config(),
        timezone=settings.SCHEDULER_TIMEZONE,
    )
    app.state.job_coordinator = coordinator
    if settings.SCHEDULER_ENABLED:
        coordinator.initialize_jobs()
    else:
        logger.info("Scheduler disabled, periodic jobs not registered")

    yield

    # Shutdown
    coordinator.shutdown()
    logger.info("Shut down")


app = FastAPI(
    title=settings.APP_NAME,
    description="Client tiering and audit scheduling",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware - origins from env variable (comma-separated)
cors_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuditDeskError)
async def audit_desk_error_handler(request: Request, exc: AuditDeskError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# API routes
app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "app": settings.APP_NAME}
