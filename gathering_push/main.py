from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from gathering_push.core.logging_config import setup_logging
from gathering_push.core.settings import settings
from gathering_push.middleware.logging import LoggingMiddleware
from gathering_push.config import init_firebase
from gathering_push.routes import health, push_config, push_trigger, scheduled_tasks
from gathering_push.scheduler.jobs import start_scheduler, shutdown_scheduler
from gathering_push.exceptions import AppException

# Set up logging first
logger = setup_logging()

_docs_enabled = settings.is_development or os.getenv("SHOW_DOCS", "").lower() in ("1", "true", "yes")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 50)
    logger.info("IRL Gathering Push API starting up")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"CORS origins: {settings.cors_origins}")
    logger.info(f"SQL Debug: {'enabled' if settings.sql_debug else 'disabled'}")
    logger.info(
        f"Push scheduler: {'enabled' if settings.push_scheduler_enabled else 'disabled'} "
        f"(every {settings.push_job_interval_minutes} min)"
    )
    logger.info("=" * 50)

    if settings.push_scheduler_enabled:
        start_scheduler()

    yield

    shutdown_scheduler()
    logger.info("IRL Gathering Push API shutting down gracefully")


app = FastAPI(
    title="IRL Gathering Push API",
    description="Gathering push candidate generation, scheduling and operator overrides",
    version="1.0.0",
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
    lifespan=lifespan,
)

# Add middleware in correct order (last added = first executed)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

# Initialize Firebase (skip in test environment)
if os.getenv("ENV") != "test":
    init_firebase()

app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(push_config.router)
app.include_router(push_trigger.router)
app.include_router(scheduled_tasks.router, prefix="/scheduled", tags=["Scheduled"])


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    logger.warning(f"[{correlation_id}] {type(exc).__name__} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "correlation_id": correlation_id}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    logger.error(f"[{correlation_id}] Unhandled exception on {request.url.path}: {str(exc)}", exc_info=True)

    content = {"detail": "Internal server error", "correlation_id": correlation_id}
    if settings.is_development:
        content["error"] = str(exc)
        content["type"] = type(exc).__name__
    return JSONResponse(status_code=500, content=content)


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "IRL Gathering Push API",
        "version": "1.0.0",
        "environment": settings.environment,
        "health_check": "/health",
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info" if settings.is_development else "warning"
    )
