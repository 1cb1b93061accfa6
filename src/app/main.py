"""
Admissions API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Database connection
- Background scheduler and the admissions decision workflow
- CORS middleware
- API routing
- Health check endpoints
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from app.api import api_router
from app.core.config import settings
from app.core.database import close_db, init_db
from app.core.scheduler import start_scheduler, stop_scheduler
from app.modules.admissions.service import AdmissionsService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Database connection
    - Background job scheduler
    - Auto-approval timer recovery
    """
    # Startup
    print(f"Starting Admissions API in {settings.python_env} mode...")

    # Initialize Database
    try:
        await init_db()
        print("[OK] Database connected")
    except Exception as e:
        print(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    # Initialize Background Job Scheduler
    scheduler = await start_scheduler()
    print("[OK] Background scheduler started")

    admissions = AdmissionsService(scheduler)
    app.state.scheduler = scheduler
    app.state.admissions = admissions

    # Rebuild auto-approval timers lost on the last shutdown
    try:
        summary = await admissions.on_process_start()
        if summary is None:
            print("[OK] Auto-approval disabled, no timers to recover")
        else:
            print(
                f"[OK] Auto-approval timers recovered "
                f"(fired: {summary['fired']}, scheduled: {summary['scheduled']}, "
                f"errors: {summary['total_errors']})"
            )
    except Exception as e:
        print(f"[FAIL] Auto-approval recovery failed: {e}")
        if settings.is_production:
            raise

    yield  # Application runs here

    # Shutdown
    print("Shutting down Admissions API...")

    cleared = await admissions.on_process_stop()
    print(f"[OK] Cleared {cleared} auto-approval timers")

    await stop_scheduler(scheduler)
    print("[OK] Background scheduler stopped")

    await close_db()
    print("[OK] Cleanup complete")


app = FastAPI(
    title="Admissions API",
    description=f"{settings.institute_name} Admissions API",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to the Admissions API",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check(request: Request) -> dict[str, str | int]:
    """Ready once the decision scheduler is running."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None or not scheduler.running:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "NOT_READY",
                "message": "Decision scheduler is not running.",
            },
        )

    return {
        "status": "ready",
        "pending_decisions": len(request.app.state.admissions.pending_decisions()),
    }
