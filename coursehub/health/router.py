"""Health check endpoints."""

from fastapi import APIRouter, Request

from coursehub.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - reports whether the ledger and unlock engine are wired."""
    settings = get_settings()
    state = request.app.state
    services_ready = (
        getattr(state, "enrollment_ledger", None) is not None
        and getattr(state, "unlock_engine", None) is not None
    )
    return {
        "status": "ready" if services_ready else "degraded",
        "environment": settings.environment,
        "debug": settings.debug,
        "database": services_ready,
        "payments": settings.razorpay_configured,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
