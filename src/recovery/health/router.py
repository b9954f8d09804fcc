"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe. 200 while the process is up."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, object]:
    """Readiness probe: storage and (when configured) Redis connectivity."""
    state = request.app.state
    checks: dict[str, object] = {}

    try:
        await state.storage.ping()
        checks["storage"] = "ok"
    except Exception as exc:
        checks["storage"] = f"error: {exc}"

    if state.redis is not None:
        try:
            await state.redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {
        "status": "ready" if all_ok else "degraded",
        "checks": checks,
        "notifications": state.hub.get_stats(),
    }


@router.get("/version")
async def version(request: Request) -> dict[str, str]:
    """API version and environment."""
    settings = request.app.state.settings
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
