# audit_trail/api/routers/health.py

from fastapi import APIRouter, Request

from audit_trail.config.settings import get_settings

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Health check with request id from request state."""
    settings = get_settings()
    return {
        "status": "ok",
        "request_id": getattr(request.state, "request_id", None),
        "environment": settings.environment,
        "version": settings.version,
    }
