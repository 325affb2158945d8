# audit_trail/main.py

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from audit_trail.api.middleware import AttributionMiddleware
from audit_trail.api.routers import health, history
from audit_trail.config.logging import configure_logging
from audit_trail.config.settings import get_settings
from audit_trail.domain.exceptions import (
    AuditError,
    AuditRecordNotFoundError,
    EntityNotAuditedError,
    EntityNotFoundError,
    InvalidActionKindError,
    RevisionNotFoundError,
    VersionConflictError,
)
from audit_trail.domain.registry import registry
from audit_trail.infrastructure.database.tracking import AuditTracker

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    debug=settings.debug,
)

app.add_middleware(AttributionMiddleware)

# Every sync Session (and the sync side of every AsyncSession) records audited mutations
tracker = AuditTracker(registry, ignored_attributes=settings.audit_ignored_attributes)
tracker.install(Session)

_NOT_FOUND = (
    EntityNotAuditedError,
    EntityNotFoundError,
    RevisionNotFoundError,
    AuditRecordNotFoundError,
)


@app.exception_handler(AuditError)
async def audit_error_handler(request, exc: AuditError):
    if isinstance(exc, _NOT_FOUND):
        status_code = 404
    elif isinstance(exc, InvalidActionKindError):
        status_code = 422
    elif isinstance(exc, VersionConflictError):
        status_code = 409
    else:
        status_code = 400
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# Routers: /health, /history
app.include_router(health.router)
app.include_router(history.router, prefix="/history")
