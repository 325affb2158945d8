"""API middleware: attribution context (actor, tenant, remote address, request id) per request."""

import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from audit_trail.config.settings import get_settings
from audit_trail.core.context import attribution


class AttributionMiddleware(BaseHTTPMiddleware):
    """
    Open an attribution scope around the request. Actor and tenant are read lazily from
    request.state, so values set by authentication dependencies during the request are
    the ones recorded. The scope is closed on every exit path.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        settings = get_settings()
        request_id = request.headers.get(settings.request_id_header) or str(uuid.uuid4())
        request.state.request_id = request_id
        remote_address = request.client.host if request.client else None

        def current_actor():
            return getattr(request.state, settings.actor_state_attribute, None)

        def current_tenant():
            tenant = getattr(request.state, settings.tenant_state_attribute, None)
            if tenant is None:
                tenant = request.headers.get(settings.tenant_header) or None
            return tenant

        with attribution(
            actor=current_actor,
            tenant=current_tenant,
            remote_address=remote_address,
            request_id=request_id,
        ):
            response = await call_next(request)

        response.headers[settings.request_id_header] = request_id
        return response
