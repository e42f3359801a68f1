"""
Tenant Middleware

Attaches the tenant and user of a bearer token to request.state so that
logging and rate limiting can key on them.

ARCHITECTURE: the tenant comes from the signed access token and nothing
else. There is no subdomain, header or query-string fallback: any
client-supplied tenant id could be forged.

This middleware only decodes the token (signature + expiry). It does not
reject requests. Authentication, token_version and tenant checks happen in
the route dependencies (api/deps.py), which raise the proper 401/403.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from typing import Optional, Dict, Any
import logging

from sigstudio.core.exceptions import AuthenticationError
from sigstudio.core.security import decode_access_token

logger = logging.getLogger(__name__)


class TenantMiddleware(BaseHTTPMiddleware):
    """Populate request.state.tenant_id / user_id from the bearer token."""

    def __init__(self, app):
        super().__init__(app)
        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
            "/uploads",
        ]

    async def dispatch(self, request: Request, call_next):
        request.state.tenant_id = None
        request.state.user_id = None

        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        payload = self._token_payload(request)
        if payload:
            request.state.tenant_id = payload.get("tenant_id")
            request.state.user_id = payload.get("sub")
            logger.debug(
                f"Request for tenant {request.state.tenant_id}",
                extra={"tenant_id": request.state.tenant_id, "user_id": request.state.user_id}
            )

        return await call_next(request)

    def _token_payload(self, request: Request) -> Optional[Dict[str, Any]]:
        auth_header = request.headers.get("Authorization", "")
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None
        try:
            return decode_access_token(token)
        except AuthenticationError as e:
            # The route dependency reports this to the client
            logger.debug(f"Ignoring unusable bearer token: {e.detail}")
            return None
