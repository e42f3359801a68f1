"""
API Dependencies

Reusable FastAPI dependencies for authentication and authorization.

The tenant of a request is the tenant_id of its verified access token.
Path, query and body values never override it.
"""
from typing import Any, Dict
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from sigstudio.database import get_db
from sigstudio.models.user import User
from sigstudio.models.tenant import Tenant
from sigstudio.core.security import decode_access_token, load_token_user
from sigstudio.core.exceptions import AuthenticationError, PermissionDenied
from sigstudio.utils.logging import log_security_event
import logging

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is our 401, not FastAPI's 403
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Dict[str, Any]:
    """Verify the bearer token's signature and expiry and return its claims."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated", code="NOT_AUTHENTICATED")
    return decode_access_token(credentials.credentials)


def get_current_user(
    request: Request,
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> User:
    """
    Get the current authenticated user.

    1. Token signature and expiry (get_token_payload)
    2. User exists, is active, and token_version still matches
    3. User still belongs to the token's tenant
    """
    user = load_token_user(db, payload)

    if user.tenant_id != payload["tenant_id"]:
        logger.error(
            f"Token tenant does not match user's tenant for user {user.id}",
            extra={"user_id": user.id, "tenant_id": payload["tenant_id"]}
        )
        raise AuthenticationError("Invalid token payload", code="TOKEN_INVALID")

    request.state.tenant_id = user.tenant_id
    request.state.user_id = user.id
    return user


def get_current_tenant(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Tenant:
    """Tenant of the verified token."""
    tenant = db.query(Tenant).filter(Tenant.id == current_user.tenant_id).first()
    if not tenant:
        raise AuthenticationError("Tenant no longer exists", code="TOKEN_INVALID")
    return tenant


def require_admin(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> User:
    """Use this dependency for admin-only endpoints."""
    if not current_user.is_admin:
        log_security_event(
            "privilege_escalation",
            {
                "tenant_id": current_user.tenant_id,
                "user_id": current_user.id,
                "path": request.url.path,
            },
            logger,
        )
        raise PermissionDenied("Admin privileges required")
    return current_user
