"""
Custom Exceptions

Centralized exception definitions. Every API error is an HTTPException
subclass carrying a machine-readable ``code`` and an error ``type``;
main.py renders them as JSON ``{"detail", "type", "code"}``.
"""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for errors rendered by the application error handler."""

    error_type = "error"
    code = "ERROR"

    def __init__(
        self,
        status_code: int,
        detail: str,
        code: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        if code:
            self.code = code
        self.extra = extra or {}


# ----------------------------------------------------------------------------
# 404
# ----------------------------------------------------------------------------

class NotFoundError(AppError):
    """Raised when a requested row does not exist."""

    error_type = "not_found"

    def __init__(self, entity: str = "Resource", entity_id: str = ""):
        code = f"{entity.upper().replace(' ', '_')}_NOT_FOUND"
        detail = f"{entity} not found: {entity_id}" if entity_id else f"{entity} not found"
        super().__init__(status.HTTP_404_NOT_FOUND, detail, code=code)


class TenantNotFoundError(NotFoundError):
    def __init__(self, tenant_id: str = ""):
        super().__init__("Tenant", tenant_id)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str = ""):
        super().__init__("User", user_id)


class TemplateNotFoundError(NotFoundError):
    def __init__(self, template_id: str = ""):
        super().__init__("Template", template_id)


class AssignmentNotFoundError(NotFoundError):
    def __init__(self, assignment_id: str = ""):
        super().__init__("Assignment", assignment_id)


class AssetNotFoundError(NotFoundError):
    def __init__(self, asset_id: str = ""):
        super().__init__("Asset", asset_id)


# ----------------------------------------------------------------------------
# 401
# ----------------------------------------------------------------------------

class AuthenticationError(AppError):
    """Raised when authentication fails."""

    error_type = "authentication_error"
    code = "AUTHENTICATION_FAILED"

    def __init__(self, detail: str = "Could not validate credentials", code: Optional[str] = None):
        super().__init__(
            status.HTTP_401_UNAUTHORIZED,
            detail,
            code=code,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InvalidCredentialsError(AuthenticationError):
    """Unknown email and wrong password look the same to the caller."""

    def __init__(self):
        super().__init__("Invalid credentials", code="INVALID_CREDENTIALS")


class InvalidTokenError(AuthenticationError):
    def __init__(self, detail: str = "Invalid token"):
        super().__init__(detail, code="TOKEN_INVALID")


class TokenExpiredError(AuthenticationError):
    def __init__(self, detail: str = "Token has expired"):
        super().__init__(detail, code="TOKEN_EXPIRED")


# ----------------------------------------------------------------------------
# 403
# ----------------------------------------------------------------------------

class PermissionDenied(AppError):
    """Raised when the user's role does not allow the action."""

    error_type = "permission_denied"
    code = "FORBIDDEN"

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)


class TenantIsolationError(AppError):
    """
    Raised when a request touches a resource owned by another tenant.

    This is a security event and is logged as one by the handler in main.py.
    """

    error_type = "tenant_isolation_error"
    code = "TENANT_MISMATCH"

    def __init__(self, detail: str = "Access denied to this tenant resource"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)


# ----------------------------------------------------------------------------
# 400
# ----------------------------------------------------------------------------

class InvalidInputError(AppError):
    """Raised when input validation fails beyond what the schemas catch."""

    error_type = "validation_error"
    code = "VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Invalid input",
        code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, code=code, extra=extra)


class ConflictError(AppError):
    """Uniqueness or state conflicts. Reported as 400, not 409."""

    error_type = "conflict"
    code = "CONFLICT"

    def __init__(self, detail: str, code: Optional[str] = None, extra: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, code=code, extra=extra)


class DuplicateDomainError(ConflictError):
    def __init__(self):
        super().__init__("Domain already taken", code="DOMAIN_EXISTS")


class DuplicateEmailError(ConflictError):
    def __init__(self):
        super().__init__("Email already registered", code="EMAIL_EXISTS")


# ----------------------------------------------------------------------------
# 429
# ----------------------------------------------------------------------------

class RateLimitExceeded(AppError):
    """Raised when rate limit is exceeded."""

    error_type = "rate_limit_exceeded"
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int = 60):
        super().__init__(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(retry_after)},
            extra={"retry_after": retry_after},
        )


def error_body(exc: AppError) -> Dict[str, Any]:
    """JSON body for an AppError: {"detail", "type", "code", **extra}."""
    return {
        "detail": exc.detail,
        "type": exc.error_type,
        "code": exc.code,
        **exc.extra,
    }
