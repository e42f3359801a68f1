"""
Authentication Endpoints

Registration (new organization + first admin), login, token refresh,
logout and logout-all.

Token lifecycle: issued -> valid -> expired | revoked. Revocation is the
user's token_version counter (see core.security).
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sigstudio.database import get_db
from sigstudio.models.user import User, UserRole
from sigstudio.models.tenant import Tenant
from sigstudio.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
)
from sigstudio.api.deps import security, get_current_user, get_current_tenant
from sigstudio.core.security import (
    authenticate_user,
    clear_refresh_cookie,
    decode_access_token,
    decode_refresh_token,
    get_password_hash,
    issue_tokens,
    load_token_user,
    needs_refresh,
    seconds_until_expiry,
    set_refresh_cookie,
)
from sigstudio.core.exceptions import (
    AuthenticationError,
    DuplicateDomainError,
    DuplicateEmailError,
    InvalidCredentialsError,
    error_body,
)
from sigstudio.services.activity import record_activity
from sigstudio.config import get_settings
from sigstudio.utils.logging import log_security_event, get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])


def _auth_response(response: Response, user: User, tenant: Tenant) -> AuthResponse:
    tokens = issue_tokens(user)
    set_refresh_cookie(response, tokens.refresh_token)
    return AuthResponse(
        access_token=tokens.access_token,
        expires_in=tokens.expires_in,
        user=user,
        tenant=tenant,
    )


def _check_registration_conflicts(db: Session, domain: str, email: str) -> None:
    if db.query(Tenant.id).filter(Tenant.domain == domain).first():
        raise DuplicateDomainError()
    if db.query(User.id).filter(User.email == email).first():
        raise DuplicateEmailError()


@router.post("/register", response_model=AuthResponse)
async def register(
    registration: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Register a new organization and its first admin.

    Tenant and user are created in one transaction: a duplicate domain or
    email leaves no rows behind.
    """
    _check_registration_conflicts(db, registration.domain, registration.email)

    tenant = Tenant(name=registration.organization_name, domain=registration.domain)
    db.add(tenant)
    db.flush()

    user = User(
        tenant_id=tenant.id,
        email=registration.email,
        hashed_password=get_password_hash(registration.password),
        first_name=registration.first_name,
        last_name=registration.last_name,
        role=UserRole.ADMIN,
        is_active=True,
        last_login_at=datetime.utcnow(),
    )
    db.add(user)
    db.flush()

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=user.id,
        action="registered",
        entity_type="tenant",
        entity_id=tenant.id,
        details={"domain": tenant.domain},
    )

    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration
        db.rollback()
        _check_registration_conflicts(db, registration.domain, registration.email)
        raise

    db.refresh(user)
    db.refresh(tenant)

    logger.info(
        f"New organization registered: {tenant.domain}",
        extra={"tenant_id": tenant.id, "user_id": user.id}
    )

    return _auth_response(response, user, tenant)


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: LoginRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Authenticate with email and password.

    SECURITY: unknown email and wrong password return the same error and
    cost the same bcrypt check, so responses don't reveal which accounts
    exist.
    """
    user = authenticate_user(db, credentials.email, credentials.password)

    if user is None:
        log_security_event("failed_login", {"reason": "invalid_credentials"}, logger)
        raise InvalidCredentialsError()

    if not user.is_active:
        log_security_event(
            "failed_login",
            {"reason": "user_inactive", "user_id": user.id, "tenant_id": user.tenant_id},
            logger
        )
        raise AuthenticationError("User account is inactive", code="ACCOUNT_DISABLED")

    user.last_login_at = datetime.utcnow()
    record_activity(
        db,
        tenant_id=user.tenant_id,
        user_id=user.id,
        action="logged_in",
        entity_type="user",
        entity_id=user.id,
    )
    db.commit()
    db.refresh(user)

    logger.info(
        f"Successful login: user={user.id}",
        extra={"tenant_id": user.tenant_id, "user_id": user.id}
    )

    return _auth_response(response, user, user.tenant)


def _current_bearer_response(
    db: Session,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[RefreshResponse]:
    """
    The caller's own access token when it is still valid and outside the
    refresh window. None means a new token should be issued.
    """
    if credentials is None:
        return None
    try:
        payload = decode_access_token(credentials.credentials)
        load_token_user(db, payload)
    except AuthenticationError:
        return None

    if needs_refresh(payload):
        return None

    return RefreshResponse(
        access_token=credentials.credentials,
        expires_in=seconds_until_expiry(payload),
        refreshed=False,
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = Body(None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
):
    """
    Exchange the refresh cookie for a new access token.

    A bearer token with more than TOKEN_REFRESH_WINDOW_SECONDS left is
    returned unchanged (refreshed=false). The refresh token is rotated on
    every reissue. An unusable refresh token clears the cookie.
    """
    current = _current_bearer_response(db, credentials)
    if current is not None:
        return current

    token = request.cookies.get(settings.REFRESH_COOKIE_NAME) or (body.refresh_token if body else None)

    try:
        if not token:
            raise AuthenticationError("Refresh token required", code="NOT_AUTHENTICATED")
        payload = decode_refresh_token(token)
        user = load_token_user(db, payload)
    except AuthenticationError as exc:
        error = JSONResponse(status_code=exc.status_code, content=error_body(exc), headers=exc.headers)
        clear_refresh_cookie(error)
        return error

    tokens = issue_tokens(user)
    set_refresh_cookie(response, tokens.refresh_token)

    return RefreshResponse(
        access_token=tokens.access_token,
        expires_in=tokens.expires_in,
        refreshed=True,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    """Forget the refresh cookie. Access tokens expire on their own."""
    clear_refresh_cookie(response)
    return MessageResponse(message="Logged out")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
):
    """
    Revoke every token issued to the caller, on every device.

    The caller is identified by bearer token or, failing that, by the
    refresh cookie.
    """
    user = None
    if credentials is not None:
        try:
            user = load_token_user(db, decode_access_token(credentials.credentials))
        except AuthenticationError:
            user = None

    if user is None:
        cookie = request.cookies.get(settings.REFRESH_COOKIE_NAME)
        if not cookie:
            raise AuthenticationError("Not authenticated", code="NOT_AUTHENTICATED")
        user = load_token_user(db, decode_refresh_token(cookie))

    user.token_version += 1
    record_activity(
        db,
        tenant_id=user.tenant_id,
        user_id=user.id,
        action="logged_out_all",
        entity_type="user",
        entity_id=user.id,
    )
    db.commit()

    log_security_event(
        "tokens_revoked",
        {"reason": "logout_all", "user_id": user.id, "tenant_id": user.tenant_id},
        logger
    )

    clear_refresh_cookie(response)
    return MessageResponse(message="Logged out from all devices")


@router.get("/me", response_model=MeResponse)
async def me(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant)
):
    """Current user and tenant."""
    return MeResponse(user=current_user, tenant=tenant)
