"""
Security Module

Password hashing, JWT issuance/verification and the refresh cookie.
Uses passlib (bcrypt) and python-jose.

Two token kinds:
- access: short-lived bearer token carrying {sub, tenant_id, email, role,
  token_version}
- refresh: long-lived, signed with a separate key, only ever sent as an
  httpOnly cookie scoped to /api/auth

Both carry the user's token_version. Verification compares it with the
stored value, so bumping the counter (logout-all) revokes every token
issued before.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.orm import Session

from sigstudio.config import get_settings
from sigstudio.core.exceptions import InvalidTokenError, TokenExpiredError
from sigstudio.models.user import User

settings = get_settings()

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


class TokenPair(BaseModel):
    """Access token for the response body, refresh token for the cookie."""
    access_token: str
    refresh_token: str
    expires_in: int


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash (constant time)."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    NOTE: Intentionally slow. Don't call this in hot paths or tight loops.
    """
    return pwd_context.hash(password)


# Verified against when the email is unknown so both failure paths cost
# one bcrypt check.
_DUMMY_HASH = get_password_hash("sigstudio-timing-equalizer")


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Return the user for a valid email/password pair, else None.

    Unknown email and wrong password are indistinguishable to the caller,
    in result and in timing.
    """
    user = db.query(User).filter(User.email == email.lower()).first()
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ----------------------------------------------------------------------------
# JWT encode / decode
# ----------------------------------------------------------------------------

def create_access_token(
    user_id: str,
    tenant_id: str,
    email: str,
    role: str,
    token_version: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.

    tenant_id in the payload is the only source of tenant context for
    the request; nothing client-supplied overrides it.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    payload = {
        "sub": user_id,
        "tenant_id": tenant_id,
        "email": email,
        "role": role,
        "token_version": token_version,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_refresh_token(
    user_id: str,
    token_version: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a long-lived refresh token signed with REFRESH_SECRET_KEY."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))

    payload = {
        "sub": user_id,
        "token_version": token_version,
        "type": REFRESH_TOKEN_TYPE,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.REFRESH_SECRET_KEY, algorithm=settings.ALGORITHM)


def issue_tokens(user: User) -> TokenPair:
    """Create the access/refresh pair for a freshly authenticated user."""
    role = user.role.value if hasattr(user.role, "value") else user.role
    return TokenPair(
        access_token=create_access_token(
            user_id=user.id,
            tenant_id=user.tenant_id,
            email=user.email,
            role=role,
            token_version=user.token_version,
        ),
        refresh_token=create_refresh_token(user.id, user.token_version),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def _decode(token: str, secret: str, expected_type: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError()

    if payload.get("type") != expected_type:
        raise InvalidTokenError(f"Invalid token type. Use {expected_type} token.")
    if not payload.get("sub") or "token_version" not in payload:
        raise InvalidTokenError("Invalid token payload")
    if expected_type == ACCESS_TOKEN_TYPE and not payload.get("tenant_id"):
        raise InvalidTokenError("Invalid token payload")
    return payload


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify an access token's signature, expiry and shape.

    Raises TokenExpiredError or InvalidTokenError. The token_version check
    needs the database and happens in load_token_user().
    """
    return _decode(token, settings.SECRET_KEY, ACCESS_TOKEN_TYPE)


def decode_refresh_token(token: str) -> Dict[str, Any]:
    """Decode and verify a refresh token. Raises like decode_access_token()."""
    return _decode(token, settings.REFRESH_SECRET_KEY, REFRESH_TOKEN_TYPE)


def load_token_user(db: Session, payload: Dict[str, Any]) -> User:
    """
    Load the user a verified token was issued to.

    Rejects tokens whose token_version no longer matches the stored one
    (revoked by logout-all) and tokens of deactivated users.
    """
    user = db.query(User).filter(User.id == payload["sub"]).first()
    if user is None:
        raise InvalidTokenError("User not found")
    if user.token_version != payload.get("token_version"):
        raise InvalidTokenError("Token has been revoked")
    if not user.is_active:
        raise InvalidTokenError("User account is inactive")
    return user


def seconds_until_expiry(payload: Dict[str, Any], now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    return int(payload["exp"] - now.timestamp())


def needs_refresh(payload: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """True when the token is within the refresh window of its expiry."""
    return seconds_until_expiry(payload, now) <= settings.TOKEN_REFRESH_WINDOW_SECONDS


# ----------------------------------------------------------------------------
# Refresh cookie
# ----------------------------------------------------------------------------

REFRESH_COOKIE_PATH = "/api/auth"


def set_refresh_cookie(response, refresh_token: str) -> None:
    """
    Write the refresh token as an httpOnly cookie.

    httponly: not readable from JS. samesite=strict: never sent on
    cross-site requests. Scoped to /api/auth so resource requests don't
    carry it.
    """
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        value=refresh_token,
        httponly=True,
        samesite="strict",
        secure=settings.COOKIE_SECURE,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        path=REFRESH_COOKIE_PATH,
    )


def clear_refresh_cookie(response) -> None:
    response.delete_cookie(
        settings.REFRESH_COOKIE_NAME,
        path=REFRESH_COOKIE_PATH,
        httponly=True,
        samesite="strict",
        secure=settings.COOKIE_SECURE,
    )


def generate_temporary_password() -> str:
    """Random password meeting the strength rules (lower, upper, digit)."""
    return f"{secrets.token_urlsafe(12)}Aa1"
