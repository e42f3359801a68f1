"""
Authentication Schemas

Request/response models for authentication endpoints.
"""
import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator, ConfigDict

from sigstudio.schemas.tenant import TenantResponse
from sigstudio.schemas.user import UserResponse, validate_password_strength

# label(.label)*.tld, e.g. "acme.com", "mail.acme.co.uk"
DOMAIN_PATTERN = re.compile(
    r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$"
)


class RegisterRequest(BaseModel):
    """Creates an organization (tenant) and its first admin."""
    organization_name: str = Field(..., min_length=2, max_length=100)
    domain: str = Field(..., min_length=3, max_length=50)
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str

    @field_validator("organization_name", "first_name", "last_name", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("domain", mode="before")
    @classmethod
    def normalize_domain(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            if not DOMAIN_PATTERN.match(value):
                raise ValueError("Invalid domain format")
        return value

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return validate_password_strength(value)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "organization_name": "Acme",
            "domain": "acme.com",
            "first_name": "Ada",
            "last_name": "Admin",
            "email": "a@acme.com",
            "password": "Secret123",
            "confirm_password": "Secret123"
        }
    })


class LoginRequest(BaseModel):
    """Login is by email alone; the tenant follows from the user."""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class RefreshRequest(BaseModel):
    """Body alternative to the refresh cookie, for non-browser clients."""
    refresh_token: Optional[str] = None


class AuthResponse(BaseModel):
    """Returned by register and login. The refresh token goes in a cookie."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
    tenant: TenantResponse


class RefreshResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    refreshed: bool


class MeResponse(BaseModel):
    user: UserResponse
    tenant: TenantResponse


class MessageResponse(BaseModel):
    message: str
