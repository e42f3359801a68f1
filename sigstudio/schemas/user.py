"""
User Schemas

Request/response models for the team endpoints.
"""
import re
from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict
from typing import Optional
from datetime import datetime
from sigstudio.models.user import UserRole


def validate_password_strength(password: str) -> str:
    """At least one lower-case letter, one upper-case letter and one digit."""
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain a lower-case letter")
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain an upper-case letter")
    if not re.search(r"\d", password):
        raise ValueError("Password must contain a digit")
    return password


class UserBase(BaseModel):
    email: EmailStr
    first_name: str
    last_name: str
    title: Optional[str] = None
    department: Optional[str] = None


class UserInvite(BaseModel):
    """
    Invite a team member.

    Without a password a temporary one is generated and returned once.
    """
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    title: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    role: UserRole = UserRole.MEMBER
    password: Optional[str] = Field(None, min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: Optional[str]) -> Optional[str]:
        return validate_password_strength(value) if value is not None else value


class UserUpdate(BaseModel):
    """All fields optional. role and is_active are admin-only."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    title: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class PasswordReset(BaseModel):
    new_password: Optional[str] = Field(None, min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: Optional[str]) -> Optional[str]:
        return validate_password_strength(value) if value is not None else value


class UserResponse(UserBase):
    """User response schema (excludes sensitive data)."""
    id: str
    tenant_id: str
    role: UserRole
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InviteResponse(BaseModel):
    user: UserResponse
    temporary_password: Optional[str] = None


class PasswordResetResponse(BaseModel):
    message: str
    temporary_password: Optional[str] = None


class UserListResponse(BaseModel):
    """Paginated list of users."""
    users: list[UserResponse]
    total: int
    page: int
    page_size: int
