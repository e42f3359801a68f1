"""
Team Endpoints

Users of the current tenant.

RBAC:
- List / get members: any authenticated user
- Invite: admin only
- Update: admin, or the user for their own profile (role and
  is_active stay admin-only)
- Delete, reset password: admin only
"""
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from sigstudio.database import get_db
from sigstudio.models.user import User, UserRole
from sigstudio.models.tenant import Tenant
from sigstudio.schemas.user import (
    InviteResponse,
    PasswordReset,
    PasswordResetResponse,
    UserInvite,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from sigstudio.api.deps import get_current_user, get_current_tenant, require_admin
from sigstudio.core.security import generate_temporary_password, get_password_hash
from sigstudio.core.permissions import can_modify_user
from sigstudio.core.tenancy import get_owned_or_404, scoped
from sigstudio.core.exceptions import (
    ConflictError,
    DuplicateEmailError,
    InvalidInputError,
    PermissionDenied,
    UserNotFoundError,
)
from sigstudio.services.activity import record_activity
from sigstudio.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)

router = APIRouter(prefix="/team", tags=["team"])


def _load_member(db: Session, user_id: str, tenant: Tenant, current_user: User) -> User:
    return get_owned_or_404(
        db, User, user_id,
        tenant_id=tenant.id,
        not_found=UserNotFoundError,
        user_id=current_user.id,
    )


def _is_last_admin(db: Session, user: User) -> bool:
    """True when ``user`` is the only active admin of their tenant."""
    if user.role != UserRole.ADMIN or not user.is_active:
        return False
    other_admins = scoped(db, User, tenant_id=user.tenant_id).filter(
        User.role == UserRole.ADMIN,
        User.is_active == True,  # noqa: E712
        User.id != user.id,
    ).count()
    return other_admins == 0


@router.get("", response_model=UserListResponse)
async def list_team(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """List members of the current tenant, filtered by role and status."""
    query = scoped(db, User, tenant_id=tenant.id)

    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)

    total = query.count()

    offset = (page - 1) * page_size
    users = query.order_by(User.created_at.asc()).offset(offset).limit(page_size).all()

    return UserListResponse(
        users=users,
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/invite", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def invite_member(
    invite: UserInvite,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Add a user to the current tenant.

    Emails are unique across all tenants. Without a password in the
    request a temporary one is generated and returned once.
    """
    if db.query(User.id).filter(User.email == invite.email).first():
        raise DuplicateEmailError()

    temporary_password = None
    password = invite.password
    if password is None:
        password = temporary_password = generate_temporary_password()

    user = User(
        tenant_id=tenant.id,
        email=invite.email,
        hashed_password=get_password_hash(password),
        first_name=invite.first_name,
        last_name=invite.last_name,
        title=invite.title,
        department=invite.department,
        role=invite.role,
        is_active=True,
    )
    db.add(user)
    db.flush()

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="invited",
        entity_type="user",
        entity_id=user.id,
        details={"email": user.email, "role": user.role.value},
    )
    db.commit()
    db.refresh(user)

    logger.info(f"User invited: {user.id} by {current_user.id}", extra={"tenant_id": tenant.id})

    return InviteResponse(user=user, temporary_password=temporary_password)


@router.get("/{user_id}", response_model=UserResponse)
async def get_member(
    user_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return _load_member(db, user_id, tenant, current_user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_member(
    user_id: str,
    user_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Update a member's profile.

    SECURITY: role and is_active changes require admin privileges, and the
    last active admin can be neither demoted nor deactivated.
    """
    user = _load_member(db, user_id, tenant, current_user)

    if not can_modify_user(current_user, user):
        raise PermissionDenied("Not authorized to modify this user")

    update_data = user_data.model_dump(exclude_unset=True)
    # Explicit nulls on required columns are ignored; title/department may be cleared
    for field in ("first_name", "last_name", "role", "is_active"):
        if update_data.get(field, ...) is None:
            del update_data[field]

    privileged = {
        field for field in ("role", "is_active")
        if field in update_data and update_data[field] != getattr(user, field)
    }
    if privileged and not current_user.is_admin:
        log_security_event(
            "privilege_escalation",
            {"tenant_id": tenant.id, "user_id": current_user.id, "fields": sorted(privileged)},
            logger
        )
        raise PermissionDenied("Only admins can change roles or account status")

    demoted = update_data.get("role", user.role) != UserRole.ADMIN
    deactivated = update_data.get("is_active", user.is_active) is False
    if privileged and (demoted or deactivated) and _is_last_admin(db, user):
        raise ConflictError("Cannot demote or deactivate the last admin", code="LAST_ADMIN")

    for field, value in update_data.items():
        setattr(user, field, value)

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="updated",
        entity_type="user",
        entity_id=user.id,
        details={"fields": sorted(update_data)},
    )
    db.commit()
    db.refresh(user)

    logger.info(f"User updated: {user.id} by {current_user.id}")

    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_member(
    user_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Remove a member. Their assignments go with them; templates and assets
    they created stay, with the creator cleared.
    """
    user = _load_member(db, user_id, tenant, current_user)

    if user.id == current_user.id:
        raise InvalidInputError("Cannot delete your own account", code="CANNOT_DELETE_SELF")

    if _is_last_admin(db, user):
        raise ConflictError("Cannot delete the last admin", code="LAST_ADMIN")

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="deleted",
        entity_type="user",
        entity_id=user.id,
        details={"email": user.email},
    )
    db.delete(user)
    db.commit()

    logger.info(f"User deleted: {user_id} by {current_user.id}")

    return None


@router.post("/{user_id}/reset-password", response_model=PasswordResetResponse)
async def reset_password(
    user_id: str,
    reset: Optional[PasswordReset] = Body(None),
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Set a new password for a member and revoke their existing tokens.

    Without new_password a temporary one is generated and returned once.
    """
    user = _load_member(db, user_id, tenant, current_user)

    temporary_password = None
    password = reset.new_password if reset else None
    if password is None:
        password = temporary_password = generate_temporary_password()

    user.hashed_password = get_password_hash(password)
    user.token_version += 1

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="password_reset",
        entity_type="user",
        entity_id=user.id,
    )
    db.commit()

    log_security_event(
        "tokens_revoked",
        {"reason": "password_reset", "tenant_id": tenant.id, "user_id": user.id},
        logger
    )

    return PasswordResetResponse(message="Password reset", temporary_password=temporary_password)
