"""
Permission System (RBAC)

Two roles per tenant:
- admin: manages the tenant, invites and manages users, assigns templates
- member: manages templates and assets within the tenant

Cross-tenant checks are not done here; see core.tenancy.
"""
from typing import Optional

from sigstudio.models.user import User


def can_modify_user(current_user: User, target_user: User) -> bool:
    """
    Check if current_user can modify target_user.

    Rules:
    - Admins can modify anyone in their tenant
    - Users can modify their own profile
    """
    if current_user.is_admin:
        return True
    return current_user.id == target_user.id


def can_view_user_assignments(current_user: User, user_id: str) -> bool:
    """Admins see everyone's assignments, members only their own."""
    return current_user.is_admin or current_user.id == user_id


def can_delete_template(current_user: User, template_creator_id: Optional[str]) -> bool:
    """
    Check if user can delete a template.

    Admins can delete any template in their tenant, members only the ones
    they created.
    """
    if current_user.is_admin:
        return True
    return template_creator_id is not None and current_user.id == template_creator_id


def can_delete_asset(current_user: User, uploader_id: Optional[str]) -> bool:
    """Same rule as templates: admin, or the member who uploaded it."""
    if current_user.is_admin:
        return True
    return uploader_id is not None and current_user.id == uploader_id
