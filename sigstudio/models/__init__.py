"""
Database Models

Every model except Tenant is scoped to a tenant, directly through a
tenant_id column or transitively (TemplateAssignment).
"""
from sigstudio.models.tenant import Tenant, TenantPlan
from sigstudio.models.user import User, UserRole
from sigstudio.models.template import SignatureTemplate, SignatureTemplateVersion
from sigstudio.models.assignment import TemplateAssignment
from sigstudio.models.asset import Asset
from sigstudio.models.activity import Activity

__all__ = [
    "Tenant",
    "TenantPlan",
    "User",
    "UserRole",
    "SignatureTemplate",
    "SignatureTemplateVersion",
    "TemplateAssignment",
    "Asset",
    "Activity",
]
