"""
Tenant Endpoints

The caller's own organization. The tenant_id in the path is checked
against the token: any other tenant is a 403, whether or not it exists.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from sigstudio.database import get_db
from sigstudio.models.user import User
from sigstudio.models.tenant import Tenant
from sigstudio.models.asset import Asset
from sigstudio.schemas.tenant import TenantResponse, TenantUpdate
from sigstudio.api.deps import get_current_user, require_admin
from sigstudio.core.tenancy import ensure_tenant_access
from sigstudio.core.exceptions import TenantNotFoundError
from sigstudio.services.activity import record_activity
from sigstudio.services.uploads import remove_upload
from sigstudio.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenants"])


def _own_tenant(db: Session, tenant_id: str, current_user: User) -> Tenant:
    ensure_tenant_access(
        current_user.tenant_id, tenant_id,
        user_id=current_user.id, resource=f"tenants:{tenant_id}",
    )
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise TenantNotFoundError(tenant_id)
    return tenant


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return _own_tenant(db, tenant_id, current_user)


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: str,
    tenant_data: TenantUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Rename the organization or change its plan. Admin only."""
    tenant = _own_tenant(db, tenant_id, current_user)

    update_data = tenant_data.model_dump(exclude_unset=True, exclude_none=True)
    if "plan" in update_data:
        update_data["plan"] = update_data["plan"].value

    for field, value in update_data.items():
        setattr(tenant, field, value)

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="updated",
        entity_type="tenant",
        entity_id=tenant.id,
        details=update_data,
    )
    db.commit()
    db.refresh(tenant)

    return tenant


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tenant(
    tenant_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Delete the organization with all of its users, templates, assets and
    activity. Admin only.

    Uploaded files are removed once the rows are gone.
    """
    tenant = _own_tenant(db, tenant_id, current_user)
    filenames = [filename for (filename,) in db.query(Asset.filename).filter(Asset.tenant_id == tenant.id)]

    logger.warning(
        f"Tenant deleted: {tenant.domain} by {current_user.id}",
        extra={"tenant_id": tenant.id, "user_id": current_user.id}
    )

    db.delete(tenant)
    db.commit()

    for filename in filenames:
        remove_upload(filename)

    return None
