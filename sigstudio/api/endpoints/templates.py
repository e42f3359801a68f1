"""
Signature Template Endpoints

RBAC:
- List / view / create / update / duplicate: any member of the tenant
- Delete: admin, or the member who created the template

Every name or HTML change snapshots the previous content as a
SignatureTemplateVersion. At most one template per tenant is the default.
"""
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional

from sigstudio.database import get_db
from sigstudio.models.user import User
from sigstudio.models.tenant import Tenant
from sigstudio.models.template import SignatureTemplate, SignatureTemplateVersion
from sigstudio.models.assignment import TemplateAssignment
from sigstudio.schemas.template import (
    TemplateCreate,
    TemplateDuplicate,
    TemplateListResponse,
    TemplateResponse,
    TemplateUpdate,
    TemplateVersionResponse,
)
from sigstudio.api.deps import get_current_user, get_current_tenant
from sigstudio.core.permissions import can_delete_template
from sigstudio.core.tenancy import ensure_tenant_access, get_owned_or_404, scoped
from sigstudio.core.exceptions import ConflictError, PermissionDenied, TemplateNotFoundError
from sigstudio.services.activity import record_activity
from sigstudio.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/templates", tags=["templates"])


def _load_template(db: Session, template_id: str, tenant: Tenant, current_user: User) -> SignatureTemplate:
    return get_owned_or_404(
        db, SignatureTemplate, template_id,
        tenant_id=tenant.id,
        not_found=TemplateNotFoundError,
        user_id=current_user.id,
    )


def _clear_default(db: Session, *, tenant_id: str, keep_id: Optional[str] = None) -> None:
    """Unset is_default on the tenant's templates other than ``keep_id``."""
    query = scoped(db, SignatureTemplate, tenant_id=tenant_id).filter(
        SignatureTemplate.is_default == True  # noqa: E712
    )
    if keep_id:
        query = query.filter(SignatureTemplate.id != keep_id)
    query.update({SignatureTemplate.is_default: False}, synchronize_session="fetch")


def _snapshot_version(db: Session, template: SignatureTemplate, user_id: str) -> SignatureTemplateVersion:
    latest = db.query(func.max(SignatureTemplateVersion.version)).filter(
        SignatureTemplateVersion.template_id == template.id
    ).scalar()
    version = SignatureTemplateVersion(
        template_id=template.id,
        version=(latest or 0) + 1,
        name=template.name,
        html_content=template.html_content,
        created_by=user_id,
    )
    db.add(version)
    return version


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """List the tenant's templates, default first, then most recently updated."""
    query = scoped(db, SignatureTemplate, tenant_id=tenant.id)

    if search:
        query = query.filter(SignatureTemplate.name.ilike(f"%{search}%"))

    total = query.count()

    offset = (page - 1) * page_size
    templates = query.order_by(
        SignatureTemplate.is_default.desc(),
        SignatureTemplate.updated_at.desc()
    ).offset(offset).limit(page_size).all()

    return TemplateListResponse(
        templates=templates,
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return _load_template(db, template_id, tenant, current_user)


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    template_data: TemplateCreate,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Create a template in the caller's tenant.

    A tenant_id in the body is only checked, never trusted: it must match
    the token's tenant.
    """
    if template_data.tenant_id is not None:
        ensure_tenant_access(
            tenant.id, template_data.tenant_id,
            user_id=current_user.id, resource="template.tenant_id",
        )

    if template_data.is_default:
        _clear_default(db, tenant_id=tenant.id)

    template = SignatureTemplate(
        tenant_id=tenant.id,
        name=template_data.name,
        html_content=template_data.html_content,
        description=template_data.description,
        is_default=template_data.is_default,
        created_by=current_user.id,
    )
    db.add(template)
    db.flush()

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="created",
        entity_type="template",
        entity_id=template.id,
        details={"name": template.name},
    )
    db.commit()
    db.refresh(template)

    logger.info(f"Template created: {template.id} by {current_user.id}", extra={"tenant_id": tenant.id})

    return template


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    template_data: TemplateUpdate,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Update a template, keeping the previous content as a version."""
    template = _load_template(db, template_id, tenant, current_user)

    update_data = template_data.model_dump(exclude_unset=True)
    # Explicit nulls on required columns are ignored
    for field in ("name", "html_content", "is_default"):
        if update_data.get(field, ...) is None:
            update_data.pop(field)

    content_changed = any(
        field in update_data and update_data[field] != getattr(template, field)
        for field in ("name", "html_content")
    )
    if content_changed:
        _snapshot_version(db, template, current_user.id)

    if update_data.get("is_default"):
        _clear_default(db, tenant_id=tenant.id, keep_id=template.id)

    for field, value in update_data.items():
        setattr(template, field, value)

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="updated",
        entity_type="template",
        entity_id=template.id,
        details={"fields": sorted(update_data), "new_version": content_changed},
    )
    db.commit()
    db.refresh(template)

    return template


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Delete a template.

    Refused while the template is assigned to anyone; remove the
    assignments first.
    """
    template = _load_template(db, template_id, tenant, current_user)

    if not can_delete_template(current_user, template.created_by):
        raise PermissionDenied("Not authorized to delete this template")

    assignment_count = db.query(TemplateAssignment).filter(
        TemplateAssignment.template_id == template.id
    ).count()
    if assignment_count:
        raise ConflictError(
            "Template is assigned to users and cannot be deleted",
            code="TEMPLATE_HAS_ASSIGNMENTS",
            extra={"assignment_count": assignment_count},
        )

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="deleted",
        entity_type="template",
        entity_id=template.id,
        details={"name": template.name},
    )
    db.delete(template)
    db.commit()

    logger.info(f"Template deleted: {template_id} by {current_user.id}")

    return None


@router.post("/{template_id}/duplicate", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_template(
    template_id: str,
    duplicate: Optional[TemplateDuplicate] = Body(None),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Copy a template. The copy is never the default."""
    source = _load_template(db, template_id, tenant, current_user)

    name = duplicate.name if duplicate and duplicate.name else f"{source.name} (Copy)"[:100]

    copy = SignatureTemplate(
        tenant_id=tenant.id,
        name=name,
        html_content=source.html_content,
        description=source.description,
        is_default=False,
        created_by=current_user.id,
    )
    db.add(copy)
    db.flush()

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="duplicated",
        entity_type="template",
        entity_id=copy.id,
        details={"source_id": source.id},
    )
    db.commit()
    db.refresh(copy)

    return copy


@router.get("/{template_id}/versions", response_model=List[TemplateVersionResponse])
async def list_template_versions(
    template_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Earlier versions of a template, newest first."""
    template = _load_template(db, template_id, tenant, current_user)
    return db.query(SignatureTemplateVersion).filter(
        SignatureTemplateVersion.template_id == template.id
    ).order_by(SignatureTemplateVersion.version.desc()).all()
