"""
Template Assignment Endpoints

Assigning a signature template to a user. Admin only, except that a
member may list their own assignments.

TENANT_ISOLATION: assignments have no tenant_id column. The user and the
template named in a request are each loaded through the tenant guard, so
both belong to the caller's tenant before any row is written.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional

from sigstudio.database import get_db
from sigstudio.models.user import User
from sigstudio.models.tenant import Tenant
from sigstudio.models.template import SignatureTemplate
from sigstudio.models.assignment import TemplateAssignment
from sigstudio.schemas.assignment import (
    AssignmentCreate,
    AssignmentListResponse,
    AssignmentResponse,
    BulkAssignmentCreate,
    BulkAssignmentResponse,
    BulkUnassign,
    BulkUnassignResponse,
)
from sigstudio.api.deps import get_current_user, get_current_tenant, require_admin
from sigstudio.core.permissions import can_view_user_assignments
from sigstudio.core.tenancy import ensure_tenant_access, get_owned_or_404
from sigstudio.core.exceptions import (
    AssignmentNotFoundError,
    ConflictError,
    InvalidInputError,
    PermissionDenied,
    TemplateNotFoundError,
    UserNotFoundError,
)
from sigstudio.services.activity import record_activity
from sigstudio.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/assignments", tags=["assignments"])


def _to_response(assignment: TemplateAssignment) -> AssignmentResponse:
    return AssignmentResponse(
        id=assignment.id,
        user_id=assignment.user_id,
        template_id=assignment.template_id,
        assigned_at=assignment.assigned_at,
        user_name=assignment.user.display_name,
        user_email=assignment.user.email,
        template_name=assignment.template.name,
    )


def _tenant_assignments(db: Session, *, tenant_id: str):
    return db.query(TemplateAssignment).join(
        User, TemplateAssignment.user_id == User.id
    ).filter(User.tenant_id == tenant_id)


def _already_assigned() -> ConflictError:
    return ConflictError("Template is already assigned to this user", code="ALREADY_ASSIGNED")


@router.get("", response_model=AssignmentListResponse)
async def list_assignments(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user_id: Optional[str] = None,
    template_id: Optional[str] = None,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = _tenant_assignments(db, tenant_id=tenant.id)

    if user_id:
        query = query.filter(TemplateAssignment.user_id == user_id)
    if template_id:
        query = query.filter(TemplateAssignment.template_id == template_id)

    total = query.count()

    offset = (page - 1) * page_size
    assignments = query.order_by(
        TemplateAssignment.assigned_at.desc()
    ).offset(offset).limit(page_size).all()

    return AssignmentListResponse(
        assignments=[_to_response(a) for a in assignments],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("", response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_assignment(
    assignment_data: AssignmentCreate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Assign a template to a user.

    The same pair twice is a 400 ALREADY_ASSIGNED, never a second row.
    """
    user = get_owned_or_404(
        db, User, assignment_data.user_id,
        tenant_id=tenant.id, not_found=UserNotFoundError, user_id=current_user.id,
    )
    template = get_owned_or_404(
        db, SignatureTemplate, assignment_data.template_id,
        tenant_id=tenant.id, not_found=TemplateNotFoundError, user_id=current_user.id,
    )

    existing = db.query(TemplateAssignment.id).filter(
        TemplateAssignment.user_id == user.id,
        TemplateAssignment.template_id == template.id
    ).first()
    if existing:
        raise _already_assigned()

    assignment = TemplateAssignment(user_id=user.id, template_id=template.id)
    db.add(assignment)
    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="assigned",
        entity_type="template",
        entity_id=template.id,
        details={"user_id": user.id},
    )

    try:
        db.commit()
    except IntegrityError:
        # Concurrent request inserted the same pair
        db.rollback()
        raise _already_assigned()

    db.refresh(assignment)
    return _to_response(assignment)


@router.post("/bulk", response_model=BulkAssignmentResponse, status_code=status.HTTP_201_CREATED)
async def bulk_assign(
    bulk: BulkAssignmentCreate,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Assign one template to several users.

    Users who already have the template are reported in ``skipped``.
    Any user outside the tenant fails the whole request.
    """
    template = get_owned_or_404(
        db, SignatureTemplate, bulk.template_id,
        tenant_id=tenant.id, not_found=TemplateNotFoundError, user_id=current_user.id,
    )

    user_ids = list(dict.fromkeys(bulk.user_ids))
    users = [
        get_owned_or_404(
            db, User, user_id,
            tenant_id=tenant.id, not_found=UserNotFoundError, user_id=current_user.id,
        )
        for user_id in user_ids
    ]

    existing = {
        row.user_id for row in db.query(TemplateAssignment.user_id).filter(
            TemplateAssignment.template_id == template.id,
            TemplateAssignment.user_id.in_(user_ids)
        )
    }

    created = []
    for user in users:
        if user.id in existing:
            continue
        assignment = TemplateAssignment(user_id=user.id, template_id=template.id)
        db.add(assignment)
        created.append(assignment)

    if created:
        record_activity(
            db,
            tenant_id=tenant.id,
            user_id=current_user.id,
            action="bulk_assigned",
            entity_type="template",
            entity_id=template.id,
            details={"user_ids": [a.user_id for a in created]},
        )

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise _already_assigned()

    for assignment in created:
        db.refresh(assignment)

    return BulkAssignmentResponse(
        created=[_to_response(a) for a in created],
        skipped=[user_id for user_id in user_ids if user_id in existing],
    )


@router.delete("/bulk", response_model=BulkUnassignResponse)
async def bulk_unassign(
    bulk: BulkUnassign,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Remove several assignments in one transaction.

    Unknown ids fail the whole request with 400 ASSIGNMENTS_NOT_FOUND and
    the ids in ``missing_ids``; ids of another tenant's assignments are a
    403. Nothing is removed unless every id checks out.
    """
    assignment_ids = list(dict.fromkeys(bulk.assignment_ids))
    assignments = db.query(TemplateAssignment).filter(
        TemplateAssignment.id.in_(assignment_ids)
    ).all()

    found = {assignment.id for assignment in assignments}
    missing_ids = [assignment_id for assignment_id in assignment_ids if assignment_id not in found]
    if missing_ids:
        raise InvalidInputError(
            "Some assignments not found",
            code="ASSIGNMENTS_NOT_FOUND",
            extra={"missing_ids": missing_ids},
        )

    for assignment in assignments:
        ensure_tenant_access(
            tenant.id, assignment.user.tenant_id,
            user_id=current_user.id, resource=f"template_assignments:{assignment.id}",
        )

    for assignment in assignments:
        record_activity(
            db,
            tenant_id=tenant.id,
            user_id=current_user.id,
            action="unassigned",
            entity_type="template",
            entity_id=assignment.template_id,
            details={"user_id": assignment.user_id},
        )
        db.delete(assignment)
    db.commit()

    logger.info(
        f"Bulk unassign: {len(assignments)} assignments removed by {current_user.id}",
        extra={"tenant_id": tenant.id}
    )

    return BulkUnassignResponse(removed=len(assignments))


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    assignment = get_owned_or_404(
        db, TemplateAssignment, assignment_id,
        tenant_id=tenant.id, not_found=AssignmentNotFoundError, user_id=current_user.id,
    )
    return _to_response(assignment)


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    assignment = get_owned_or_404(
        db, TemplateAssignment, assignment_id,
        tenant_id=tenant.id, not_found=AssignmentNotFoundError, user_id=current_user.id,
    )

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="unassigned",
        entity_type="template",
        entity_id=assignment.template_id,
        details={"user_id": assignment.user_id},
    )
    db.delete(assignment)
    db.commit()

    return None


@router.get("/user/{user_id}", response_model=List[AssignmentResponse])
async def list_user_assignments(
    user_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Templates assigned to one user. Members may only ask about themselves."""
    user = get_owned_or_404(
        db, User, user_id,
        tenant_id=tenant.id, not_found=UserNotFoundError, user_id=current_user.id,
    )
    if not can_view_user_assignments(current_user, user.id):
        raise PermissionDenied("Not authorized to view this user's assignments")

    assignments = db.query(TemplateAssignment).filter(
        TemplateAssignment.user_id == user.id
    ).order_by(TemplateAssignment.assigned_at.desc()).all()

    return [_to_response(a) for a in assignments]


@router.get("/template/{template_id}", response_model=List[AssignmentResponse])
async def list_template_assignments(
    template_id: str,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    template = get_owned_or_404(
        db, SignatureTemplate, template_id,
        tenant_id=tenant.id, not_found=TemplateNotFoundError, user_id=current_user.id,
    )

    assignments = db.query(TemplateAssignment).filter(
        TemplateAssignment.template_id == template.id
    ).order_by(TemplateAssignment.assigned_at.desc()).all()

    return [_to_response(a) for a in assignments]
