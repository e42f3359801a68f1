"""
Dashboard Endpoints

Tenant-wide counters and the recent activity feed.
"""
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List

from sigstudio.database import get_db
from sigstudio.models.user import User
from sigstudio.models.tenant import Tenant
from sigstudio.models.template import SignatureTemplate
from sigstudio.models.asset import Asset
from sigstudio.models.activity import Activity
from sigstudio.schemas.dashboard import ActivityResponse, DashboardStats
from sigstudio.api.deps import get_current_user, get_current_tenant
from sigstudio.core.tenancy import scoped
from sigstudio.services.activity import recent_activity

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

RECENT_ACTIVITY_DAYS = 30


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    since = datetime.utcnow() - timedelta(days=RECENT_ACTIVITY_DAYS)

    storage_bytes = db.query(func.coalesce(func.sum(Asset.size), 0)).filter(
        Asset.tenant_id == tenant.id
    ).scalar()

    return DashboardStats(
        templates=scoped(db, SignatureTemplate, tenant_id=tenant.id).count(),
        team_members=scoped(db, User, tenant_id=tenant.id).filter(User.is_active == True).count(),  # noqa: E712
        assets=scoped(db, Asset, tenant_id=tenant.id).count(),
        storage_bytes=int(storage_bytes or 0),
        recent_activity=scoped(db, Activity, tenant_id=tenant.id).filter(Activity.created_at >= since).count(),
    )


@router.get("/recent-activity", response_model=List[ActivityResponse])
async def dashboard_recent_activity(
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Newest activity for the tenant, with the acting user's name."""
    return recent_activity(db, tenant_id=tenant.id, limit=limit)
