"""
Activity Log

Append-only audit trail. Rows are added inside the caller's transaction,
so an action and its activity entry commit (or roll back) together.
"""
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from sigstudio.models.activity import Activity
from sigstudio.models.user import User


def record_activity(
    db: Session,
    *,
    tenant_id: str,
    user_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: str,
    details: Optional[Mapping[str, Any]] = None,
) -> Activity:
    entry = Activity(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=dict(details) if details else None,
    )
    db.add(entry)
    return entry


def recent_activity(db: Session, *, tenant_id: str, limit: int = 10) -> List[Dict[str, Any]]:
    """
    Newest ``limit`` entries for a tenant, each with the acting user's name.

    user_name is None when the user has since been removed.
    """
    rows = (
        db.query(Activity, User)
        .outerjoin(User, Activity.user_id == User.id)
        .filter(Activity.tenant_id == tenant_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": activity.id,
            "user_id": activity.user_id,
            "user_name": user.display_name if user else None,
            "action": activity.action,
            "entity_type": activity.entity_type,
            "entity_id": activity.entity_id,
            "details": activity.details,
            "created_at": activity.created_at,
        }
        for activity, user in rows
    ]
