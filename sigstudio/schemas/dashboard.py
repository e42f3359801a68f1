"""
Dashboard Schemas
"""
from pydantic import BaseModel
from typing import Any, Optional
from datetime import datetime


class ActivityResponse(BaseModel):
    id: str
    user_id: Optional[str]
    user_name: Optional[str]
    action: str
    entity_type: str
    entity_id: str
    details: Optional[dict[str, Any]] = None
    created_at: datetime


class DashboardStats(BaseModel):
    templates: int
    team_members: int
    assets: int
    storage_bytes: int
    # Activity entries in the last 30 days
    recent_activity: int
