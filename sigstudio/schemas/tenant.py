"""
Tenant Schemas
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from sigstudio.models.tenant import TenantPlan


class TenantResponse(BaseModel):
    id: str
    name: str
    domain: str
    plan: TenantPlan
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TenantUpdate(BaseModel):
    """Domain is fixed after registration."""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    plan: Optional[TenantPlan] = None
