"""
Template Assignment Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

MAX_BULK_ASSIGNMENTS = 50


class AssignmentCreate(BaseModel):
    user_id: str
    template_id: str


class BulkAssignmentCreate(BaseModel):
    """Assign one template to many users at once."""
    template_id: str
    user_ids: list[str] = Field(..., min_length=1, max_length=MAX_BULK_ASSIGNMENTS)


class AssignmentResponse(BaseModel):
    id: str
    user_id: str
    template_id: str
    assigned_at: datetime
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    template_name: Optional[str] = None


class AssignmentListResponse(BaseModel):
    assignments: list[AssignmentResponse]
    total: int
    page: int
    page_size: int


class BulkAssignmentResponse(BaseModel):
    """user_ids already assigned are reported in skipped."""
    created: list[AssignmentResponse]
    skipped: list[str]


class BulkUnassign(BaseModel):
    """Remove several assignments at once; all of them or none."""
    assignment_ids: list[str] = Field(..., min_length=1, max_length=MAX_BULK_ASSIGNMENTS)


class BulkUnassignResponse(BaseModel):
    removed: int
