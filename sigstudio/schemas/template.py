"""
Signature Template Schemas
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime

MAX_HTML_LENGTH = 50000


class TemplateBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    html_content: str = Field(..., min_length=1, max_length=MAX_HTML_LENGTH)
    description: Optional[str] = Field(None, max_length=500)
    is_default: bool = False


class TemplateCreate(TemplateBase):
    """
    tenant_id is optional. When sent it must equal the caller's tenant;
    it is never used to pick the owner.
    """
    tenant_id: Optional[str] = None


class TemplateUpdate(BaseModel):
    """Schema for updating a template. All fields optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    html_content: Optional[str] = Field(None, min_length=1, max_length=MAX_HTML_LENGTH)
    description: Optional[str] = Field(None, max_length=500)
    is_default: Optional[bool] = None


class TemplateDuplicate(BaseModel):
    """Name of the copy; defaults to "<name> (Copy)"."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class TemplateResponse(TemplateBase):
    id: str
    tenant_id: str
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TemplateVersionResponse(BaseModel):
    id: str
    template_id: str
    version: int
    name: str
    html_content: str
    created_by: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TemplateListResponse(BaseModel):
    """Paginated list of templates."""
    templates: list[TemplateResponse]
    total: int
    page: int
    page_size: int
