"""
Asset Schemas
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class AssetResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    filename: str
    mime_type: str
    size: int
    url: str
    uploaded_by: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AssetListResponse(BaseModel):
    assets: list[AssetResponse]
    total: int
    page: int
    page_size: int


class AssetStats(BaseModel):
    total_assets: int
    total_size: int
    by_type: dict[str, int]


class UploadFailure(BaseModel):
    filename: Optional[str]
    code: str
    error: str


class MultiUploadResponse(BaseModel):
    """Files that failed validation are listed in failed; the rest are stored."""
    uploaded: list[AssetResponse]
    failed: list[UploadFailure]
    total_uploaded: int
    total_failed: int
