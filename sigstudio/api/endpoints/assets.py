"""
Asset Endpoints

Image uploads (logos, banners, avatars) referenced from templates.
Files are served statically under /uploads; rows here hold metadata.

RBAC:
- List / view / upload: any member of the tenant
- Delete: admin, or the member who uploaded the asset
"""
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional

from sigstudio.database import get_db
from sigstudio.models.user import User
from sigstudio.models.tenant import Tenant
from sigstudio.models.asset import Asset
from sigstudio.schemas.asset import (
    AssetListResponse,
    AssetResponse,
    AssetStats,
    MultiUploadResponse,
    UploadFailure,
)
from sigstudio.api.deps import get_current_user, get_current_tenant
from sigstudio.core.permissions import can_delete_asset
from sigstudio.core.tenancy import get_owned_or_404, scoped
from sigstudio.core.exceptions import AssetNotFoundError, InvalidInputError, PermissionDenied
from sigstudio.services.activity import record_activity
from sigstudio.services.uploads import remove_upload, save_upload
from sigstudio.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/assets", tags=["assets"])

MAX_FILES_PER_UPLOAD = 5


@router.get("", response_model=AssetListResponse)
async def list_assets(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = scoped(db, Asset, tenant_id=tenant.id)

    total = query.count()

    offset = (page - 1) * page_size
    assets = query.order_by(Asset.created_at.desc()).offset(offset).limit(page_size).all()

    return AssetListResponse(
        assets=assets,
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/upload", response_model=AssetResponse, status_code=status.HTTP_201_CREATED)
async def upload_asset(
    file: UploadFile = File(...),
    name: Optional[str] = Form(None, max_length=255),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Upload an image.

    SECURITY: type is decided from the file's bytes, not its name; the
    declared content type must also be allowed. Oversized files are
    rejected while reading.
    """
    stored = save_upload(file.file, file.content_type)

    asset = Asset(
        tenant_id=tenant.id,
        name=(name or file.filename or stored.filename)[:255],
        filename=stored.filename,
        mime_type=stored.mime_type,
        size=stored.size,
        url=stored.url,
        uploaded_by=current_user.id,
    )
    db.add(asset)
    db.flush()

    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="uploaded",
        entity_type="asset",
        entity_id=asset.id,
        details={"name": asset.name, "size": asset.size},
    )

    try:
        db.commit()
    except Exception:
        db.rollback()
        remove_upload(stored.filename)
        raise

    db.refresh(asset)

    logger.info(
        f"Asset uploaded: {asset.id} ({asset.mime_type}, {asset.size} bytes)",
        extra={"tenant_id": tenant.id, "user_id": current_user.id}
    )

    return asset


@router.post("/upload/multiple", response_model=MultiUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_assets(
    files: List[UploadFile] = File(...),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Upload up to MAX_FILES_PER_UPLOAD images in one request.

    Each file is checked like a single upload. Rejected files are reported
    in ``failed`` and don't stop the others.
    """
    if len(files) > MAX_FILES_PER_UPLOAD:
        raise InvalidInputError(
            f"At most {MAX_FILES_PER_UPLOAD} files per request",
            code="TOO_MANY_FILES",
        )

    assets = []
    failed = []
    for file in files:
        try:
            stored = save_upload(file.file, file.content_type)
        except InvalidInputError as exc:
            failed.append(UploadFailure(filename=file.filename, code=exc.code, error=exc.detail))
            continue

        asset = Asset(
            tenant_id=tenant.id,
            name=(file.filename or stored.filename)[:255],
            filename=stored.filename,
            mime_type=stored.mime_type,
            size=stored.size,
            url=stored.url,
            uploaded_by=current_user.id,
        )
        db.add(asset)
        assets.append(asset)

    db.flush()
    for asset in assets:
        record_activity(
            db,
            tenant_id=tenant.id,
            user_id=current_user.id,
            action="uploaded",
            entity_type="asset",
            entity_id=asset.id,
            details={"name": asset.name, "size": asset.size},
        )

    try:
        db.commit()
    except Exception:
        db.rollback()
        for asset in assets:
            remove_upload(asset.filename)
        raise

    for asset in assets:
        db.refresh(asset)

    logger.info(
        f"Assets uploaded: {len(assets)} stored, {len(failed)} rejected",
        extra={"tenant_id": tenant.id, "user_id": current_user.id}
    )

    return MultiUploadResponse(
        uploaded=assets,
        failed=failed,
        total_uploaded=len(assets),
        total_failed=len(failed),
    )


@router.get("/stats", response_model=AssetStats)
async def asset_stats(
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Count and total size of the tenant's assets, with counts per MIME type."""
    rows = db.query(
        Asset.mime_type, func.count(Asset.id), func.coalesce(func.sum(Asset.size), 0)
    ).filter(
        Asset.tenant_id == tenant.id
    ).group_by(Asset.mime_type).all()

    return AssetStats(
        total_assets=sum(count for _, count, _ in rows),
        total_size=sum(int(size) for _, _, size in rows),
        by_type={mime_type: count for mime_type, count, _ in rows},
    )


@router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(
    asset_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return get_owned_or_404(
        db, Asset, asset_id,
        tenant_id=tenant.id, not_found=AssetNotFoundError, user_id=current_user.id,
    )


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_asset(
    asset_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Delete an asset and its file."""
    asset = get_owned_or_404(
        db, Asset, asset_id,
        tenant_id=tenant.id, not_found=AssetNotFoundError, user_id=current_user.id,
    )

    if not can_delete_asset(current_user, asset.uploaded_by):
        raise PermissionDenied("Not authorized to delete this asset")

    filename = asset.filename
    record_activity(
        db,
        tenant_id=tenant.id,
        user_id=current_user.id,
        action="deleted",
        entity_type="asset",
        entity_id=asset.id,
        details={"name": asset.name},
    )
    db.delete(asset)
    db.commit()

    remove_upload(filename)

    return None
