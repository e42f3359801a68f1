"""
Asset Model

Uploaded images (logos, banners, avatars) used inside signature templates.
The file itself lives under UPLOAD_DIR; this row holds its metadata.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship
from datetime import datetime
from sigstudio.database import Base
import uuid


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Display name (defaults to the uploaded filename)
    name = Column(String(255), nullable=False)
    # Generated on-disk name
    filename = Column(String(255), nullable=False, unique=True)
    mime_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)  # bytes
    url = Column(String(512), nullable=False)

    uploaded_by = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="assets")
    uploader = relationship("User", foreign_keys=[uploaded_by])

    __table_args__ = (
        Index('idx_asset_tenant_created', 'tenant_id', 'created_at'),
    )

    def __repr__(self):
        return f"<Asset {self.filename} (tenant={self.tenant_id})>"
