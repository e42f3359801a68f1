"""
Signature Template Models

A SignatureTemplate is the HTML signature a tenant hands out to its users.
Every content change snapshots the previous name/html into
SignatureTemplateVersion so the history can be listed.
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from sigstudio.database import Base
import uuid


class SignatureTemplate(Base):
    __tablename__ = "signature_templates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(100), nullable=False)
    html_content = Column(Text, nullable=False)
    description = Column(String(500), nullable=True)

    # At most one default per tenant, maintained by the templates endpoints
    is_default = Column(Boolean, default=False, nullable=False)

    created_by = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="templates")
    creator = relationship("User", foreign_keys=[created_by])
    assignments = relationship("TemplateAssignment", back_populates="template", cascade="all, delete-orphan")
    versions = relationship(
        "SignatureTemplateVersion",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="SignatureTemplateVersion.version.desc()",
    )

    __table_args__ = (
        Index('idx_template_tenant_default', 'tenant_id', 'is_default'),
        Index('idx_template_tenant_name', 'tenant_id', 'name'),
    )

    def __repr__(self):
        return f"<SignatureTemplate {self.name} (tenant={self.tenant_id})>"


class SignatureTemplateVersion(Base):
    __tablename__ = "signature_template_versions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    template_id = Column(
        String(36),
        ForeignKey("signature_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    version = Column(Integer, nullable=False)
    name = Column(String(100), nullable=False)
    html_content = Column(Text, nullable=False)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    template = relationship("SignatureTemplate", back_populates="versions")

    __table_args__ = (
        UniqueConstraint('template_id', 'version', name='uq_template_version'),
    )

    def __repr__(self):
        return f"<SignatureTemplateVersion {self.template_id} v{self.version}>"
