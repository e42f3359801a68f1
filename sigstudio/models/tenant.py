"""
Tenant Model

The tenant is the isolation boundary: one customer organization with its
own users, signature templates, assets and activity log.

ARCHITECTURAL DECISION: shared database, shared schema with a tenant_id
column on every child table. Isolation is enforced in the application
layer (see core.tenancy).
"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from sigstudio.database import Base
import enum
import uuid


class TenantPlan(str, enum.Enum):
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class Tenant(Base):
    __tablename__ = "tenants"

    # UUIDs avoid enumeration of other organizations
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)

    # Organization email domain, e.g. "acme.com". Stored lower-case.
    domain = Column(String(255), unique=True, nullable=False, index=True)

    plan = Column(String(20), default=TenantPlan.STARTER.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Deleting a tenant removes every child row
    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan", passive_deletes=True)
    templates = relationship(
        "SignatureTemplate", back_populates="tenant", cascade="all, delete-orphan", passive_deletes=True
    )
    assets = relationship("Asset", back_populates="tenant", cascade="all, delete-orphan", passive_deletes=True)
    activities = relationship("Activity", back_populates="tenant", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Tenant {self.domain}>"
