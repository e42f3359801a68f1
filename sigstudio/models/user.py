"""
User Model

Users belong to exactly one tenant and carry a role used for RBAC.

IMPORTANT: tenant_id is the field every query filters on.
Email is globally unique because login is by email alone.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Integer, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from sigstudio.database import Base
import uuid
import enum


class UserRole(str, enum.Enum):
    """
    User roles for RBAC.

    ADMIN: manages the tenant, its team and template assignments
    MEMBER: manages templates and assets within the tenant
    """
    ADMIN = "admin"
    MEMBER = "member"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    title = Column(String(100), nullable=True)
    department = Column(String(100), nullable=True)

    role = Column(
        SQLEnum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
        default=UserRole.MEMBER,
        nullable=False,
        index=True
    )

    # Bumped by logout-all and admin password resets. Tokens carry the
    # version they were issued with and stop verifying once it changes.
    token_version = Column(Integer, default=0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    tenant = relationship("Tenant", back_populates="users")
    assignments = relationship("TemplateAssignment", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_user_tenant_active', 'tenant_id', 'is_active'),
        Index('idx_user_tenant_role', 'tenant_id', 'role'),
    )

    def __repr__(self):
        return f"<User {self.email} (tenant={self.tenant_id})>"

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
