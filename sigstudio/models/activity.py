"""
Activity Model

Append-only audit trail of user actions, read back by the dashboard.
Rows are never updated or deleted except through tenant deletion.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from sigstudio.database import Base
import uuid


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Kept when the acting user is removed
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    action = Column(String(50), nullable=False)  # created, updated, deleted, invited, ...
    entity_type = Column(String(50), nullable=False)  # template, user, asset, assignment, tenant
    entity_id = Column(String(36), nullable=False)
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="activities")
    user = relationship("User")

    __table_args__ = (
        # Dashboard query: newest activity for a tenant
        Index('idx_activity_tenant_created', 'tenant_id', 'created_at'),
    )

    def __repr__(self):
        return f"<Activity {self.action} {self.entity_type}:{self.entity_id}>"
