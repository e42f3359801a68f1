"""
Template Assignment Model

Join entity assigning a signature template to a user.

There is no tenant_id column: scope is transitive through the user and the
template, which must belong to the same tenant (checked when assigning).
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from sigstudio.database import Base
import uuid


class TemplateAssignment(Base):
    __tablename__ = "template_assignments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    template_id = Column(
        String(36),
        ForeignKey("signature_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="assignments")
    template = relationship("SignatureTemplate", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint('user_id', 'template_id', name='uq_assignment_user_template'),
    )

    def __repr__(self):
        return f"<TemplateAssignment user={self.user_id} template={self.template_id}>"
