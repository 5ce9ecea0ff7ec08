from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base

class AuditLog(Base):
    """
    Audit Log Model - One row per audited action

    Fields:
    - user_id: User who performed the action (nullable for system actions)
    - action: Action name (e.g. 'PRESCRIPTION_CREATED')
    - details: Additional context as JSON (record id, changed fields)
    - ip_address: Client address when the action came from a request
    - timestamp: When the action happened
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String, nullable=False, index=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    user = relationship("User")

    def __repr__(self):
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action='{self.action}', timestamp='{self.timestamp}')>"
