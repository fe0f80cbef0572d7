"""Audit trail of user and system actions."""

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True)
    action = Column(String(30), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"))  # null = system
    details = Column(JSON)
    data_accessed = Column(JSON)
    ip_address = Column(String(64))
    user_agent = Column(Text)
    created_at = Column(UTCDateTime, default=utcnow)

    user = relationship("User")

    __table_args__ = (
        Index("ix_audit_entity", "entity_type", "entity_id"),
        Index("ix_audit_created", "created_at"),
    )
