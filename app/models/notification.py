"""Outbound notification queue (email now, SMS reserved)."""

from sqlalchemy import Column, Index, Integer, String, Text

from ..database import UTCDateTime, utcnow
from .base import Base


class NotificationQueue(Base):
    __tablename__ = "notification_queue"
    id = Column(Integer, primary_key=True)
    type = Column(String(10), default="EMAIL", nullable=False)  # EMAIL | SMS
    recipient = Column(String(255), nullable=False)
    subject = Column(String(255))
    body = Column(Text, nullable=False)
    status = Column(String(10), default="PENDING", nullable=False)  # PENDING | SENT | FAILED
    attempts = Column(Integer, default=0, nullable=False)
    sent_at = Column(UTCDateTime)
    failed_at = Column(UTCDateTime)
    error_message = Column(Text)
    entity_type = Column(String(50))
    entity_id = Column(String(64))
    created_at = Column(UTCDateTime, default=utcnow)

    __table_args__ = (Index("ix_notifications_status", "status", "attempts"),)
