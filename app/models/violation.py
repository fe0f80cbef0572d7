"""Violations logged against vehicles by security staff."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base


class Violation(Base):
    __tablename__ = "violations"
    id = Column(Integer, primary_key=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    type = Column(String(40), nullable=False)
    severity = Column(String(10), default="MEDIUM", nullable=False)  # LOW | MEDIUM | HIGH | CRITICAL
    description = Column(Text)
    location = Column(String(255))
    parking_zone_id = Column(Integer, ForeignKey("parking_zones.id"))
    photo_urls = Column(JSON, default=list)
    evidence_notes = Column(Text)

    citation_number = Column(String(50))
    fine_amount = Column(Numeric(10, 2))
    is_paid = Column(Boolean, default=False, nullable=False)

    is_resolved = Column(Boolean, default=False, nullable=False)
    resolution = Column(Text)
    resolved_at = Column(UTCDateTime)
    resolved_by = Column(Integer, ForeignKey("users.id"))

    logged_by_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(UTCDateTime)

    vehicle = relationship("Vehicle", back_populates="violations")
    logged_by = relationship("User", foreign_keys=[logged_by_id])
    parking_zone = relationship("ParkingZone")

    __table_args__ = (
        Index("ix_violations_resolved", "is_resolved"),
        Index("ix_violations_created", "created_at"),
    )
