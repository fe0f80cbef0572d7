"""Vehicles, keyed by normalized license plate."""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base


class Vehicle(Base):
    __tablename__ = "vehicles"
    id = Column(Integer, primary_key=True)
    license_plate = Column(String(20), nullable=False)
    normalized_plate = Column(String(20), unique=True, nullable=False)
    make = Column(String(50))
    model = Column(String(50))
    color = Column(String(30))
    state = Column(String(10))

    is_blacklisted = Column(Boolean, default=False, nullable=False)
    blacklist_reason = Column(Text)
    blacklisted_at = Column(UTCDateTime)
    blacklisted_by = Column(Integer, ForeignKey("users.id"))

    violation_count = Column(Integer, default=0, nullable=False)
    risk_score = Column(Integer, default=0, nullable=False)  # 0-100

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(UTCDateTime)

    passes = relationship("ParkingPass", back_populates="vehicle")
    violations = relationship("Violation", back_populates="vehicle")

    __table_args__ = (Index("ix_vehicles_blacklisted", "is_blacklisted"),)
