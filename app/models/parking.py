"""Parking passes and QR-code scan tracking."""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base


def _new_confirmation_code() -> str:
    return uuid.uuid4().hex


class ParkingPass(Base):
    __tablename__ = "parking_passes"
    id = Column(Integer, primary_key=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False)
    parking_zone_id = Column(Integer, ForeignKey("parking_zones.id"))

    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    original_end_time = Column(UTCDateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # hours

    # PENDING | ACTIVE | EXPIRED | CANCELLED | EXTENDED | SUSPENDED
    status = Column(String(20), default="ACTIVE", nullable=False)
    # VISITOR | CONTRACTOR | DELIVERY | EMERGENCY | STAFF
    pass_type = Column(String(20), default="VISITOR", nullable=False)
    is_emergency = Column(Boolean, default=False, nullable=False)

    visitor_name = Column(String(255))
    visitor_phone = Column(String(50))
    visitor_email = Column(String(255))

    confirmation_code = Column(String(40), unique=True, default=_new_confirmation_code)
    # WEB_FORM | QR_SCAN | ADMIN | RESIDENT_PORTAL
    registered_via = Column(String(20), default="WEB_FORM", nullable=False)
    ip_address = Column(String(64))
    user_agent = Column(Text)

    extension_count = Column(Integer, default=0, nullable=False)
    last_extended_at = Column(UTCDateTime)
    view_count = Column(Integer, default=0, nullable=False)
    last_viewed_at = Column(UTCDateTime)

    confirmation_sent = Column(Boolean, default=False, nullable=False)
    expiration_warning_sent = Column(Boolean, default=False, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(UTCDateTime)
    deleted_by = Column(Integer, ForeignKey("users.id"))
    deletion_reason = Column(Text)

    vehicle = relationship("Vehicle", back_populates="passes")
    unit = relationship("Unit", back_populates="passes")
    parking_zone = relationship("ParkingZone")

    __table_args__ = (
        Index("ix_passes_status_end", "status", "end_time"),
        Index("ix_passes_unit_status", "unit_id", "status"),
        Index("ix_passes_vehicle_created", "vehicle_id", "created_at"),
    )


class QRCodeScan(Base):
    __tablename__ = "qr_code_scans"
    id = Column(Integer, primary_key=True)
    building_id = Column(Integer, ForeignKey("buildings.id"))
    parking_zone_id = Column(Integer, ForeignKey("parking_zones.id"))
    resulted_in_pass = Column(Boolean, default=False, nullable=False)
    pass_id = Column(Integer, ForeignKey("parking_passes.id"))
    ip_address = Column(String(64))
    user_agent = Column(Text)
    scanned_at = Column(UTCDateTime, default=utcnow)
