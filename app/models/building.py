"""Buildings and their parking configuration: rules, zones, managers."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base

DEFAULT_ALLOWED_DURATIONS = [2, 4, 8, 12, 24]


class Building(Base):
    __tablename__ = "buildings"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    address = Column(String(255))
    city = Column(String(100))
    state = Column(String(50))
    zip_code = Column(String(20))
    contact_email = Column(String(255))
    contact_phone = Column(String(50))
    emergency_phone = Column(String(50))
    timezone = Column(String(64), default="America/New_York", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(UTCDateTime)

    parking_rules = relationship(
        "ParkingRule", back_populates="building", uselist=False, cascade="all, delete-orphan"
    )
    zones = relationship("ParkingZone", back_populates="building")
    units = relationship("Unit", back_populates="building")
    managers = relationship("BuildingManager", back_populates="building")


class ParkingRule(Base):
    __tablename__ = "parking_rules"
    id = Column(Integer, primary_key=True)
    building_id = Column(Integer, ForeignKey("buildings.id"), unique=True, nullable=False)
    max_vehicles_per_unit = Column(Integer, default=2, nullable=False)
    max_consecutive_hours = Column(Integer, default=24, nullable=False)
    cooldown_hours = Column(Integer, default=2, nullable=False)
    max_extensions = Column(Integer, default=1, nullable=False)
    extension_max_hours = Column(Integer, default=4, nullable=False)
    require_unit_confirmation = Column(Boolean, default=False, nullable=False)
    # Both null = open 24/7; start > end means an overnight window
    operating_start_hour = Column(Integer)
    operating_end_hour = Column(Integer)
    allowed_durations = Column(JSON, default=lambda: list(DEFAULT_ALLOWED_DURATIONS))
    grace_period_minutes = Column(Integer, default=15, nullable=False)
    allow_emergency_override = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    building = relationship("Building", back_populates="parking_rules")


class ParkingZone(Base):
    __tablename__ = "parking_zones"
    __table_args__ = (UniqueConstraint("building_id", "code", name="uq_zone_building_code"),)
    id = Column(Integer, primary_key=True)
    building_id = Column(Integer, ForeignKey("buildings.id"), nullable=False)
    name = Column(String(100), nullable=False)
    code = Column(String(20), nullable=False)
    description = Column(Text)
    total_spots = Column(Integer)
    is_emergency_zone = Column(Boolean, default=False, nullable=False)
    requires_approval = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
    deleted_at = Column(UTCDateTime)

    building = relationship("Building", back_populates="zones")


class BuildingManager(Base):
    __tablename__ = "building_managers"
    __table_args__ = (UniqueConstraint("user_id", "building_id", name="uq_manager_building"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    building_id = Column(Integer, ForeignKey("buildings.id"), nullable=False)
    can_manage_units = Column(Boolean, default=True, nullable=False)
    can_manage_violations = Column(Boolean, default=True, nullable=False)
    can_manage_settings = Column(Boolean, default=False, nullable=False)
    can_export_data = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)

    user = relationship("User", back_populates="managed_buildings")
    building = relationship("Building", back_populates="managers")
