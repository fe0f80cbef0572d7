"""Units (apartments / wings) and the residents attached to them."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base


class Unit(Base):
    __tablename__ = "units"
    __table_args__ = (
        UniqueConstraint("building_id", "unit_number", name="uq_unit_building_number"),
    )
    id = Column(Integer, primary_key=True)
    building_id = Column(Integer, ForeignKey("buildings.id"), nullable=False)
    unit_number = Column(String(20), nullable=False)
    floor = Column(Integer)
    section = Column(String(50))
    primary_phone = Column(String(50))
    primary_email = Column(String(255))
    is_occupied = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(UTCDateTime)

    building = relationship("Building", back_populates="units")
    residents = relationship("Resident", back_populates="unit")
    passes = relationship("ParkingPass", back_populates="unit")


class Resident(Base):
    __tablename__ = "residents"
    id = Column(Integer, primary_key=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    is_primary = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)

    unit = relationship("Unit", back_populates="residents")
    user = relationship("User", back_populates="resident")
