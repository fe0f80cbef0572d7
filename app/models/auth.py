"""Auth & user models."""

from sqlalchemy import Boolean, Column, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    phone = Column(String(50))
    password_hash = Column(String(255))
    role = Column(
        String(20), default="MANAGER", nullable=False
    )  # SUPER_ADMIN | ADMIN | MANAGER | SECURITY | RESIDENT
    is_active = Column(Boolean, default=True, nullable=False)

    # Suspension
    is_suspended = Column(Boolean, default=False, nullable=False)
    suspended_at = Column(UTCDateTime)
    suspension_reason = Column(Text)

    # Login tracking
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    last_failed_login_at = Column(UTCDateTime)
    last_login_at = Column(UTCDateTime)

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(UTCDateTime)

    resident = relationship("Resident", back_populates="user", uselist=False)
    managed_buildings = relationship("BuildingManager", back_populates="user")
