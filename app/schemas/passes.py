"""
schemas/passes.py — Pydantic models for parking pass endpoints

Business Rules:
- License plate 2-10 chars after trimming; normalized later by the service
- Duration 1-72 hours; the building's allowed_durations narrows it further
- Extensions are 1-4 hours per request
- Visitor email, when given, must be a real address
- Only status and visitor contact fields are editable after creation

Called by: routers/passes.py
Depends on: pydantic, constants
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..constants import PASS_CONFIG

PassStatus = Literal["PENDING", "ACTIVE", "EXPIRED", "CANCELLED", "EXTENDED", "SUSPENDED"]
PassType = Literal["VISITOR", "CONTRACTOR", "DELIVERY", "EMERGENCY", "STAFF"]


class PassCreate(BaseModel):
    license_plate: str = Field(..., min_length=2, max_length=10)
    unit_number: str = Field(..., min_length=1, max_length=20)
    building_slug: str = Field(..., min_length=1, max_length=100)
    duration: int = Field(..., ge=1, le=PASS_CONFIG["max_duration_hours"])
    visitor_name: str | None = Field(None, max_length=255)
    visitor_phone: str | None = Field(None, max_length=50)
    visitor_email: EmailStr | None = None
    vehicle_make: str | None = Field(None, max_length=50)
    vehicle_model: str | None = Field(None, max_length=50)
    vehicle_color: str | None = Field(None, max_length=30)
    vehicle_state: str | None = Field(None, max_length=10)
    pass_type: PassType | None = None
    parking_zone_code: str | None = Field(None, max_length=20)
    is_emergency: bool = False

    @field_validator("license_plate", mode="before")
    @classmethod
    def strip_plate(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("visitor_email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PassUpdate(BaseModel):
    status: PassStatus | None = None
    visitor_name: str | None = Field(None, max_length=255)
    visitor_phone: str | None = Field(None, max_length=50)
    visitor_email: EmailStr | None = None


class PassExtend(BaseModel):
    pass_id: int
    additional_hours: int = Field(..., ge=1, le=PASS_CONFIG["max_extension_hours"])
