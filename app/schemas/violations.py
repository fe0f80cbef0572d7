"""
schemas/violations.py — Pydantic models for violation and vehicle endpoints

Business Rules:
- Violation type and severity come from closed catalogs
- Fine amount cannot be negative
- Photo URL list is capped at 10 entries

Called by: routers/violations.py, routers/vehicles.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

Severity = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
ViolationType = Literal[
    "OVERSTAY",
    "UNREGISTERED",
    "IMPROPER_PARKING",
    "BLOCKING",
    "RESERVED_SPOT",
    "EXPIRED_PASS",
    "FRAUDULENT_REGISTRATION",
    "EMERGENCY_LANE_VIOLATION",
    "HANDICAP_VIOLATION",
    "OTHER",
]


class ViolationCreate(BaseModel):
    license_plate: str = Field(..., min_length=2, max_length=10)
    type: ViolationType
    severity: Severity | None = None
    description: str | None = None
    location: str | None = Field(None, max_length=255)
    parking_zone_id: int | None = None
    photo_urls: list[str] | None = Field(None, max_length=10)
    evidence_notes: str | None = None
    fine_amount: float | None = Field(None, ge=0)


class ViolationUpdate(BaseModel):
    is_resolved: bool | None = None
    resolution: str | None = None
    is_paid: bool | None = None
    severity: Severity | None = None


class VehicleUpdate(BaseModel):
    is_blacklisted: bool | None = None
    blacklist_reason: str | None = Field(None, max_length=500)
    make: str | None = Field(None, max_length=50)
    model: str | None = Field(None, max_length=50)
    color: str | None = Field(None, max_length=30)
    state: str | None = Field(None, max_length=10)
