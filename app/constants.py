"""
constants.py — Business constants for the parking pass system

Deployment-specific knobs live in config.py; everything here is fixed
business vocabulary shared by services, routers, and exports.

Called by: services/*, routers/*, utils/*
"""

import re

# ── Passes ───────────────────────────────────────────────────────────

PASS_CONFIG = {
    "default_durations": [2, 4, 8, 12, 24, 48, 72],
    "max_duration_hours": 72,
    "max_extensions": 1,
    "max_extension_hours": 4,
    "expiration_warning_minutes": 30,
    "grace_period_minutes": 15,
    "max_vehicles_per_unit": 2,
    "max_consecutive_hours": 24,
    "cooldown_hours": 2,
}

# Gap between passes still counted as one continuous stay
CONSECUTIVE_GAP_MINUTES = 15
# How far back the consecutive-hours and cooldown checks look
RECENT_PASS_LOOKBACK_HOURS = 48

PASS_STATUSES = {
    "PENDING": {"label": "Pending", "description": "Awaiting confirmation"},
    "ACTIVE": {"label": "Active", "description": "Currently valid"},
    "EXPIRED": {"label": "Expired", "description": "Pass has expired"},
    "CANCELLED": {"label": "Cancelled", "description": "Cancelled by user or admin"},
    "EXTENDED": {"label": "Extended", "description": "Duration extended"},
    "SUSPENDED": {"label": "Suspended", "description": "Temporarily suspended"},
}
# Statuses of a pass that still authorizes parking until end_time
LIVE_PASS_STATUSES = ("ACTIVE", "EXTENDED")
PASS_TYPES = ("VISITOR", "CONTRACTOR", "DELIVERY", "EMERGENCY", "STAFF")
REGISTRATION_SOURCES = ("WEB_FORM", "QR_SCAN", "ADMIN", "RESIDENT_PORTAL")

# ── License plates ───────────────────────────────────────────────────

PLATE_MIN_LENGTH = 2
PLATE_MAX_LENGTH = 10
PLATE_VALID_PATTERN = re.compile(r"^[A-Z0-9]{2,10}$")

VALIDATION_MESSAGES = {
    "plate_required": "License plate is required",
    "plate_invalid": "Invalid license plate format",
    "plate_min_length": f"License plate must be at least {PLATE_MIN_LENGTH} characters",
    "plate_max_length": f"License plate must not exceed {PLATE_MAX_LENGTH} characters",
    "plate_blacklisted": "This vehicle is not permitted to park",
    "unit_required": "Unit number is required",
    "unit_not_found": "Unit not found",
    "duration_invalid": "Invalid duration selected",
    "duration_too_long": f"Duration cannot exceed {PASS_CONFIG['max_duration_hours']} hours",
}

# ── Error codes ──────────────────────────────────────────────────────

ERROR_CODES = {
    # Validation (4000-4099)
    "BLACKLISTED": "ERR_4000",
    "MAX_VEHICLES_EXCEEDED": "ERR_4001",
    "MAX_CONSECUTIVE_HOURS": "ERR_4002",
    "COOLDOWN_PERIOD": "ERR_4003",
    "INVALID_DURATION": "ERR_4004",
    "OUTSIDE_OPERATING_HOURS": "ERR_4005",
    # Auth (4100-4199)
    "UNAUTHORIZED": "ERR_4100",
    "FORBIDDEN": "ERR_4101",
    "INVALID_TOKEN": "ERR_4102",
    # Database (5000-5099)
    "DATABASE_ERROR": "ERR_5000",
    "NOT_FOUND": "ERR_5001",
    "DUPLICATE": "ERR_5002",
    # System (5100-5199)
    "INTERNAL_ERROR": "ERR_5100",
    "RATE_LIMIT_EXCEEDED": "ERR_5101",
}

# ── Violations ───────────────────────────────────────────────────────

SEVERITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")

# Added to Vehicle.risk_score per logged violation (capped at 100)
RISK_SCORE_INCREMENTS = {"CRITICAL": 25, "HIGH": 15, "MEDIUM": 10, "LOW": 5}
MAX_RISK_SCORE = 100

VIOLATION_TYPES = {
    "OVERSTAY": {
        "label": "Overstay",
        "description": "Vehicle exceeded registered parking duration",
        "default_severity": "MEDIUM",
    },
    "UNREGISTERED": {
        "label": "Unregistered",
        "description": "Vehicle parked without valid pass",
        "default_severity": "HIGH",
    },
    "IMPROPER_PARKING": {
        "label": "Improper Parking",
        "description": "Vehicle parked improperly",
        "default_severity": "LOW",
    },
    "BLOCKING": {
        "label": "Blocking",
        "description": "Vehicle blocking access",
        "default_severity": "HIGH",
    },
    "RESERVED_SPOT": {
        "label": "Reserved Spot",
        "description": "Parking in reserved/restricted area",
        "default_severity": "MEDIUM",
    },
    "EXPIRED_PASS": {
        "label": "Expired Pass",
        "description": "Pass has expired",
        "default_severity": "MEDIUM",
    },
    "FRAUDULENT_REGISTRATION": {
        "label": "Fraudulent Registration",
        "description": "False or fraudulent registration",
        "default_severity": "CRITICAL",
    },
    "EMERGENCY_LANE_VIOLATION": {
        "label": "Emergency Lane Violation",
        "description": "Blocking emergency vehicle access",
        "default_severity": "CRITICAL",
    },
    "HANDICAP_VIOLATION": {
        "label": "Handicap Violation",
        "description": "Illegal use of handicap spot",
        "default_severity": "HIGH",
    },
    "OTHER": {
        "label": "Other",
        "description": "Other violation",
        "default_severity": "LOW",
    },
}

# ── Users ────────────────────────────────────────────────────────────

USER_ROLES = {
    "SUPER_ADMIN": {"label": "Super Admin", "description": "Full system access"},
    "ADMIN": {"label": "Admin", "description": "Building administrator"},
    "MANAGER": {"label": "Manager", "description": "Building manager"},
    "SECURITY": {"label": "Security", "description": "Security personnel"},
    "RESIDENT": {"label": "Resident", "description": "Unit resident"},
}
VALID_ROLES = tuple(USER_ROLES)
MIN_PASSWORD_LENGTH = 8

# ── Audit ────────────────────────────────────────────────────────────

AUDIT_ACTIONS = (
    "CREATE",
    "READ",
    "UPDATE",
    "DELETE",
    "LOGIN",
    "LOGOUT",
    "EXTEND_PASS",
    "LOG_VIOLATION",
    "RESOLVE_VIOLATION",
    "BLACKLIST_VEHICLE",
    "SETTING_CHANGE",
    "EXPORT_DATA",
)

# ── Notifications ────────────────────────────────────────────────────

EMAIL_TEMPLATES = {
    "PASS_CONFIRMATION": "email/pass_confirmation.html",
    "PASS_EXPIRING": "email/pass_expiring.html",
}

# ── QR codes ─────────────────────────────────────────────────────────

QR_CODE_CONFIG = {
    "size": 400,
    "margin": 2,
    "error_correction": "M",
    "image_format": "png",
    "dark": "#000000",
    "light": "#FFFFFF",
}

# ── Dates ────────────────────────────────────────────────────────────

TIMEZONE_DEFAULT = "America/New_York"

# strftime equivalents of "MMM dd, yyyy h:mm a" etc.
DATE_FORMATS = {
    "display": "%b %d, %Y %-I:%M %p",
    "short": "%b %d, %Y",
    "time": "%-I:%M %p",
}
