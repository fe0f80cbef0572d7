"""Database models — re-exports all models.

Import from here:  from app.models import User, ParkingPass, ...
Or from submodules: from app.models.parking import ParkingPass
"""

from .base import Base  # noqa: F401

# Auth & Users
from .auth import User  # noqa: F401

# Buildings: rules, zones, managers
from .building import Building, BuildingManager, ParkingRule, ParkingZone  # noqa: F401

# Units & Residents
from .unit import Resident, Unit  # noqa: F401

# Vehicles, Passes, Violations
from .vehicle import Vehicle  # noqa: F401
from .parking import ParkingPass, QRCodeScan  # noqa: F401
from .violation import Violation  # noqa: F401

# Audit & Notifications
from .audit import AuditLog  # noqa: F401
from .notification import NotificationQueue  # noqa: F401
