"""
authorization.py — Role → permission table and route access rules

Single source of truth for what each role may do. Dependencies in
dependencies.py, the route guard in main.py, and the dashboard navigation
all read from here; nothing else hard-codes role names for access checks.

Business Rules:
- SUPER_ADMIN has every permission; ADMIN has all except system:admin
- MANAGER runs day-to-day operations (passes, violations, units, vehicles)
  plus analytics and exports
- SECURITY patrols: view passes, view/log violations, view vehicles
- RESIDENT sees own passes, creates and extends passes
- Unknown roles have no permissions
- Unknown /dashboard routes are denied; non-dashboard routes are allowed

Called by: dependencies.py, main.py (route guard), navigation.py, routers
Depends on: nothing (pure functions)
"""

from dataclasses import dataclass
from typing import Iterable

# ── Permissions ──────────────────────────────────────────────────────

PASS_PERMISSIONS = (
    "passes:view_all",
    "passes:view_own",
    "passes:create",
    "passes:update",
    "passes:delete",
    "passes:extend",
)
VIOLATION_PERMISSIONS = (
    "violations:view",
    "violations:create",
    "violations:update",
    "violations:resolve",
)
UNIT_PERMISSIONS = ("units:view", "units:manage")
VEHICLE_PERMISSIONS = ("vehicles:view", "vehicles:blacklist")
USER_PERMISSIONS = ("users:view", "users:manage")
SETTINGS_PERMISSIONS = ("settings:view", "settings:manage")
REPORT_PERMISSIONS = ("analytics:view", "reports:export", "audit_logs:view")
SYSTEM_PERMISSIONS = ("health:view", "system:admin")

ALL_PERMISSIONS = (
    PASS_PERMISSIONS
    + VIOLATION_PERMISSIONS
    + UNIT_PERMISSIONS
    + VEHICLE_PERMISSIONS
    + USER_PERMISSIONS
    + SETTINGS_PERMISSIONS
    + REPORT_PERMISSIONS
    + SYSTEM_PERMISSIONS
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "SUPER_ADMIN": frozenset(ALL_PERMISSIONS),
    "ADMIN": frozenset(p for p in ALL_PERMISSIONS if p != "system:admin"),
    "MANAGER": frozenset(
        PASS_PERMISSIONS
        + VIOLATION_PERMISSIONS
        + UNIT_PERMISSIONS
        + VEHICLE_PERMISSIONS
        + ("analytics:view", "reports:export")
    ),
    "SECURITY": frozenset(
        (
            "passes:view_all",
            "passes:view_own",
            "violations:view",
            "violations:create",
            "vehicles:view",
        )
    ),
    "RESIDENT": frozenset(("passes:view_own", "passes:create", "passes:extend")),
}

# Empty tuple = any authenticated user; otherwise ANY listed permission
ROUTE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "/dashboard": (),
    "/dashboard/passes": ("passes:view_all", "passes:view_own"),
    "/dashboard/violations": ("violations:view",),
    "/dashboard/units": ("units:view",),
    "/dashboard/analytics": ("analytics:view",),
    "/dashboard/health": ("health:view",),
    "/dashboard/users": ("users:view",),
    "/dashboard/settings": ("settings:view",),
}

ADMIN_ROLES = ("ADMIN", "SUPER_ADMIN")


# ── Checks ───────────────────────────────────────────────────────────


def get_permissions(role: str | None) -> frozenset[str]:
    return ROLE_PERMISSIONS.get(role or "", frozenset())


def has_permission(role: str | None, permission: str) -> bool:
    return permission in get_permissions(role)


def has_any_permission(role: str | None, permissions: Iterable[str]) -> bool:
    granted = get_permissions(role)
    return any(p in granted for p in permissions)


def has_all_permissions(role: str | None, permissions: Iterable[str]) -> bool:
    granted = get_permissions(role)
    return all(p in granted for p in permissions)


def can_access_route(role: str | None, pathname: str) -> bool:
    """Check a page path against the most specific matching route rule."""
    matches = [
        route
        for route in ROUTE_PERMISSIONS
        if pathname == route or pathname.startswith(route + "/")
    ]
    if not matches:
        return not pathname.startswith("/dashboard")

    required = ROUTE_PERMISSIONS[max(matches, key=len)]
    if not required:
        return True
    return has_any_permission(role, required)


def is_admin(role: str | None) -> bool:
    return role in ADMIN_ROLES


def is_super_admin(role: str | None) -> bool:
    return role == "SUPER_ADMIN"


@dataclass(frozen=True)
class AuthContext:
    """Who is acting, with permission helpers bound to their role."""

    user_id: int
    role: str

    def has_permission(self, permission: str) -> bool:
        return has_permission(self.role, permission)

    def has_any_permission(self, permissions: Iterable[str]) -> bool:
        return has_any_permission(self.role, permissions)

    def is_owner(self, resource_user_id: int | None) -> bool:
        return resource_user_id is not None and self.user_id == resource_user_id


def require_ownership_or(
    ctx: AuthContext, resource_user_id: int | None, fallback_permission: str
) -> bool:
    """Owners always pass; everyone else needs the fallback permission."""
    return ctx.is_owner(resource_user_id) or ctx.has_permission(fallback_permission)
