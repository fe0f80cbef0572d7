"""Dashboard navigation, filtered by role permissions."""

from .authorization import has_any_permission

# Order is display order. Empty permissions = every authenticated user.
NAV_ITEMS = [
    {"href": "/dashboard", "label": "Overview", "icon": "LayoutDashboard", "permissions": []},
    {
        "href": "/dashboard/passes",
        "label": "Active Passes",
        "icon": "Car",
        "permissions": ["passes:view_all", "passes:view_own"],
    },
    {
        "href": "/dashboard/violations",
        "label": "Violations",
        "icon": "AlertTriangle",
        "permissions": ["violations:view"],
    },
    {"href": "/dashboard/units", "label": "Units", "icon": "Home", "permissions": ["units:view"]},
    {
        "href": "/dashboard/analytics",
        "label": "Analytics",
        "icon": "BarChart3",
        "permissions": ["analytics:view"],
    },
    {
        "href": "/dashboard/health",
        "label": "System Health",
        "icon": "Activity",
        "permissions": ["health:view"],
    },
    {"href": "/dashboard/users", "label": "Users", "icon": "Users", "permissions": ["users:view"]},
    {
        "href": "/dashboard/settings",
        "label": "Settings",
        "icon": "Settings",
        "permissions": ["settings:view"],
    },
]


def get_nav_items_for_role(role: str | None) -> list[dict]:
    return [
        item
        for item in NAV_ITEMS
        if not item["permissions"] or has_any_permission(role, item["permissions"])
    ]
