"""Static role to permission mapping returned alongside the user."""

from __future__ import annotations

WILDCARD = "*"

ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "admin": (WILDCARD,),
    "manager": (
        "products:read",
        "products:write",
        "orders:read",
        "orders:write",
        "customers:read",
    ),
    "staff": ("products:read", "orders:read"),
    "vendor": ("products:read", "products:write:own", "orders:read:own"),
}


def permissions_for(role: str) -> list[str]:
    """Return the permission list for ``role``; unknown roles get none."""
    return list(ROLE_PERMISSIONS.get(role, ()))


def has_permission(role: str, permission: str) -> bool:
    granted = ROLE_PERMISSIONS.get(role, ())
    return WILDCARD in granted or permission in granted
