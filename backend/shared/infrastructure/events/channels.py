"""
Redis channel naming.

Three audiences receive events: the whole restaurant unit, every user holding
a role, and a single user.
"""

from __future__ import annotations

RESTAURANT_UNIT = "restaurant"


def _require_text(value: str, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string, got {value!r}")


def channel_unit(unit: str = RESTAURANT_UNIT) -> str:
    """Channel for everyone working a business unit (kitchen screens, dashboards)."""
    _require_text(unit, "unit")
    return f"unit:{unit}"


def channel_role(role: str) -> str:
    """Channel for every user holding a role."""
    _require_text(role, "role")
    return f"role:{role}"


def channel_user(user_id: str) -> str:
    """Channel for direct user notifications."""
    _require_text(user_id, "user_id")
    return f"user:{user_id}"
