"""Roles for the audio platform.

Two roles exist:
- ADMIN: publishes audios, sees fleet-wide analytics, may filter by athlete
- USER: an athlete; sees only their own listening stats
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles as carried in the access token ``role`` claim."""

    USER = "USER"  # Athlete
    ADMIN = "ADMIN"  # Coach / administrator


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.USER: 0,
    UserRole.ADMIN: 1,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role.

    Unknown roles get the lowest level, so a malformed claim can never
    escalate to fleet-wide data.

    Examples:
        >>> get_role_level("ADMIN")
        1
        >>> get_role_level("superuser")
        0
    """
    if isinstance(role, str):
        try:
            role = UserRole(role.upper())
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return get_role_level(role) == ROLE_HIERARCHY[UserRole.ADMIN]
