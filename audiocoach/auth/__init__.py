"""Token validation and roles."""

from .permissions import UserRole, is_admin
from .schemas import AuthenticatedUser


__all__ = ["AuthenticatedUser", "UserRole", "is_admin"]
