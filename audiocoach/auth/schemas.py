"""Authenticated principal extracted from the access token."""

from uuid import UUID

from pydantic import BaseModel

from .permissions import is_admin


class AuthenticatedUser(BaseModel):
    """Caller identity for the current request."""

    id: UUID
    role: str
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        """Whether the caller sees fleet-wide analytics."""
        return is_admin(self.role)
