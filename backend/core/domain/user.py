"""User domain entity."""

from dataclasses import dataclass
from enum import StrEnum


class UserRole(StrEnum):
    """User roles in the system."""

    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """The authenticated account making a request.

    Services receive the principal explicitly instead of reading any
    request-scoped session state. ``None`` stands for anonymous access.
    """

    user_id: str
    role: UserRole = UserRole.USER

    def __post_init__(self):
        if isinstance(self.role, str) and not isinstance(self.role, UserRole):
            object.__setattr__(self, "role", UserRole(self.role))

    @property
    def is_admin(self) -> bool:
        """Check if principal has admin privileges."""
        return self.role == UserRole.ADMIN
