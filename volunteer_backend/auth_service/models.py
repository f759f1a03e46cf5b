"""
User roles for the volunteer service.

The role is stored as a string on the user row ("user" or "admin").
Endpoints ask capability questions instead of comparing strings.
"""

from enum import Enum
from typing import Any, Dict, Optional


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        """Unknown or missing role strings fall back to USER."""
        try:
            return cls(value)
        except ValueError:
            return cls.USER


def can_manage_events(role: Role) -> bool:
    """Admins create and complete events."""
    return role is Role.ADMIN


def role_of(user: Dict[str, Any]) -> Role:
    return Role.parse(user.get("type"))
