# src/civic_stage/schemas/user.py
"""User profile schemas mirrored from the ``users`` collection."""

from __future__ import annotations

from enum import Enum

from civic_stage.schemas.common import SnapshotModel


class Role(str, Enum):
    """Platform role stored on the profile document."""

    USER = "user"
    ADMIN = "admin"


class AccountStatus(str, Enum):
    """Moderation status an admin can assign to an account."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    BANNED = "Banned"
    PENDING = "Pending"
    SUSPENDED = "Suspended"


class UserProfile(SnapshotModel):
    """Public profile of a citizen.

    Follower and following counters are authoritative only from the store and
    are never recomputed locally.
    """

    id: str
    name: str = "Citizen"
    avatar: str = ""
    bio: str | None = None
    location: str | None = None
    email: str | None = None
    username: str | None = None
    followers: int = 0
    following: int = 0
    role: Role = Role.USER
    status: AccountStatus = AccountStatus.ACTIVE
    joined_date: int | None = None
    last_active: str | None = None

    @property
    def is_admin(self) -> bool:
        """Return True if the profile carries the admin role."""
        return self.role is Role.ADMIN
