"""Enums for model fields."""

from enum import Enum


class UserRank(str, Enum):
    """Account types a user can hold."""

    GUEST = "GUEST"
    REGISTERED = "REGISTERED"

    @property
    def is_registered(self) -> bool:
        """Check if this rank belongs to a registered account."""
        return self == UserRank.REGISTERED
