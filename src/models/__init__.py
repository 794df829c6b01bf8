"""SQLAlchemy models."""

from src.models.user import PasswordReset, User, UserVerification

__all__ = [
    "User",
    "UserVerification",
    "PasswordReset",
]
