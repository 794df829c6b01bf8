"""User, verification and password reset models."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, String, func
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.enums import UserRank


def _new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """Adds created_at/updated_at columns maintained by the database."""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class User(Base, TimestampMixin):
    """Planning poker participant, either a guest or a registered account."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(64), nullable=False)
    email = Column(String(320), unique=True, nullable=True, index=True)
    password_hash = Column(String(255), nullable=True)
    rank = Column(Enum(UserRank), nullable=False, default=UserRank.GUEST)
    verified = Column(Boolean, nullable=False, default=False)

    verifications = relationship(
        "UserVerification", back_populates="user", cascade="all, delete-orphan"
    )
    password_resets = relationship(
        "PasswordReset", back_populates="user", cascade="all, delete-orphan"
    )


class UserVerification(Base, TimestampMixin):
    """Pending email verification for a registered user."""

    __tablename__ = "user_verifications"

    verify_id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    user = relationship("User", back_populates="verifications")


class PasswordReset(Base, TimestampMixin):
    """Outstanding forgot-password request."""

    __tablename__ = "password_resets"

    reset_id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="password_resets")
