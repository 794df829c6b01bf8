"""Pydantic schemas for API requests and responses."""

from src.schemas.auth import (
    AccountVerify,
    ForgotPassword,
    GuestCreate,
    PasswordReset,
    PasswordUpdate,
    StandardResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)

__all__ = [
    "UserLogin",
    "GuestCreate",
    "UserRegister",
    "ForgotPassword",
    "PasswordReset",
    "PasswordUpdate",
    "AccountVerify",
    "UserResponse",
    "StandardResponse",
]
