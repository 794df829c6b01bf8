"""Authentication schemas."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from src.models.enums import UserRank

T = TypeVar("T")

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 72


class _PasswordPair(BaseModel):
    """New password entered twice."""

    model_config = ConfigDict(populate_by_name=True)

    password1: str = Field(
        ...,
        alias="warriorPassword1",
        min_length=PASSWORD_MIN_LENGTH,
        max_length=PASSWORD_MAX_LENGTH,
    )
    password2: str = Field(
        ...,
        alias="warriorPassword2",
        min_length=PASSWORD_MIN_LENGTH,
        max_length=PASSWORD_MAX_LENGTH,
    )

    @model_validator(mode="after")
    def passwords_match(self) -> "_PasswordPair":
        if self.password1 != self.password2:
            raise ValueError("passwords do not match")
        return self


class UserLogin(BaseModel):
    """Password or LDAP login request."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., alias="warriorEmail", max_length=320)
    password: str = Field(..., alias="warriorPassword", max_length=PASSWORD_MAX_LENGTH)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class GuestCreate(BaseModel):
    """Guest signup request."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., alias="warriorName", max_length=64)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v


class UserRegister(_PasswordPair):
    """Registered account signup request."""

    name: str = Field(..., alias="warriorName", max_length=64)
    email: EmailStr = Field(..., alias="warriorEmail")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class ForgotPassword(BaseModel):
    """Forgot password request."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., alias="warriorEmail", max_length=320)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class PasswordReset(_PasswordPair):
    """Reset password request carrying the emailed reset ID."""

    reset_id: str = Field(..., alias="resetId")


class PasswordUpdate(_PasswordPair):
    """Password change for the signed-in user."""


class AccountVerify(BaseModel):
    """Email verification request."""

    model_config = ConfigDict(populate_by_name=True)

    verify_id: str = Field(..., alias="verifyId")


class UserResponse(BaseModel):
    """User information response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str | None
    rank: UserRank
    verified: bool


class StandardResponse(BaseModel, Generic[T]):
    """JSON envelope wrapped around every response."""

    success: bool = True
    error: str = ""
    data: T | None = None
    meta: Any = None
