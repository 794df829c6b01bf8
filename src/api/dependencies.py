"""FastAPI dependencies for sessions, feature toggles and collaborators."""

from typing import Annotated

from fastapi import Depends, Request, status
from sqlalchemy.orm import Session

from src.api.errors import ApiError
from src.config import Settings, get_settings
from src.database import get_db
from src.models.user import User
from src.services.auth import get_user_by_id
from src.services.email import EmailService
from src.services.ldap import LdapDirectory
from src.services.session import validate_user_cookie


def get_current_user_id(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """Get the user ID from the signed session cookie."""
    user_id = validate_user_cookie(request, settings)
    if user_id is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "INVALID_USER", clear_session=settings)
    return user_id


def get_optional_user_id(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str | None:
    """Get the user ID from the session cookie if one is present and valid.

    A cookie that fails validation is flagged on ``request.state`` so that the
    error handlers expire it if the request goes on to fail.
    """
    user_id = validate_user_cookie(request, settings)
    if user_id is None and settings.secure_cookie_name in request.cookies:
        request.state.stale_session = settings
    return user_id


def get_current_user(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Get the user behind the session cookie."""
    user = get_user_by_id(db, user_id)
    if user is None:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "USER_NOT_FOUND", clear_session=settings)
    return user


def require_ldap_disabled(settings: Annotated[Settings, Depends(get_settings)]) -> None:
    """Reject password-based endpoints while accounts live in LDAP."""
    if settings.ldap_enabled:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "LDAP_AUTH_ENABLED")


def require_ldap_enabled(settings: Annotated[Settings, Depends(get_settings)]) -> None:
    """Reject directory logins when LDAP is not configured."""
    if not settings.ldap_enabled:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "LDAP_AUTH_DISABLED")


def get_ldap_directory(settings: Annotated[Settings, Depends(get_settings)]) -> LdapDirectory:
    """Get LDAP directory client."""
    return LdapDirectory(settings)


def get_email_service(settings: Annotated[Settings, Depends(get_settings)]) -> EmailService:
    """Get email service instance."""
    return EmailService(settings)
