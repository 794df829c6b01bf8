"""Signed session cookies carrying the authenticated user ID."""

import logging
from datetime import UTC, datetime, timedelta

from fastapi import Request, Response
from jose import JWTError, jwt

from src.config import Settings

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class CookieCodecError(Exception):
    """Session cookie could not be encoded or decoded."""


def encode(settings: Settings, user_id: str, max_age: int) -> str:
    """Sign a user ID into a cookie value valid for ``max_age`` seconds."""
    to_encode = {
        "sub": user_id,
        "aud": settings.secure_cookie_name,
        "exp": datetime.now(UTC) + timedelta(seconds=max_age),
    }
    try:
        return jwt.encode(to_encode, settings.cookie_secret, algorithm=settings.cookie_algorithm)
    except JWTError as e:
        raise CookieCodecError("INVALID_COOKIE") from e


def decode(settings: Settings, token: str) -> str:
    """Return the user ID signed into a cookie value."""
    try:
        payload = jwt.decode(
            token,
            settings.cookie_secret,
            algorithms=[settings.cookie_algorithm],
            audience=settings.secure_cookie_name,
        )
    except JWTError as e:
        raise CookieCodecError("INVALID_COOKIE") from e

    user_id = payload.get("sub")
    if not user_id:
        raise CookieCodecError("INVALID_COOKIE")
    return user_id


def _set_session_cookie(response: Response, settings: Settings, user_id: str, days: int) -> None:
    max_age = SECONDS_PER_DAY * days
    response.set_cookie(
        key=settings.secure_cookie_name,
        value=encode(settings, user_id, max_age),
        max_age=max_age,
        path=settings.cookie_path,
        domain=settings.app_domain,
        secure=settings.secure_cookie_flag,
        httponly=True,
        samesite="strict",
    )


def create_user_cookie(
    response: Response, settings: Settings, registered: bool, user_id: str
) -> None:
    """Start a session after signup; registered accounts get the longer lifetime."""
    days = settings.registered_cookie_days if registered else settings.guest_cookie_days
    _set_session_cookie(response, settings, user_id, days)


def create_login_cookie(response: Response, settings: Settings, user_id: str) -> None:
    """Start a session after a password or directory login."""
    _set_session_cookie(response, settings, user_id, settings.login_cookie_days)


def clear_user_cookies(response: Response, settings: Settings) -> None:
    """Expire both the frontend cookie and the signed session cookie."""
    response.set_cookie(
        key=settings.frontend_cookie_name,
        value="",
        max_age=-1,
        path=settings.cookie_path,
    )
    response.set_cookie(
        key=settings.secure_cookie_name,
        value="",
        max_age=-1,
        path=settings.cookie_path,
        domain=settings.app_domain,
        secure=settings.secure_cookie_flag,
        httponly=True,
        samesite="strict",
    )


def validate_user_cookie(request: Request, settings: Settings) -> str | None:
    """Return the user ID from the session cookie, or None when absent or invalid."""
    token = request.cookies.get(settings.secure_cookie_name)
    if not token:
        return None
    try:
        return decode(settings, token)
    except CookieCodecError:
        logger.warning("Rejected invalid session cookie")
        return None
