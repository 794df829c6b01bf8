"""Authentication API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from src.api.dependencies import (
    get_current_user,
    get_current_user_id,
    get_email_service,
    get_ldap_directory,
    get_optional_user_id,
    require_ldap_disabled,
    require_ldap_enabled,
)
from src.api.errors import ApiError
from src.config import Settings, get_settings
from src.database import get_db
from src.models.user import User
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
from src.services.auth import (
    AuthServiceError,
    authenticate_user,
    create_guest_user,
    create_registered_user,
    user_reset_password,
    user_reset_request,
    user_update_password,
    verify_user_account,
)
from src.services.email import EmailService
from src.services.ldap import LdapAuthenticationError, LdapDirectory, authenticate_and_provision
from src.services.session import (
    CookieCodecError,
    clear_user_cookies,
    create_login_cookie,
    create_user_cookie,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

SettingsDep = Annotated[Settings, Depends(get_settings)]
DbDep = Annotated[Session, Depends(get_db)]
EmailDep = Annotated[EmailService, Depends(get_email_service)]


def _start_session(response: Response, settings: Settings, user: User, login: bool) -> None:
    try:
        if login:
            create_login_cookie(response, settings, user.id)
        else:
            create_user_cookie(response, settings, user.rank.is_registered, user.id)
    except CookieCodecError as e:
        logger.error(f"Failed encoding session cookie for user {user.id}: {e}")
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "INVALID_COOKIE") from e


def _user_envelope(user: User) -> StandardResponse[UserResponse]:
    return StandardResponse[UserResponse](data=UserResponse.model_validate(user))


@router.post(
    "",
    response_model=StandardResponse[UserResponse],
    dependencies=[Depends(require_ldap_disabled)],
)
def login(
    credentials: UserLogin,
    response: Response,
    db: DbDep,
    settings: SettingsDep,
):
    """Login with email and password."""
    try:
        user = authenticate_user(db, credentials.email, credentials.password)
    except AuthServiceError as e:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "INVALID_LOGIN") from e

    _start_session(response, settings, user, login=True)
    return _user_envelope(user)


@router.post(
    "/ldap",
    response_model=StandardResponse[UserResponse],
    dependencies=[Depends(require_ldap_enabled)],
)
def ldap_login(
    credentials: UserLogin,
    response: Response,
    db: DbDep,
    settings: SettingsDep,
    directory: Annotated[LdapDirectory, Depends(get_ldap_directory)],
):
    """Login through the LDAP directory, creating the account on first login."""
    try:
        user = authenticate_and_provision(db, directory, credentials.email, credentials.password)
    except (LdapAuthenticationError, AuthServiceError) as e:
        raise ApiError(status.HTTP_401_UNAUTHORIZED, "INVALID_LOGIN") from e

    _start_session(response, settings, user, login=True)
    return _user_envelope(user)


@router.delete("/logout", response_model=StandardResponse[None])
def logout(response: Response, settings: SettingsDep):
    """Logout by expiring the session cookies."""
    clear_user_cookies(response, settings)
    return StandardResponse[None]()


@router.post("/guest", response_model=StandardResponse[UserResponse])
def create_guest(
    guest: GuestCreate,
    response: Response,
    db: DbDep,
    settings: SettingsDep,
):
    """Register a guest (unauthenticated) user."""
    if not settings.allow_guests:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "GUESTS_USERS_DISABLED")

    user = create_guest_user(db, guest.name)
    _start_session(response, settings, user, login=False)
    return _user_envelope(user)


@router.post(
    "/register",
    response_model=StandardResponse[UserResponse],
    dependencies=[Depends(require_ldap_disabled)],
)
def register(
    account: UserRegister,
    active_user_id: Annotated[str | None, Depends(get_optional_user_id)],
    response: Response,
    db: DbDep,
    settings: SettingsDep,
    email_service: EmailDep,
):
    """Register an authenticated user, upgrading the current guest session if any."""
    if not settings.allow_registration:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "USER_REGISTRATION_DISABLED")

    try:
        user, verify_id = create_registered_user(
            db, account.name, account.email, account.password1, active_user_id
        )
    except AuthServiceError as e:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e)) from e

    _start_session(response, settings, user, login=False)
    email_service.send_welcome(user.name, user.email, verify_id)
    return _user_envelope(user)


@router.post(
    "/forgot-password",
    response_model=StandardResponse[None],
    dependencies=[Depends(require_ldap_disabled)],
)
def forgot_password(request_data: ForgotPassword, db: DbDep, email_service: EmailDep):
    """Send a password reset email; always succeeds so accounts cannot be probed."""
    try:
        reset_id, name = user_reset_request(db, request_data.email)
    except AuthServiceError as e:
        logger.info(f"Password reset requested for unknown account: {e}")
    else:
        email_service.send_forgot_password(name, request_data.email, reset_id)

    return StandardResponse[None]()


@router.patch(
    "/reset-password",
    response_model=StandardResponse[None],
    dependencies=[Depends(require_ldap_disabled)],
)
def reset_password(reset: PasswordReset, db: DbDep, email_service: EmailDep):
    """Set a new password using the ID from a forgot-password email."""
    try:
        name, email = user_reset_password(db, reset.reset_id, reset.password1)
    except AuthServiceError as e:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e)) from e

    email_service.send_password_reset(name, email)
    return StandardResponse[None]()


@router.patch(
    "/update-password",
    response_model=StandardResponse[None],
    dependencies=[Depends(require_ldap_disabled)],
)
def update_password(
    update: PasswordUpdate,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: DbDep,
    email_service: EmailDep,
):
    """Change the signed-in user's password."""
    try:
        name, email = user_update_password(db, user_id, update.password1)
    except AuthServiceError as e:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e)) from e

    email_service.send_password_update(name, email)
    return StandardResponse[None]()


@router.patch("/verify", response_model=StandardResponse[None])
def verify_account(verification: AccountVerify, db: DbDep):
    """Mark the account email as verified."""
    try:
        verify_user_account(db, verification.verify_id)
    except AuthServiceError as e:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e)) from e

    return StandardResponse[None]()


@router.get("/user", response_model=StandardResponse[UserResponse])
def get_me(current_user: Annotated[User, Depends(get_current_user)]):
    """Get the user behind the session cookie."""
    return _user_envelope(current_user)
