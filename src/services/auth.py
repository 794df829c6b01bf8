"""User account storage: credentials, signup, verification and password resets."""

import logging
from datetime import UTC, datetime, timedelta

from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.models.enums import UserRank
from src.models.user import PasswordReset, User, UserVerification

logger = logging.getLogger(__name__)

RESET_EXPIRATION = timedelta(hours=1)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthServiceError(Exception):
    """Base class for account storage failures."""


class InvalidCredentialsError(AuthServiceError):
    """Email/password pair did not match a registered user."""


class UserNotFoundError(AuthServiceError):
    """No matching user exists."""


class EmailAlreadyRegisteredError(AuthServiceError):
    """Another account already owns the email address."""


class InvalidTokenError(AuthServiceError):
    """Verification or reset token is unknown or expired."""


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def get_user_by_id(db: Session, user_id: str) -> User | None:
    """Get a user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get a user by email."""
    return db.query(User).filter(User.email == email.lower()).first()


def authenticate_user(db: Session, email: str, password: str) -> User:
    """Authenticate a registered user by email and password."""
    user = get_user_by_email(db, email)
    if user is None or not user.password_hash:
        raise InvalidCredentialsError("INVALID_LOGIN")
    if not verify_password(password, user.password_hash):
        raise InvalidCredentialsError("INVALID_LOGIN")
    return user


def create_guest_user(db: Session, name: str) -> User:
    """Create a guest user that has no credentials."""
    user = User(name=name, rank=UserRank.GUEST, verified=False)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created guest user {user.id}")
    return user


def create_registered_user(
    db: Session,
    name: str,
    email: str,
    password: str | None,
    active_user_id: str | None = None,
) -> tuple[User, str]:
    """Create a registered user, upgrading the active guest session when there is one.

    ``password`` is ``None`` for accounts provisioned from a directory service;
    such accounts cannot use the password login.

    Returns:
        The user and the ID of its pending email verification.
    """
    email = email.lower()
    existing = get_user_by_email(db, email)
    if existing is not None and existing.id != active_user_id:
        raise EmailAlreadyRegisteredError("EMAIL_ALREADY_REGISTERED")

    user = get_user_by_id(db, active_user_id) if active_user_id else None
    if user is None or user.rank != UserRank.GUEST:
        user = User()
        db.add(user)
    else:
        logger.info(f"Upgrading guest user {user.id} to a registered account")

    user.name = name
    user.email = email
    user.password_hash = get_password_hash(password) if password else None
    user.rank = UserRank.REGISTERED
    user.verified = False

    verification = UserVerification(user=user)
    db.add(verification)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise EmailAlreadyRegisteredError("EMAIL_ALREADY_REGISTERED") from e
    db.refresh(user)
    return user, verification.verify_id


def user_reset_request(db: Session, email: str) -> tuple[str, str]:
    """Open a password reset for a registered user.

    Returns:
        The reset ID and the user's name.
    """
    user = get_user_by_email(db, email)
    if user is None or user.rank != UserRank.REGISTERED:
        raise UserNotFoundError("USER_NOT_FOUND")

    db.query(PasswordReset).filter(
        PasswordReset.user_id == user.id,
        PasswordReset.expires_at < datetime.now(UTC),
    ).delete(synchronize_session=False)
    reset = PasswordReset(user=user, expires_at=datetime.now(UTC) + RESET_EXPIRATION)
    db.add(reset)
    db.commit()
    return reset.reset_id, user.name


def user_reset_password(db: Session, reset_id: str, password: str) -> tuple[str, str]:
    """Consume a reset request and set the new password.

    Returns:
        The user's name and email.
    """
    reset = db.query(PasswordReset).filter(PasswordReset.reset_id == reset_id).first()
    if reset is None:
        raise InvalidTokenError("INVALID_RESET_ID")
    if _as_utc(reset.expires_at) < datetime.now(UTC):
        db.delete(reset)
        db.commit()
        raise InvalidTokenError("RESET_EXPIRED")

    user = reset.user
    user.password_hash = get_password_hash(password)
    # Every outstanding reset for the user dies with the one consumed
    db.query(PasswordReset).filter(PasswordReset.user_id == user.id).delete(
        synchronize_session=False
    )
    db.commit()
    return user.name, user.email


def user_update_password(db: Session, user_id: str, password: str) -> tuple[str, str]:
    """Replace a registered user's password.

    Returns:
        The user's name and email.
    """
    user = get_user_by_id(db, user_id)
    if user is None or user.rank != UserRank.REGISTERED:
        raise UserNotFoundError("USER_NOT_FOUND")

    user.password_hash = get_password_hash(password)
    db.commit()
    return user.name, user.email


def verify_user_account(db: Session, verify_id: str) -> None:
    """Mark the account behind a verification ID as verified."""
    verification = (
        db.query(UserVerification).filter(UserVerification.verify_id == verify_id).first()
    )
    if verification is None:
        raise InvalidTokenError("INVALID_VERIFICATION_ID")

    verification.user.verified = True
    db.delete(verification)
    db.commit()
