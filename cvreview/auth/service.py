"""Authentication service: credentials, refresh rotation, email verification, password reset."""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

import bcrypt
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import AuthError, ConflictError, EmailDeliveryError, NotFoundError, ValidationError
from ..notifications.service import Mailer, build_password_reset_email, build_verification_email
from .models import RefreshToken, User
from .tokens import generate_raw_token, hash_token

logger = logging.getLogger(__name__)

VERIFICATION_TTL = timedelta(hours=24)
RESET_TTL = timedelta(minutes=10)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode()


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # Malformed hash in storage
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    return (
        db.query(User)
        .filter(User.email == normalize_email(email))
        .order_by(User.updated_at.desc())
        .first()
    )


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def create_user(db: Session, name: str, email: str, password: str) -> User:
    """Insert a new account, rejecting an email that is already registered."""
    email = normalize_email(email)
    if db.query(User.id).filter(User.email == email).first():
        raise ConflictError("Email is already in use")
    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        analysis_quota=settings.free_monthly_quota,
    )
    db.add(user)
    db.flush()
    return user


def _issue_verification_token(user: User) -> str:
    raw = generate_raw_token()
    user.email_verification_token = hash_token(raw)
    user.email_verification_expires = datetime.now(UTC) + VERIFICATION_TTL
    return raw


def register_user(
    db: Session,
    mailer: Mailer,
    name: str,
    email: str,
    password: str,
    password_confirm: str,
) -> User:
    """Create an account and email a verification link.

    The raw verification token only ever leaves the process inside the email.
    A failed delivery does not undo the registration; the user can ask for a
    new link through resend-verification.
    """
    if password != password_confirm:
        raise ValidationError("Passwords do not match")

    user = create_user(db, name, email, password)
    raw = _issue_verification_token(user)
    db.flush()

    if not mailer.send(build_verification_email(user.email, raw)):
        logger.warning("Verification email could not be delivered to user %s", user.id)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User:
    """Verify credentials and return the user.

    Failures are indistinguishable from each other so callers cannot probe
    which emails exist.
    """
    matches = (
        db.query(User)
        .filter(User.email == normalize_email(email))
        .order_by(User.updated_at.desc())
        .limit(2)
        .all()
    )
    if not matches:
        raise AuthError("Invalid credentials")
    if len(matches) > 1:
        logger.warning(
            "Duplicate accounts detected for one email; using most recently updated record (id=%s)",
            matches[0].id,
        )

    user = matches[0]
    if not user.is_active or not verify_password(password, user.password_hash):
        raise AuthError("Invalid credentials")
    return user


# ── Refresh tokens ─────────────────────────────────────────────────────


def issue_refresh_token(db: Session, user_id: UUID) -> str:
    """Persist the hash of a fresh opaque token and return the raw value."""
    raw = generate_raw_token(64)
    db.add(
        RefreshToken(
            user_id=user_id,
            token_hash=hash_token(raw),
            expires_at=datetime.now(UTC) + timedelta(seconds=settings.refresh_token_ttl_seconds),
        )
    )
    db.flush()
    return raw


def purge_expired_refresh_tokens(db: Session, user_id: UUID | None = None) -> int:
    """Delete expired refresh tokens, for one user or for everyone."""
    query = db.query(RefreshToken).filter(RefreshToken.expires_at <= datetime.now(UTC))
    if user_id is not None:
        query = query.filter(RefreshToken.user_id == user_id)
    removed = query.delete(synchronize_session=False)
    if removed:
        logger.info("Purged %d expired refresh tokens", removed)
    return removed


def rotate_refresh_token(db: Session, raw: str | None) -> tuple[User, str]:
    """Consume a refresh token and issue its successor.

    The presented token is deleted with a conditional DELETE whose row count
    must be exactly one, so a token can be consumed at most once even when
    two requests race on it.
    """
    if not raw:
        raise AuthError("Refresh token is missing")

    now = datetime.now(UTC)
    record = (
        db.query(RefreshToken)
        .filter(RefreshToken.token_hash == hash_token(raw), RefreshToken.expires_at > now)
        .first()
    )
    if not record:
        raise AuthError("Refresh token is invalid or expired")

    user_id = record.user_id
    consumed = (
        db.query(RefreshToken)
        .filter(RefreshToken.id == record.id)
        .delete(synchronize_session=False)
    )
    db.expunge(record)
    if consumed != 1:
        raise AuthError("Refresh token is invalid or expired")

    user = get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise AuthError("User not found")

    purge_expired_refresh_tokens(db, user.id)
    return user, issue_refresh_token(db, user.id)


def revoke_refresh_token(db: Session, raw: str | None) -> None:
    if not raw:
        return
    db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(raw)).delete(synchronize_session=False)
    db.flush()


# ── Email verification ────────────────────────────────────────────────


def verify_email(db: Session, raw_token: str) -> User:
    if not raw_token:
        raise ValidationError("Verification token is required")

    user = (
        db.query(User)
        .filter(
            User.email_verification_token == hash_token(raw_token),
            User.email_verification_expires > datetime.now(UTC),
        )
        .first()
    )
    if not user:
        raise ValidationError("Token is invalid or has expired")

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires = None
    db.flush()
    return user


def resend_verification(db: Session, mailer: Mailer, email: str) -> None:
    if not email:
        raise ValidationError("Email is required")

    user = get_user_by_email(db, email)
    if not user:
        raise NotFoundError("User not found")
    if user.email_verified:
        raise ValidationError("Email already verified")

    raw = _issue_verification_token(user)
    db.flush()
    if not mailer.send(build_verification_email(user.email, raw)):
        raise EmailDeliveryError()


# ── Password reset ────────────────────────────────────────────────────


def request_password_reset(db: Session, mailer: Mailer, email: str) -> None:
    """Issue a 10-minute reset token and email it.

    If delivery fails the token fields are cleared again, so a valid token
    never exists without the user having received it.
    """
    user = get_user_by_email(db, email)
    if not user:
        raise NotFoundError("User not found")

    raw = generate_raw_token()
    user.password_reset_token = hash_token(raw)
    user.password_reset_expires = datetime.now(UTC) + RESET_TTL
    db.flush()

    logger.info("Sending password reset email to user %s", user.id)
    if not mailer.send(build_password_reset_email(user.email, raw)):
        user.password_reset_token = None
        user.password_reset_expires = None
        db.flush()
        raise EmailDeliveryError()


def reset_password(db: Session, raw_token: str, new_password: str) -> User:
    user = (
        db.query(User)
        .filter(
            User.password_reset_token == hash_token(raw_token),
            User.password_reset_expires > datetime.now(UTC),
        )
        .first()
    )
    if not user:
        logger.warning("Password reset failed: token invalid or expired")
        raise ValidationError("Token is invalid or has expired")

    user.password_hash = hash_password(new_password)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.flush()
    logger.info("Password reset successful for user %s", user.id)
    return user
