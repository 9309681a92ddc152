"""Account settings: profile, password, notification preferences, self-service user records."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..analysis.models import Analysis
from ..auth.models import RefreshToken, User, UserRole
from ..auth.service import get_user_by_id, hash_password, normalize_email, verify_password
from ..errors import ConflictError, NotFoundError, ValidationError
from ..quota.service import monthly_allowance
from .models import PREFERENCE_DEFAULTS, UserPreference

logger = logging.getLogger(__name__)

# Wire name -> column name
NOTIFICATION_KEYS = {
    "emailUpdates": "email_updates",
    "analysisComplete": "analysis_complete",
    "weeklyTips": "weekly_tips",
    "promotions": "promotions",
}

PLAN_LABELS = {
    UserRole.FREE: "Akun Gratis",
    UserRole.PAID: "Akun Pro",
}


def ensure_preferences(db: Session, user_id: UUID) -> UserPreference:
    """Return the user's preference row, creating it with defaults if absent."""
    prefs = db.query(UserPreference).filter(UserPreference.user_id == user_id).first()
    if prefs is None:
        prefs = UserPreference(user_id=user_id, **PREFERENCE_DEFAULTS)
        db.add(prefs)
        db.flush()
        logger.info("Created default notification preferences for user %s", user_id)
    return prefs


def serialize_preferences(prefs: UserPreference) -> dict:
    return {wire: getattr(prefs, column) for wire, column in NOTIFICATION_KEYS.items()}


def serialize_user(user: User) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": str(user.role),
        "emailVerified": bool(user.email_verified),
        "createdAt": user.created_at,
        "updatedAt": user.updated_at,
    }


def _require_user(db: Session, user_id: UUID) -> User:
    user = get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise NotFoundError("User not found")
    return user


def _analyses_this_month(db: Session, user_id: UUID, now: datetime) -> int:
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return (
        db.query(func.count(Analysis.id))
        .filter(Analysis.user_id == user_id, Analysis.created_at >= month_start)
        .scalar()
    ) or 0


def get_settings_overview(db: Session, user_id: UUID) -> dict:
    user = _require_user(db, user_id)
    prefs = ensure_preferences(db, user_id)
    return {
        "user": serialize_user(user),
        "notifications": serialize_preferences(prefs),
        "account": {
            "plan": PLAN_LABELS[UserRole(user.role)],
            "usage": {
                "limit": monthly_allowance(user.role),
                "used": _analyses_this_month(db, user_id, datetime.now(UTC)),
            },
            "emailVerified": bool(user.email_verified),
            "lastPasswordChange": user.updated_at,
            "lastLoginAt": user.updated_at,
        },
    }


def _ensure_email_available(db: Session, email: str, owner_id: UUID | None = None) -> None:
    query = db.query(User.id).filter(User.email == email)
    if owner_id is not None:
        query = query.filter(User.id != owner_id)
    if query.first():
        raise ConflictError("Email is already in use")


def update_profile(db: Session, user_id: UUID, name: str, email: str) -> User:
    name, email = (name or "").strip(), normalize_email(email or "")
    if not name or not email:
        raise ValidationError("Name and email are required")

    user = _require_user(db, user_id)
    _ensure_email_available(db, email, owner_id=user.id)
    user.name = name
    user.email = email
    db.flush()
    return user


def change_password(db: Session, user_id: UUID, current_password: str, new_password: str) -> None:
    if not current_password or not new_password:
        raise ValidationError("Both passwords are required")
    if len(new_password) < 8:
        raise ValidationError("New password must be at least 8 characters")

    user = _require_user(db, user_id)
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.flush()
    logger.info("Password changed for user %s", user.id)


def update_notifications(db: Session, user_id: UUID, payload: dict) -> UserPreference:
    """Apply the boolean flags present in ``payload``; anything else is ignored."""
    updates = {
        column: payload[wire]
        for wire, column in NOTIFICATION_KEYS.items()
        if isinstance(payload.get(wire), bool)
    }
    if not updates:
        raise ValidationError("No valid notification settings provided")

    prefs = ensure_preferences(db, user_id)
    for column, value in updates.items():
        setattr(prefs, column, value)
    db.flush()
    return prefs


# ── /api/users ───────────────────────────────────────────────────────


def list_active_users(db: Session) -> list[User]:
    return db.query(User).filter(User.is_active.is_(True)).order_by(User.created_at).all()


def get_own_user(db: Session, user_id: str | UUID, principal_id: UUID) -> User:
    """Users may only address their own record; anything else looks missing."""
    try:
        uid = user_id if isinstance(user_id, UUID) else UUID(str(user_id))
    except ValueError:
        raise NotFoundError("User not found") from None
    if uid != principal_id:
        raise NotFoundError("User not found")
    return _require_user(db, uid)


def update_user(
    db: Session,
    user: User,
    name: str | None = None,
    email: str | None = None,
    password: str | None = None,
) -> User:
    if name is not None:
        if not name.strip():
            raise ValidationError("Name must not be empty")
        user.name = name.strip()
    if email is not None:
        email = normalize_email(email)
        _ensure_email_available(db, email, owner_id=user.id)
        user.email = email
    if password is not None:
        if len(password) < 8:
            raise ValidationError("Password must be at least 8 characters")
        user.password_hash = hash_password(password)
    db.flush()
    return user


def deactivate_user(db: Session, user: User) -> None:
    """Soft delete: the row and its analyses are kept, open sessions are not."""
    user.is_active = False
    db.query(RefreshToken).filter(RefreshToken.user_id == user.id).delete(synchronize_session=False)
    db.flush()
    logger.info("Deactivated user %s", user.id)
