"""Monthly analysis quota for free-tier accounts."""

import logging
from datetime import UTC, datetime

from ..auth.models import User, UserRole
from ..config import settings
from ..errors import QuotaExceededError

logger = logging.getLogger(__name__)


def monthly_allowance(role: UserRole) -> int:
    return settings.paid_monthly_quota if role == UserRole.PAID else settings.free_monthly_quota


def refresh_quota(user: User, now: datetime | None = None) -> bool:
    """Reset the counter once the calendar month has changed.

    Idempotent within a month: the stored reset timestamp moves to ``now``
    so the next call in the same month is a no-op. Returns True if a reset
    happened.
    """
    now = now or datetime.now(UTC)
    last = user.last_quota_reset
    if last is not None and (last.year, last.month) == (now.year, now.month):
        return False

    user.analysis_quota = settings.free_monthly_quota
    user.last_quota_reset = now
    logger.info("Monthly quota reset for user %s", user.id)
    return True


def check_and_reserve(user: User, now: datetime | None = None) -> None:
    """Gate a new analysis for free users before any external cost is incurred.

    Nothing is deducted here; call ``consume`` only after generation succeeds.
    """
    if user.role != UserRole.FREE:
        return
    refresh_quota(user, now)
    if (user.analysis_quota or 0) <= 0:
        raise QuotaExceededError()


def consume(user: User) -> None:
    if user.role != UserRole.FREE:
        return
    user.analysis_quota = max((user.analysis_quota or 0) - 1, 0)
