"""Tests for the monthly quota tracker."""

from datetime import UTC, datetime

import pytest

from cvreview.auth.models import UserRole
from cvreview.errors import QuotaExceededError
from cvreview.quota.service import check_and_reserve, consume, monthly_allowance, refresh_quota
from conftest import make_user


class TestRefreshQuota:
    def test_resets_after_month_boundary(self, db_session, test_user):
        test_user.analysis_quota = 0
        test_user.last_quota_reset = datetime(2025, 1, 31, 23, 0, tzinfo=UTC)
        now = datetime(2025, 2, 1, 0, 5, tzinfo=UTC)

        assert refresh_quota(test_user, now)
        assert test_user.analysis_quota == 5
        assert test_user.last_quota_reset == now

    def test_idempotent_within_month(self, db_session, test_user):
        test_user.last_quota_reset = datetime(2025, 1, 10, tzinfo=UTC)
        now = datetime(2025, 2, 3, tzinfo=UTC)
        refresh_quota(test_user, now)
        test_user.analysis_quota = 2

        assert not refresh_quota(test_user, datetime(2025, 2, 20, tzinfo=UTC))
        assert test_user.analysis_quota == 2

    def test_same_month_different_year_resets(self, db_session, test_user):
        test_user.analysis_quota = 0
        test_user.last_quota_reset = datetime(2024, 3, 15, tzinfo=UTC)
        assert refresh_quota(test_user, datetime(2025, 3, 15, tzinfo=UTC))
        assert test_user.analysis_quota == 5


class TestCheckAndReserve:
    def test_allows_with_remaining_quota(self, db_session, test_user):
        check_and_reserve(test_user)
        # Nothing is spent by the check itself
        assert test_user.analysis_quota == 5

    def test_blocks_at_zero(self, db_session, test_user):
        test_user.analysis_quota = 0
        with pytest.raises(QuotaExceededError):
            check_and_reserve(test_user)

    def test_zero_quota_from_last_month_is_reset(self, db_session, test_user):
        test_user.analysis_quota = 0
        test_user.last_quota_reset = datetime(2025, 1, 5, tzinfo=UTC)
        check_and_reserve(test_user, now=datetime(2025, 2, 5, tzinfo=UTC))
        assert test_user.analysis_quota == 5

    def test_paid_users_not_gated(self, db_session):
        paid = make_user(db_session, email="pro@x.com", role=UserRole.PAID, quota=0)
        check_and_reserve(paid)


class TestConsume:
    def test_decrements(self, db_session, test_user):
        consume(test_user)
        assert test_user.analysis_quota == 4

    def test_never_negative(self, db_session, test_user):
        test_user.analysis_quota = 0
        consume(test_user)
        assert test_user.analysis_quota == 0

    def test_paid_unchanged(self, db_session):
        paid = make_user(db_session, email="pro@x.com", role=UserRole.PAID, quota=3)
        consume(paid)
        assert paid.analysis_quota == 3


def test_monthly_allowance():
    assert monthly_allowance(UserRole.FREE) == 5
    assert monthly_allowance(UserRole.PAID) == 20
