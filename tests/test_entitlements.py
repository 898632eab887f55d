"""
Tests for entitlement checks and token metering.
"""
import os
import sqlite3
import tempfile
from datetime import datetime
from unittest.mock import Mock

import pytest

from insight_broker.config.loader import BreachAction
from insight_broker.core.entitlements import (
    Entitlement,
    charge_tokens,
    check_entitlement,
    resolve_entitlement,
)
from insight_broker.core.errors import QUOTA_EXCEEDED_MESSAGE, QuotaExceeded
from insight_broker.storage.models import AccountQuota, PlanTier
from insight_broker.storage.repository import get_repository


def make_quota(plan=PlanTier.STANDARD, used=0, limit=100, quota_id=1):
    return AccountQuota(
        id=quota_id,
        account_id="acct-1",
        plan=plan,
        tokens_used=used,
        tokens_limit=limit,
        created_at=datetime.now()
    )


class TestEntitlementCheck:
    """Test the pre-generation check."""

    def test_standard_plan_at_limit_is_rejected(self):
        with pytest.raises(QuotaExceeded) as excinfo:
            check_entitlement(make_quota(used=100, limit=100))

        assert str(excinfo.value) == QUOTA_EXCEEDED_MESSAGE
        assert excinfo.value.account_id == "acct-1"

    def test_standard_plan_over_limit_is_rejected(self):
        with pytest.raises(QuotaExceeded):
            check_entitlement(make_quota(used=150, limit=100))

    def test_standard_plan_below_limit_passes(self):
        entitlement = check_entitlement(make_quota(used=99, limit=100))

        assert entitlement.tokens_used == 99
        assert entitlement.tokens_limit == 100
        assert not entitlement.exhausted

    def test_pro_plan_is_exempt(self):
        entitlement = check_entitlement(make_quota(plan=PlanTier.PRO, used=1000000, limit=100))

        assert entitlement.unlimited
        assert not entitlement.exhausted

    def test_missing_quota_is_trial_with_default_limit(self):
        entitlement = check_entitlement(None, default_tokens_limit=5000)

        assert entitlement.plan == PlanTier.TRIAL
        assert entitlement.tokens_used == 0
        assert entitlement.tokens_limit == 5000
        assert entitlement.quota is None

    def test_missing_or_zero_limit_uses_default(self):
        assert resolve_entitlement(make_quota(limit=None), 5000).tokens_limit == 5000
        assert resolve_entitlement(make_quota(limit=0), 5000).tokens_limit == 5000

    def test_trial_plan_at_default_limit_is_rejected(self):
        with pytest.raises(QuotaExceeded):
            check_entitlement(make_quota(plan=PlanTier.TRIAL, used=5000, limit=None), 5000)


class TestChargeTokens:
    """Test metering against a real store."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.repository = get_repository(os.path.join(self.temp_dir, "test.db"))

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_charge_adds_cost(self):
        quota = self.repository.create_quota("acct-1", PlanTier.STANDARD, 100, tokens_used=99)
        entitlement = check_entitlement(quota)

        result = charge_tokens(self.repository, entitlement, 1)

        assert result.charged
        assert result.tokens_used == 100
        assert not result.overshoot
        assert self.repository.get_quota("acct-1").tokens_used == 100

    def test_charge_may_cross_ceiling(self):
        """A charge authorized against a fresh counter is kept even if it crosses the ceiling."""
        quota = self.repository.create_quota("acct-1", PlanTier.STANDARD, 100, tokens_used=99)
        entitlement = check_entitlement(quota)

        result = charge_tokens(self.repository, entitlement, 5, on_overshoot=BreachAction.BLOCK)

        assert result.tokens_used == 104
        assert not result.overshoot

    def test_missing_quota_is_not_charged(self):
        entitlement = check_entitlement(None)

        result = charge_tokens(self.repository, entitlement, 40)

        assert not result.charged
        assert self.repository.get_quota("acct-1") is None

    def test_pro_plan_is_charged_without_overshoot(self):
        quota = self.repository.create_quota("acct-1", PlanTier.PRO, 100, tokens_used=500)
        entitlement = check_entitlement(quota)

        result = charge_tokens(self.repository, entitlement, 10, on_overshoot=BreachAction.BLOCK)

        assert result.tokens_used == 510
        assert not result.overshoot

    def test_deleted_row_is_not_charged(self):
        entitlement = Entitlement(
            plan=PlanTier.STANDARD, tokens_used=0, tokens_limit=100, quota=make_quota(quota_id=999)
        )

        result = charge_tokens(self.repository, entitlement, 10)

        assert not result.charged


class TestConcurrentOvershoot:
    """Two requests pass the pre-check against the same stale counter.

    The check-then-charge sequence cannot prevent both from running; the
    atomic increment makes the second one visible as an overshoot.
    """

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.repository = get_repository(os.path.join(self.temp_dir, "test.db"))
        quota = self.repository.create_quota("acct-1", PlanTier.STANDARD, 100, tokens_used=95)
        self.first = check_entitlement(quota)
        self.second = check_entitlement(self.repository.get_quota("acct-1"))

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_overshoot_warns_and_keeps_charge(self):
        assert not charge_tokens(self.repository, self.first, 10).overshoot

        result = charge_tokens(self.repository, self.second, 10, on_overshoot=BreachAction.WARN)

        assert result.overshoot
        assert result.tokens_used == 115
        assert self.repository.get_quota("acct-1").tokens_used == 115

    def test_overshoot_blocks_and_rolls_back(self):
        charge_tokens(self.repository, self.first, 10)

        with pytest.raises(QuotaExceeded):
            charge_tokens(self.repository, self.second, 10, on_overshoot=BreachAction.BLOCK)

        assert self.repository.get_quota("acct-1").tokens_used == 105


class TestChargeWithMockRepository:
    """Test the calls made against the store."""

    def test_block_releases_exact_cost(self):
        repository = Mock()
        repository.increment_tokens_used.return_value = 130
        entitlement = check_entitlement(make_quota(used=50, limit=100, quota_id=7))

        with pytest.raises(QuotaExceeded):
            charge_tokens(repository, entitlement, 20, on_overshoot=BreachAction.BLOCK)

        repository.increment_tokens_used.assert_called_once_with(7, 20)
        repository.release_tokens.assert_called_once_with(7, 20)

    def test_block_still_rejects_when_rollback_fails(self):
        """A failed rollback is logged and the overshoot is still rejected."""
        repository = Mock()
        repository.increment_tokens_used.return_value = 130
        repository.release_tokens.side_effect = sqlite3.OperationalError("database is locked")
        entitlement = check_entitlement(make_quota(used=50, limit=100, quota_id=7))

        with pytest.raises(QuotaExceeded):
            charge_tokens(repository, entitlement, 20, on_overshoot=BreachAction.BLOCK)

        repository.release_tokens.assert_called_once_with(7, 20)
