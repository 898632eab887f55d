"""
Unit tests for storage layer.

Tests schema creation, quota counters, the activity ledger and brief storage.
"""

import os
import tempfile
import threading
from datetime import datetime, timedelta

import pytest

from insight_broker.storage.db import get_connection
from insight_broker.storage.models import ActivityRecord, BriefArtifact, PlanTier
from insight_broker.storage.repository import (
    BrokerRepository,
    get_repository,
    initialize_schema,
)


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify tables are created correctly."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute("""
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name IN ('subscriptions', 'activities', 'briefs')
                    ORDER BY name
                """)
                tables = [row[0] for row in cursor.fetchall()]
                assert tables == ['activities', 'briefs', 'subscriptions']

                cursor = conn.execute("PRAGMA table_info(subscriptions)")
                column_names = [col[1] for col in cursor.fetchall()]
                assert column_names == [
                    'id', 'user_id', 'plan', 'tokens_used', 'tokens_limit', 'created_at'
                ]
            finally:
                conn.close()

    def test_schema_creation_is_idempotent(self):
        """Running schema creation twice is safe."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            initialize_schema(db_path)

            repository = BrokerRepository(db_path)
            assert repository.get_quota("nobody") is None

    def test_schema_creation_in_missing_directory(self):
        """The database's parent directory is created on first use."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "data", "nested", "broker.db")
            initialize_schema(db_path)

            assert os.path.exists(db_path)
            assert BrokerRepository(db_path).get_quota("nobody") is None


class TestPlanTier:
    """Test plan name mapping."""

    def test_known_plans(self):
        assert PlanTier.from_value("pro") == PlanTier.PRO
        assert PlanTier.from_value("STANDARD") == PlanTier.STANDARD
        assert PlanTier.from_value("trial") == PlanTier.TRIAL

    def test_unknown_plans_are_trial(self):
        assert PlanTier.from_value(None) == PlanTier.TRIAL
        assert PlanTier.from_value("") == PlanTier.TRIAL
        assert PlanTier.from_value("free") == PlanTier.TRIAL


class TestQuotaRepository:
    """Test quota reads and counter updates."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        self.repository = get_repository(self.db_path)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_create_and_get_quota(self):
        created = self.repository.create_quota("acct-1", PlanTier.STANDARD, tokens_limit=100, tokens_used=10)

        quota = self.repository.get_quota("acct-1")
        assert quota == created
        assert quota.plan == PlanTier.STANDARD
        assert quota.tokens_used == 10
        assert quota.tokens_limit == 100

    def test_get_quota_missing_account(self):
        assert self.repository.get_quota("missing") is None

    def test_most_recent_subscription_wins(self):
        """The newest subscription row is the account's current quota."""
        now = datetime.now()
        self.repository.create_quota("acct-1", PlanTier.TRIAL, 50, created_at=now - timedelta(days=3))
        self.repository.create_quota("acct-1", PlanTier.PRO, 500, created_at=now)

        quota = self.repository.get_quota("acct-1")
        assert quota.plan == PlanTier.PRO
        assert quota.tokens_limit == 500

    def test_quota_without_limit(self):
        self.repository.create_quota("acct-1", PlanTier.TRIAL, tokens_limit=None)

        assert self.repository.get_quota("acct-1").tokens_limit is None

    def test_create_quota_rejects_negative_values(self):
        with pytest.raises(ValueError, match="tokens_used"):
            self.repository.create_quota("acct-1", PlanTier.TRIAL, 100, tokens_used=-1)
        with pytest.raises(ValueError, match="tokens_limit"):
            self.repository.create_quota("acct-1", PlanTier.TRIAL, -100)

    def test_increment_returns_new_value(self):
        quota = self.repository.create_quota("acct-1", PlanTier.STANDARD, 100, tokens_used=99)

        assert self.repository.increment_tokens_used(quota.id, 1) == 100
        assert self.repository.increment_tokens_used(quota.id, 5) == 105
        assert self.repository.get_quota("acct-1").tokens_used == 105

    def test_increment_missing_row(self):
        assert self.repository.increment_tokens_used(12345, 3) is None

    def test_increment_rejects_negative_amount(self):
        quota = self.repository.create_quota("acct-1", PlanTier.STANDARD, 100)
        with pytest.raises(ValueError, match="amount"):
            self.repository.increment_tokens_used(quota.id, -1)

    def test_release_tokens(self):
        quota = self.repository.create_quota("acct-1", PlanTier.STANDARD, 100, tokens_used=40)

        self.repository.release_tokens(quota.id, 15)
        assert self.repository.get_quota("acct-1").tokens_used == 25

        self.repository.release_tokens(quota.id, 100)
        assert self.repository.get_quota("acct-1").tokens_used == 0

    def test_concurrent_increments_are_not_lost(self):
        """Every concurrent increment lands exactly once."""
        quota = self.repository.create_quota("acct-1", PlanTier.STANDARD, 10000)
        results = []

        def worker():
            for _ in range(10):
                results.append(self.repository.increment_tokens_used(quota.id, 1))

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert self.repository.get_quota("acct-1").tokens_used == 50
        assert sorted(results) == list(range(1, 51))


class TestActivityLedger:
    """Test activity and brief persistence."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        self.repository = get_repository(self.db_path)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _record(self, account_id="acct-1", minutes_ago=0, title="Content Refined"):
        return ActivityRecord(
            account_id=account_id,
            kind="refine",
            title=title,
            description="Some content",
            tokens_used=12,
            created_at=datetime.now() - timedelta(minutes=minutes_ago)
        )

    def test_insert_and_fetch_activity(self):
        self.repository.insert_activity(self._record())

        records = self.repository.fetch_recent_activities("acct-1")
        assert len(records) == 1
        record = records[0]
        assert record.id is not None
        assert record.kind == "refine"
        assert record.title == "Content Refined"
        assert record.description == "Some content"
        assert record.tokens_used == 12

    def test_fetch_orders_newest_first_and_limits(self):
        self.repository.insert_activity(self._record(minutes_ago=30, title="old"))
        self.repository.insert_activity(self._record(minutes_ago=0, title="new"))
        self.repository.insert_activity(self._record(minutes_ago=10, title="middle"))
        self.repository.insert_activity(self._record(account_id="other", title="other"))

        titles = [r.title for r in self.repository.fetch_recent_activities("acct-1")]
        assert titles == ["new", "middle", "old"]

        limited = self.repository.fetch_recent_activities("acct-1", limit=2)
        assert [r.title for r in limited] == ["new", "middle"]

    def test_insert_and_fetch_brief(self):
        artifact = BriefArtifact(
            account_id="acct-1",
            title="Grow revenue",
            objective="Grow revenue",
            model="creative",
            tone=None,
            result="## Executive Summary\nGrow.",
            tokens_used=9,
            created_at=datetime.now()
        )
        self.repository.insert_brief(artifact)

        briefs = self.repository.fetch_briefs("acct-1")
        assert briefs == [artifact]


class TestDemoSeed:
    """Test the demo data seeder."""

    def test_seed_demo_data(self):
        from insight_broker.demo.seed_demo_data import seed_demo_data

        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "demo.db")

            assert seed_demo_data(db_path) == 4

            repository = BrokerRepository(db_path)
            assert repository.get_quota("demo-exhausted").tokens_used == 100
            assert repository.get_quota("demo-pro").plan == PlanTier.PRO
            assert repository.get_quota("demo-trial").tokens_limit is None
