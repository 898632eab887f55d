"""
Repository pattern for data access.

Handles subscription quota counters, the append-only activity ledger and
stored brief artifacts.
"""

from datetime import datetime
from typing import List, Optional

from insight_broker.config.loader import DEFAULT_DB_PATH

from .db import get_connection
from .models import AccountQuota, ActivityRecord, BriefArtifact, PlanTier


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the subscriptions, activities and briefs tables if missing.

    activities and briefs are append-only; no UPDATE or DELETE is ever
    issued against them. subscriptions rows are only touched through
    the token counter.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS subscriptions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                plan TEXT NOT NULL DEFAULT 'trial',
                tokens_used INTEGER NOT NULL DEFAULT 0 CHECK (tokens_used >= 0),
                tokens_limit INTEGER CHECK (tokens_limit IS NULL OR tokens_limit >= 0),
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_subscriptions_user
            ON subscriptions (user_id, created_at)
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS activities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                tokens_used INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS briefs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                objective TEXT NOT NULL,
                model TEXT NOT NULL,
                tone TEXT,
                result TEXT NOT NULL,
                tokens_used INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


class BrokerRepository:
    """Repository for the tables the generation pipeline reads and writes.

    Every method opens its own connection, so a single instance can be
    shared by concurrent requests.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def get_quota(self, account_id: str) -> Optional[AccountQuota]:
        """Return the account's most recent subscription row, if any."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, user_id, plan, tokens_used, tokens_limit, created_at
                FROM subscriptions
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
            """, (account_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return AccountQuota(
                id=row[0],
                account_id=row[1],
                plan=PlanTier.from_value(row[2]),
                tokens_used=row[3] or 0,
                tokens_limit=row[4],
                created_at=datetime.fromisoformat(row[5])
            )
        finally:
            conn.close()

    def create_quota(
        self,
        account_id: str,
        plan: PlanTier,
        tokens_limit: Optional[int],
        tokens_used: int = 0,
        created_at: Optional[datetime] = None
    ) -> AccountQuota:
        """Insert a new subscription row; it becomes the account's current quota.

        Args:
            account_id: Owning account
            plan: Plan tier
            tokens_limit: Token ceiling, or None for the configured default
            tokens_used: Starting counter value
            created_at: Row timestamp, defaults to now

        Returns:
            The stored quota
        """
        if tokens_used < 0:
            raise ValueError("tokens_used cannot be negative")
        if tokens_limit is not None and tokens_limit < 0:
            raise ValueError("tokens_limit cannot be negative")

        created_at = created_at or datetime.now()
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                INSERT INTO subscriptions
                (user_id, plan, tokens_used, tokens_limit, created_at)
                VALUES (?, ?, ?, ?, ?)
            """, (
                account_id,
                plan.value,
                tokens_used,
                tokens_limit,
                created_at.isoformat()
            ))
            conn.commit()
            quota_id = cursor.lastrowid
        finally:
            conn.close()

        return AccountQuota(
            id=quota_id,
            account_id=account_id,
            plan=plan,
            tokens_used=tokens_used,
            tokens_limit=tokens_limit,
            created_at=created_at
        )

    def increment_tokens_used(self, quota_id: int, amount: int) -> Optional[int]:
        """Atomically add to a quota's counter and return the new value.

        The update and the read-back run inside one IMMEDIATE transaction,
        so concurrent writers serialize on the database lock and each
        caller observes the value its own increment produced.

        Args:
            quota_id: Subscription row id
            amount: Non-negative number of tokens to add

        Returns:
            The counter after the increment, or None if the row is gone
        """
        if amount < 0:
            raise ValueError("amount cannot be negative")

        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute("""
                UPDATE subscriptions
                SET tokens_used = tokens_used + ?
                WHERE id = ?
            """, (amount, quota_id))
            if cursor.rowcount == 0:
                conn.rollback()
                return None
            row = conn.execute(
                "SELECT tokens_used FROM subscriptions WHERE id = ?",
                (quota_id,)
            ).fetchone()
            conn.commit()
            return row[0]
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def release_tokens(self, quota_id: int, amount: int) -> None:
        """Undo a previous increment of ``amount`` on a quota's counter."""
        if amount < 0:
            raise ValueError("amount cannot be negative")

        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                UPDATE subscriptions
                SET tokens_used = MAX(tokens_used - ?, 0)
                WHERE id = ?
            """, (amount, quota_id))
            conn.commit()
        finally:
            conn.close()

    def insert_activity(self, record: ActivityRecord) -> None:
        """Append a single activity record to the ledger.

        Args:
            record: The activity to record
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO activities
                (user_id, type, title, description, tokens_used, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                record.account_id,
                record.kind,
                record.title,
                record.description,
                record.tokens_used,
                record.created_at.isoformat()
            ))
            conn.commit()
        finally:
            conn.close()

    def fetch_recent_activities(
        self,
        account_id: str,
        limit: int = 10
    ) -> List[ActivityRecord]:
        """Fetch an account's activity records, newest first.

        Args:
            account_id: Owning account
            limit: Maximum number of records to return

        Returns:
            List of activity records ordered by timestamp (newest first)
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, user_id, type, title, description, tokens_used, created_at
                FROM activities
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
            """, (account_id, limit))
            return [
                ActivityRecord(
                    id=row[0],
                    account_id=row[1],
                    kind=row[2],
                    title=row[3],
                    description=row[4],
                    tokens_used=row[5],
                    created_at=datetime.fromisoformat(row[6])
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    def insert_brief(self, artifact: BriefArtifact) -> None:
        """Store a generated strategic brief."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO briefs
                (user_id, title, objective, model, tone, result, tokens_used, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                artifact.account_id,
                artifact.title,
                artifact.objective,
                artifact.model,
                artifact.tone,
                artifact.result,
                artifact.tokens_used,
                artifact.created_at.isoformat()
            ))
            conn.commit()
        finally:
            conn.close()

    def fetch_briefs(self, account_id: str, limit: int = 10) -> List[BriefArtifact]:
        """Fetch an account's stored briefs, newest first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT user_id, title, objective, model, tone, result,
                       tokens_used, created_at
                FROM briefs
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
            """, (account_id, limit))
            return [
                BriefArtifact(
                    account_id=row[0],
                    title=row[1],
                    objective=row[2],
                    model=row[3],
                    tone=row[4],
                    result=row[5],
                    tokens_used=row[6],
                    created_at=datetime.fromisoformat(row[7])
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()


def get_repository(db_path: str = DEFAULT_DB_PATH) -> BrokerRepository:
    """Get a repository for the given database, creating its schema if needed.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of BrokerRepository
    """
    initialize_schema(db_path)
    return BrokerRepository(db_path)
