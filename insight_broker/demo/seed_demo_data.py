# insight_broker/demo/seed_demo_data.py

from insight_broker.config.loader import DEFAULT_DB_PATH
from insight_broker.storage.models import PlanTier
from insight_broker.storage.repository import get_repository

# account, plan, tokens_limit, tokens_used
DEMO_QUOTAS = [
    ("demo-trial", PlanTier.TRIAL, None, 0),
    ("demo-standard", PlanTier.STANDARD, 100, 99),
    ("demo-exhausted", PlanTier.STANDARD, 100, 100),
    ("demo-pro", PlanTier.PRO, 100, 25000),
]


def seed_demo_data(db_path: str = DEFAULT_DB_PATH) -> int:
    """Insert one subscription row per demo account."""
    repository = get_repository(db_path)
    for account_id, plan, limit, used in DEMO_QUOTAS:
        repository.create_quota(account_id, plan, tokens_limit=limit, tokens_used=used)
    return len(DEMO_QUOTAS)


if __name__ == "__main__":
    seed_demo_data()
    print("Demo quotas inserted")
