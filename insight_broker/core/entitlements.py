"""
Entitlement checks and token metering.

Enforcement Order:
1. Pre-check - Rejects exhausted accounts before the generation call
2. Charge - Atomically adds the generation's token cost to the counter
3. Overshoot check - Detects a concurrent request that used up the
   remaining quota between our pre-check and our charge
"""

import logging
from dataclasses import dataclass
from typing import Optional

from insight_broker.config.loader import DEFAULT_TOKENS_LIMIT, BreachAction
from insight_broker.storage.models import AccountQuota, PlanTier
from insight_broker.storage.repository import BrokerRepository

from .errors import QuotaExceeded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entitlement:
    """Effective quota state for one account at pre-check time.

    quota is None for accounts without a subscription row; they are
    treated as TRIAL with the default ceiling and are never charged.
    """
    plan: PlanTier
    tokens_used: int
    tokens_limit: int
    quota: Optional[AccountQuota] = None

    @property
    def unlimited(self) -> bool:
        """PRO accounts are exempt from the ceiling."""
        return self.plan == PlanTier.PRO

    @property
    def exhausted(self) -> bool:
        """True when a limited account has no tokens left."""
        return not self.unlimited and self.tokens_used >= self.tokens_limit


@dataclass(frozen=True)
class ChargeResult:
    """Outcome of metering one generation."""
    charged: bool
    tokens_used: Optional[int] = None
    overshoot: bool = False


def resolve_entitlement(
    quota: Optional[AccountQuota],
    default_tokens_limit: int = DEFAULT_TOKENS_LIMIT
) -> Entitlement:
    """Derive the effective plan, usage and ceiling for an account.

    A missing row, or a row whose ceiling is missing or zero, gets the
    default ceiling.

    Args:
        quota: The account's current subscription row, if any
        default_tokens_limit: Ceiling used when none is stored

    Returns:
        Entitlement snapshot
    """
    if quota is None:
        return Entitlement(
            plan=PlanTier.TRIAL,
            tokens_used=0,
            tokens_limit=default_tokens_limit
        )
    return Entitlement(
        plan=quota.plan,
        tokens_used=quota.tokens_used or 0,
        tokens_limit=quota.tokens_limit or default_tokens_limit,
        quota=quota
    )


def check_entitlement(
    quota: Optional[AccountQuota],
    default_tokens_limit: int = DEFAULT_TOKENS_LIMIT
) -> Entitlement:
    """Authorize a new generation for an account.

    Args:
        quota: The account's current subscription row, if any
        default_tokens_limit: Ceiling used when none is stored

    Returns:
        The entitlement the generation was authorized against

    Raises:
        QuotaExceeded: If a non-PRO account has used its whole ceiling
    """
    entitlement = resolve_entitlement(quota, default_tokens_limit)
    if entitlement.exhausted:
        account_id = quota.account_id if quota else None
        logger.info(
            "Quota exhausted for account %s: %d/%d tokens on plan %s",
            account_id, entitlement.tokens_used, entitlement.tokens_limit,
            entitlement.plan.value
        )
        raise QuotaExceeded(account_id=account_id)
    return entitlement


def charge_tokens(
    repository: BrokerRepository,
    entitlement: Entitlement,
    cost: int,
    on_overshoot: BreachAction = BreachAction.WARN
) -> ChargeResult:
    """Add a generation's token cost to the account's counter.

    The counter is incremented atomically and the new value is checked
    against the ceiling. If the counter already sat at or above the
    ceiling before this charge landed, a concurrent request exhausted the
    quota after our pre-check: on_overshoot decides whether that is only
    logged (WARN) or rolled back and rejected (BLOCK).

    Args:
        repository: Store holding the quota counters
        entitlement: Snapshot returned by check_entitlement
        cost: Token cost of the generation
        on_overshoot: Action when a concurrent overshoot is detected

    Returns:
        ChargeResult describing what was written

    Raises:
        QuotaExceeded: On overshoot when on_overshoot is BLOCK, even if
            the rollback itself fails
        sqlite3.Error: If the counter could not be updated
    """
    quota = entitlement.quota
    if quota is None:
        return ChargeResult(charged=False)

    new_total = repository.increment_tokens_used(quota.id, cost)
    if new_total is None:
        logger.warning("Quota row %s disappeared before it could be charged", quota.id)
        return ChargeResult(charged=False)

    prior_total = new_total - cost
    if entitlement.unlimited or prior_total < entitlement.tokens_limit:
        return ChargeResult(charged=True, tokens_used=new_total)

    message = (
        f"Concurrent usage pushed account {quota.account_id} to "
        f"{prior_total}/{entitlement.tokens_limit} tokens before this charge of {cost}"
    )
    if on_overshoot == BreachAction.BLOCK:
        logger.warning("%s; rolling back", message)
        try:
            repository.release_tokens(quota.id, cost)
        except Exception:
            logger.error("Failed to roll back %d tokens on quota row %s; the charge remains",
                         cost, quota.id, exc_info=True)
        raise QuotaExceeded(account_id=quota.account_id)

    logger.warning(message)
    return ChargeResult(charged=True, tokens_used=new_total, overshoot=True)
