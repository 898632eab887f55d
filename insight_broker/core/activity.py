"""
Activity recording.

Writes the audit trail entry for a successful generation and, for
strategic briefs, a stored copy of the brief. Both writes are best-effort:
a storage failure is logged and never reaches the caller.
"""

import logging
from datetime import datetime
from typing import Optional

from insight_broker.storage.models import ActivityRecord, BriefArtifact
from insight_broker.storage.repository import BrokerRepository

from .features import FeatureKind, get_profile

logger = logging.getLogger(__name__)


ELLIPSIS = "..."
BRIEF_TITLE_CAP = 100


def truncate_description(text: str, cap: int) -> str:
    """Trim text and cut it to cap characters, adding an ellipsis if cut."""
    trimmed = text.strip()
    if len(trimmed) <= cap:
        return trimmed
    return trimmed[:cap] + ELLIPSIS


def build_activity(
    account_id: str,
    kind: FeatureKind,
    subject: str,
    tokens_used: int,
    created_at: Optional[datetime] = None
) -> ActivityRecord:
    """Build the activity record for a generation of the given kind."""
    profile = get_profile(kind)
    return ActivityRecord(
        account_id=account_id,
        kind=profile.activity_type,
        title=profile.activity_title,
        description=truncate_description(subject, profile.description_cap),
        tokens_used=tokens_used,
        created_at=created_at or datetime.now()
    )


def record_activity(
    repository: BrokerRepository,
    account_id: str,
    kind: FeatureKind,
    subject: str,
    tokens_used: int
) -> Optional[ActivityRecord]:
    """Append an activity record, swallowing storage failures.

    Returns:
        The written record, or None if it could not be stored
    """
    record = build_activity(account_id, kind, subject, tokens_used)
    try:
        repository.insert_activity(record)
    except Exception:
        logger.warning("Failed to record %s activity for account %s",
                       record.kind, account_id, exc_info=True)
        return None
    return record


def persist_brief(
    repository: BrokerRepository,
    account_id: str,
    objective: str,
    model: str,
    tone: Optional[str],
    result: str,
    tokens_used: int
) -> Optional[BriefArtifact]:
    """Store a generated brief, swallowing storage failures."""
    artifact = BriefArtifact(
        account_id=account_id,
        title=objective[:BRIEF_TITLE_CAP],
        objective=objective,
        model=model,
        tone=tone,
        result=result,
        tokens_used=tokens_used,
        created_at=datetime.now()
    )
    try:
        repository.insert_brief(artifact)
    except Exception:
        logger.warning("Failed to store brief for account %s", account_id, exc_info=True)
        return None
    return artifact
