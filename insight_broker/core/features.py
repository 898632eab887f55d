"""
Feature kinds and their per-kind settings.

Every generation belongs to exactly one FeatureKind; everything that varies
by kind (default model key, activity labels, description cap) lives in a
FeatureProfile looked up from FEATURE_PROFILES.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class FeatureKind(Enum):
    """Generation features offered by the broker."""
    MARKET_ANALYSIS = "market-analysis"
    CONTENT_REFINEMENT = "content-refinement"
    STRATEGIC_BRIEF = "strategic-brief"


@dataclass(frozen=True)
class FeatureProfile:
    """Static settings for one feature kind."""
    default_model: str
    activity_type: str
    activity_title: str
    description_cap: int


FEATURE_PROFILES: Dict[FeatureKind, FeatureProfile] = {
    FeatureKind.MARKET_ANALYSIS: FeatureProfile(
        default_model="professional",
        activity_type="intel",
        activity_title="Market Intel Generated",
        description_cap=100
    ),
    FeatureKind.CONTENT_REFINEMENT: FeatureProfile(
        default_model="professional",
        activity_type="refine",
        activity_title="Content Refined",
        description_cap=80
    ),
    FeatureKind.STRATEGIC_BRIEF: FeatureProfile(
        default_model="creative",
        activity_type="brief",
        activity_title="Strategic Brief Generated",
        description_cap=80
    ),
}


def get_profile(kind: FeatureKind) -> FeatureProfile:
    """Return the settings for a feature kind."""
    return FEATURE_PROFILES[kind]
