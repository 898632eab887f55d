"""
Generation requests.

One frozen dataclass per feature kind. Each carries its subject text plus
the optional selectors the prompt compiler understands.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .features import FeatureKind


MAX_CONTENT_LENGTH = 10000
MAX_OBJECTIVE_LENGTH = 2000


def _require_text(value: str, name: str, max_length: Optional[int] = None) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} is required and cannot be empty")
    if max_length is not None and len(value) > max_length:
        raise ValueError(f"{name} must be at most {max_length} characters")


@dataclass(frozen=True)
class MarketAnalysisRequest:
    """Request for a structured market analysis."""
    market: str
    model: Optional[str] = None
    region: Optional[str] = None
    custom_region: Optional[str] = None
    industry: Optional[str] = None
    depth: Optional[str] = None
    time_focus: Optional[str] = None

    kind = FeatureKind.MARKET_ANALYSIS

    def __post_init__(self):
        _require_text(self.market, "market")

    @property
    def subject(self) -> str:
        return self.market


@dataclass(frozen=True)
class ContentRefinementRequest:
    """Request to rewrite a piece of content in a given tone and length."""
    content: str
    model: Optional[str] = None
    tone: Optional[str] = None
    custom_tone: Optional[str] = None
    length: Optional[str] = None

    kind = FeatureKind.CONTENT_REFINEMENT

    def __post_init__(self):
        _require_text(self.content, "content", MAX_CONTENT_LENGTH)

    @property
    def subject(self) -> str:
        return self.content


@dataclass(frozen=True)
class StrategicBriefRequest:
    """Request for a strategic brief, optionally with an attached reference."""
    objective: str
    model: Optional[str] = None
    tone: Optional[str] = None
    image_url: Optional[str] = None

    kind = FeatureKind.STRATEGIC_BRIEF

    def __post_init__(self):
        _require_text(self.objective, "objective", MAX_OBJECTIVE_LENGTH)

    @property
    def subject(self) -> str:
        return self.objective


GenerationRequest = Union[
    MarketAnalysisRequest,
    ContentRefinementRequest,
    StrategicBriefRequest,
]
