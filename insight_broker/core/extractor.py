"""
Structured extraction for market analysis.

Locates the market-analysis JSON object inside generated text. Extraction
is an ordered chain of pure strategies evaluated left to right; the first
strategy that yields a valid object wins. When every strategy fails the
caller receives a fixed degraded object instead of an error.
"""

import copy
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .envelope import Payload
from .errors import MalformedOutput

logger = logging.getLogger(__name__)


REQUIRED_KEYS = ("marketOverview", "recommendations")
UNAVAILABLE = "Data unavailable"

DEGRADED_MARKET_ANALYSIS: Dict[str, Any] = {
    "marketOverview": {
        "marketSize": "Unable to analyze. Please try with a more specific market description.",
        "customerBehavior": UNAVAILABLE,
        "buyingMotivations": UNAVAILABLE,
    },
    "targetAudience": {
        "demographics": UNAVAILABLE,
        "painPoints": UNAVAILABLE,
        "buyingTriggers": UNAVAILABLE,
    },
    "competitorSnapshot": {
        "typicalCompetitors": UNAVAILABLE,
        "strengths": UNAVAILABLE,
        "weaknesses": UNAVAILABLE,
    },
    "trendsOpportunities": {
        "emergingTrends": UNAVAILABLE,
        "marketGaps": UNAVAILABLE,
        "underservedNeeds": UNAVAILABLE,
    },
    "recommendations": [
        "Please try again with a more detailed market description",
        "Include specific industry or niche details",
        "Mention your target location or region",
        "Describe your ideal customer",
        "Include any specific concerns or questions",
    ],
}

_FENCE_JSON = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE = re.compile(r"```\s*")
_LEADING_JSON_TOKEN = re.compile(r"^\s*json\s*", re.IGNORECASE)

_SCHEMA_SPAN = re.compile(r"\{.*\"marketOverview\".*\"recommendations\".*\}", re.DOTALL)
_WIDEST_OBJECT_SPAN = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of structured extraction."""
    data: Dict[str, Any]
    degraded: bool = False


ExtractionStrategy = Callable[[str], Optional[Dict[str, Any]]]


def degraded_market_analysis() -> Dict[str, Any]:
    """Return a fresh copy of the fixed degraded object."""
    return copy.deepcopy(DEGRADED_MARKET_ANALYSIS)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences and a leading ``json`` language token."""
    cleaned = _FENCE_JSON.sub("", text)
    cleaned = _FENCE.sub("", cleaned)
    cleaned = _LEADING_JSON_TOKEN.sub("", cleaned, count=1)
    return cleaned.strip()


def _parse_object(candidate: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(candidate)
    except ValueError as e:
        raise MalformedOutput(f"Candidate is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedOutput("Candidate is not a JSON object")
    return parsed


def _span_strategy(pattern: re.Pattern) -> ExtractionStrategy:
    def strategy(text: str) -> Optional[Dict[str, Any]]:
        match = pattern.search(text)
        if not match:
            return None
        try:
            parsed = _parse_object(match.group(0))
        except MalformedOutput:
            return None
        if all(key in parsed for key in REQUIRED_KEYS):
            return parsed
        return None
    return strategy


def _direct_parse(text: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = _parse_object(text)
    except MalformedOutput:
        return None
    return parsed if REQUIRED_KEYS[0] in parsed else None


EXTRACTION_STRATEGIES: List[Tuple[str, ExtractionStrategy]] = [
    ("schema_span", _span_strategy(_SCHEMA_SPAN)),
    ("widest_object", _span_strategy(_WIDEST_OBJECT_SPAN)),
    ("direct_parse", _direct_parse),
]


def extract_market_analysis(payload: Payload) -> ExtractionResult:
    """Extract the market-analysis object from an unwrapped payload.

    Args:
        payload: Object or text returned by the envelope unwrapper (text
            has already been through the normalizer)

    Returns:
        ExtractionResult holding the extracted object, or the degraded
        object with degraded=True. Never raises.
    """
    if isinstance(payload, dict):
        if REQUIRED_KEYS[0] in payload:
            return ExtractionResult(data=payload)
        logger.warning("Structured payload lacks %s; using degraded result", REQUIRED_KEYS[0])
        return ExtractionResult(data=degraded_market_analysis(), degraded=True)

    cleaned = strip_code_fences(payload)
    for name, strategy in EXTRACTION_STRATEGIES:
        result = strategy(cleaned)
        if result is not None:
            logger.debug("Market analysis extracted with strategy %s", name)
            return ExtractionResult(data=result)

    logger.warning("No market analysis object found in generated text; using degraded result")
    return ExtractionResult(data=degraded_market_analysis(), degraded=True)
