"""
Preamble and noise normalization.

Generated prose often opens with conversational filler ("Sure!", "Here's
the refined version:") or wraps the answer in rules, bold markers or
quotes. clean_response removes those while leaving the body untouched.
"""

import re
from typing import List, Pattern


PREAMBLE_PATTERNS: List[Pattern[str]] = [
    re.compile(
        r"^(Sure!|Certainly!|Absolutely!|Great!|Of course!|Here'?s?|I'?ll|Let me|I will"
        r"|I'd be happy to)[^\n]*\n+",
        re.IGNORECASE,
    ),
    re.compile(r"^(Here is|Here are|Below is|Below are)[^\n]*\n+", re.IGNORECASE),
    re.compile(
        r"^(I've created|I've generated|I've prepared|I've analyzed|I've put together"
        r"|I've refined)[^\n]*\n+",
        re.IGNORECASE,
    ),
    re.compile(
        r"^(This is|Here's an?|Here's the)[^\n]*(upgraded|enhanced|improved|better|sarcastic"
        r"|engaging|analysis|refined)[^\n]*\n+",
        re.IGNORECASE,
    ),
    re.compile(r"^[^\n]*take on your request[^\n]*\n+", re.IGNORECASE),
    re.compile(r"^[^\n]*(version|take|response):[^\n]*\n+", re.IGNORECASE),
    re.compile(
        r"^(Market Analysis|Analysis Summary|Refined version|Here's the refined|The refined)"
        r"[^\n]*\n+",
        re.IGNORECASE,
    ),
]

_LEADING_RULE = re.compile(r"^---+\n+")
_LEADING_BOLD = re.compile(r"^\*\*+\n+")
_WRAPPING_QUOTES = re.compile(r"^[\"']|[\"']\Z")


def clean_response(text: str) -> str:
    """Strip conversational preamble and wrapping noise from generated text.

    The patterns are applied once, in order. Lines after the opener are
    body text even when they read like openers themselves.

    Args:
        text: Text payload from the envelope unwrapper

    Returns:
        The cleaned text; never raises
    """
    cleaned = text.strip()
    for pattern in PREAMBLE_PATTERNS:
        cleaned = pattern.sub("", cleaned, count=1)
    cleaned = _LEADING_RULE.sub("", cleaned, count=1)
    cleaned = _LEADING_BOLD.sub("", cleaned, count=1)
    cleaned = _WRAPPING_QUOTES.sub("", cleaned)
    return cleaned.strip()
