"""
Envelope unwrapping.

The generation service may answer with plain text, a bare JSON string, a
JSON object carrying the real payload under one of a few field names, or a
JSON object that already is the structured market analysis.
"""

import json
from typing import Any, Dict, Union


ENVELOPE_FIELDS = ("response", "result", "text", "message")
STRUCTURED_MARKER = "marketOverview"

Payload = Union[str, Dict[str, Any]]


def unwrap_envelope(raw: str) -> Payload:
    """Extract the payload from a raw gateway response.

    Never raises: anything that is not a recognised envelope is returned
    as the original raw text.

    Args:
        raw: Response body as text

    Returns:
        The payload string, or the structured object when the response
        already carries one
    """
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return raw

    if isinstance(parsed, str):
        return parsed

    if not isinstance(parsed, dict):
        return raw

    for field_name in ENVELOPE_FIELDS:
        value = parsed.get(field_name)
        if value:
            return value if isinstance(value, (str, dict)) else raw

    if STRUCTURED_MARKER in parsed:
        return parsed
    return raw
