"""
Token counting and usage tracking.

Token cost is a coarse, reproducible proxy: one token per four characters
of input plus one per four characters of output, each rounded up.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Union


CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage for one generation, split by side."""
    input_tokens: int
    output_tokens: int
    
    @property
    def total_tokens(self) -> int:
        """Total tokens charged (input + output)."""
        return self.input_tokens + self.output_tokens


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a single piece of text."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def measure_usage(input_text: str, output_text: str) -> TokenUsage:
    """Build the per-side usage for a request subject and its output."""
    return TokenUsage(
        input_tokens=estimate_tokens(input_text),
        output_tokens=estimate_tokens(output_text)
    )


def calculate_tokens(input_text: str, output_text: str) -> int:
    """Calculate the token cost of a generation.
    
    Args:
        input_text: The request's primary subject text
        output_text: The final output serialized to text
        
    Returns:
        ceil(len(input_text) / 4) + ceil(len(output_text) / 4)
    """
    return measure_usage(input_text, output_text).total_tokens


def serialize_output(output: Union[str, Dict[str, Any]]) -> str:
    """Render pipeline output as the text that gets metered.
    
    Structured results are serialized compactly, without whitespace
    between separators.
    """
    if isinstance(output, str):
        return output
    return json.dumps(output, separators=(",", ":"), ensure_ascii=False)
