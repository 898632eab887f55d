"""
Gateway interface.

A gateway makes exactly one call to the generation service per request and
returns the raw response text.
"""

from typing import Optional, Protocol


class GenerationGateway(Protocol):
    """Anything that turns an instruction into raw generated text."""

    def generate(self, instruction: str, attachment_url: Optional[str] = None) -> str:
        """Return the raw response body, or raise ServiceUnavailable."""
        ...

    def close(self) -> None:
        """Release any connections held by the gateway."""
        ...
