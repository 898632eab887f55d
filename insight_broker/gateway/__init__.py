"""
Gateways to the generation service.

Each gateway makes a single outbound call and returns raw text.
"""

from ..config.loader import GatewayConfig, GatewayProvider
from .base import GenerationGateway
from .http_client import HttpGenerationGateway
from .openai_client import OpenAIGenerationGateway


def build_gateway(config: GatewayConfig) -> GenerationGateway:
    """Create the gateway selected by the configuration."""
    if config.provider == GatewayProvider.OPENAI:
        return OpenAIGenerationGateway.from_config(config)
    return HttpGenerationGateway.from_config(config)


__all__ = [
    "GenerationGateway",
    "HttpGenerationGateway",
    "OpenAIGenerationGateway",
    "build_gateway",
]
