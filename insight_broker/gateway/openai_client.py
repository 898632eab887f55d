"""
OpenAI generation gateway.

Sends the compiled instruction as a single chat completion. The SDK's own
retries are disabled so that each request makes exactly one attempt.
"""

import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI, OpenAIError

from ..config.loader import GatewayConfig
from ..core.errors import ServiceUnavailable

logger = logging.getLogger(__name__)


class OpenAIGenerationGateway:
    """Gateway backed by the OpenAI chat completions API."""
    
    def __init__(self, model: str, client: Optional[OpenAI] = None):
        """Initialize the OpenAI gateway.
        
        Args:
            model: OpenAI model name (required)
            client: Preconfigured OpenAI client; defaults to one reading
                OPENAI_API_KEY from the environment
            
        Raises:
            ValueError: If model is missing/empty or no API key is configured
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        
        self.model = model
        if client is None:
            try:
                client = OpenAI(max_retries=0)
            except OpenAIError as e:
                raise ValueError(f"OpenAI client could not be created: {e}") from e
        self.client = client
    
    @classmethod
    def from_config(cls, config: GatewayConfig) -> "OpenAIGenerationGateway":
        """Build a gateway from the gateway configuration section."""
        return cls(model=config.model)
    
    def build_messages(
        self,
        instruction: str,
        attachment_url: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Return the chat messages for one call.
        
        The attachment, when present, travels as an image part beside the
        instruction text.
        """
        if not attachment_url:
            return [{"role": "user", "content": instruction}]
        return [{
            "role": "user",
            "content": [
                {"type": "text", "text": instruction},
                {"type": "image_url", "image_url": {"url": attachment_url}},
            ],
        }]
    
    def generate(self, instruction: str, attachment_url: Optional[str] = None) -> str:
        """Create one chat completion and return its text.
        
        Raises:
            ServiceUnavailable: On any OpenAI API or connection error
        """
        logger.info("Calling OpenAI model %s (attachment: %s)", self.model, bool(attachment_url))
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(instruction, attachment_url)
            )
        except OpenAIError as e:
            logger.warning("OpenAI call failed: %s", e)
            raise ServiceUnavailable(status_code=getattr(e, "status_code", None)) from e
        
        if not response.choices:
            raise ServiceUnavailable()
        return response.choices[0].message.content or ""
    
    def close(self) -> None:
        """Release the underlying HTTP connections."""
        self.client.close()
