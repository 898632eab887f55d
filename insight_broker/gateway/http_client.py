"""
HTTP generation gateway.

Calls a GET-style generation endpoint with the instruction as a query
parameter. One attempt per request; failures are terminal.
"""

import logging
from typing import Dict, Optional

import httpx

from ..config.loader import GatewayConfig
from ..core.errors import ServiceUnavailable

logger = logging.getLogger(__name__)


class HttpGenerationGateway:
    """Gateway for an endpoint taking the prompt in the query string.
    
    The instruction goes in ``prompt_param`` and the optional attachment
    reference in ``attachment_param``; httpx URL-encodes both.
    """
    
    def __init__(
        self,
        endpoint: str,
        prompt_param: str = "text",
        attachment_param: str = "imageUrl",
        client: Optional[httpx.Client] = None
    ):
        """Initialize the HTTP gateway.
        
        Args:
            endpoint: Generation endpoint URL (required)
            prompt_param: Query parameter carrying the instruction
            attachment_param: Query parameter carrying the attachment
            client: Preconfigured httpx client; a default one is created
                when omitted
            
        Raises:
            ValueError: If endpoint is missing/empty
        """
        if not endpoint or not endpoint.strip():
            raise ValueError("endpoint is required and cannot be empty")
        
        self.endpoint = endpoint.strip()
        self.prompt_param = prompt_param
        self.attachment_param = attachment_param
        self.client = client or httpx.Client()
    
    @classmethod
    def from_config(cls, config: GatewayConfig) -> "HttpGenerationGateway":
        """Build a gateway from the gateway configuration section."""
        return cls(
            endpoint=config.endpoint,
            prompt_param=config.prompt_param,
            attachment_param=config.attachment_param
        )
    
    def build_params(self, instruction: str, attachment_url: Optional[str] = None) -> Dict[str, str]:
        """Return the query parameters for one call."""
        params = {self.prompt_param: instruction}
        if attachment_url:
            params[self.attachment_param] = attachment_url
        return params
    
    def generate(self, instruction: str, attachment_url: Optional[str] = None) -> str:
        """Call the endpoint once and return the response body as text.
        
        Args:
            instruction: Compiled instruction
            attachment_url: Optional attachment reference
            
        Returns:
            Raw response body
            
        Raises:
            ServiceUnavailable: On any non-2xx status or transport failure
        """
        logger.info("Calling generation endpoint %s (attachment: %s)",
                    self.endpoint, bool(attachment_url))
        try:
            response = self.client.get(
                self.endpoint,
                params=self.build_params(instruction, attachment_url),
                headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as e:
            logger.warning("Generation endpoint unreachable: %s", e)
            raise ServiceUnavailable() from e
        
        if not response.is_success:
            logger.warning("Generation endpoint returned %s", response.status_code)
            raise ServiceUnavailable(status_code=response.status_code)
        
        return response.text
    
    def close(self) -> None:
        """Release the underlying HTTP connections."""
        self.client.close()
