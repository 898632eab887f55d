"""
Error taxonomy for the generation pipeline.

QuotaExceeded and ServiceUnavailable reach the caller with their fixed
messages. MalformedOutput never leaves the extractor.
"""

from typing import Optional


QUOTA_EXCEEDED_MESSAGE = "Token limit reached. Please upgrade your plan."
SERVICE_UNAVAILABLE_MESSAGE = "AI service unavailable"


class BrokerError(Exception):
    """Base class for pipeline failures."""


class QuotaExceeded(BrokerError):
    """Raised when an account has no tokens left for a new generation."""
    def __init__(self, message: str = QUOTA_EXCEEDED_MESSAGE, account_id: Optional[str] = None):
        super().__init__(message)
        self.account_id = account_id


class ServiceUnavailable(BrokerError):
    """Raised when the generation endpoint does not answer with success."""
    def __init__(self, message: str = SERVICE_UNAVAILABLE_MESSAGE, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedOutput(BrokerError):
    """Raised internally when generated text does not hold the expected JSON."""
