"""
Generation pipeline.

Runs one request end to end:

1. Entitlement pre-check (no gateway call for exhausted accounts)
2. Prompt compilation and the single gateway call
3. Envelope unwrapping, normalization and, for market analysis,
   structured extraction
4. Token metering, then best-effort activity and brief persistence

QuotaExceeded and ServiceUnavailable propagate to the caller. Everything
after a successful generation is non-fatal except a blocked overshoot.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from insight_broker.config.loader import BrokerConfig, default_config
from insight_broker.gateway.base import GenerationGateway
from insight_broker.storage.repository import BrokerRepository

from .activity import persist_brief, record_activity
from .entitlements import ChargeResult, Entitlement, charge_tokens, check_entitlement
from .envelope import unwrap_envelope
from .errors import QuotaExceeded
from .extractor import extract_market_analysis
from .features import FeatureKind
from .normalizer import clean_response
from .prompts import compile_prompt
from .requests import (
    ContentRefinementRequest,
    GenerationRequest,
    MarketAnalysisRequest,
    StrategicBriefRequest,
)
from .token_counter import calculate_tokens, serialize_output

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    """Result of one pipeline run.

    output is the structured object for market analysis and the
    normalized text otherwise. degraded is True only when market analysis
    fell back to the fixed placeholder object.
    """
    kind: FeatureKind
    output: Union[str, Dict[str, Any]]
    model: str
    tokens_used: int
    degraded: bool = False
    tone: Optional[str] = None
    length: Optional[str] = None

    @property
    def structured(self) -> bool:
        return self.kind == FeatureKind.MARKET_ANALYSIS

    def to_response(self) -> Dict[str, Any]:
        """Render the API payload for this result."""
        if self.kind == FeatureKind.MARKET_ANALYSIS:
            return {
                "result": self.output,
                "structured": True,
                "model": self.model,
                "tokensUsed": self.tokens_used,
            }
        if self.kind == FeatureKind.CONTENT_REFINEMENT:
            return {
                "result": self.output,
                "model": self.model,
                "tone": self.tone,
                "length": self.length,
                "tokensUsed": self.tokens_used,
            }
        return {
            "result": self.output,
            "model": self.model,
            "tone": self.tone,
            "tokensUsed": self.tokens_used,
        }


class GenerationPipeline:
    """Brokers generation requests against per-account token quotas."""

    def __init__(
        self,
        gateway: GenerationGateway,
        repository: BrokerRepository,
        config: Optional[BrokerConfig] = None
    ):
        self.gateway = gateway
        self.repository = repository
        self.config = config or default_config()

    def run(self, account_id: str, request: GenerationRequest) -> GenerationResult:
        """Run a generation request for an account.

        Args:
            account_id: Account being served and charged
            request: One of the three feature requests

        Returns:
            GenerationResult for the request

        Raises:
            QuotaExceeded: If the account has no tokens left
            ServiceUnavailable: If the generation call fails
        """
        if not account_id:
            raise ValueError("account_id is required and cannot be empty")

        quota = self.repository.get_quota(account_id)
        entitlement = check_entitlement(quota, self.config.quota.default_tokens_limit)

        compiled = compile_prompt(request)
        raw = self.gateway.generate(compiled.instruction, compiled.attachment_url)
        payload = unwrap_envelope(raw)

        degraded = False
        if request.kind == FeatureKind.MARKET_ANALYSIS:
            if isinstance(payload, str):
                payload = clean_response(payload)
            extraction = extract_market_analysis(payload)
            output: Union[str, Dict[str, Any]] = extraction.data
            degraded = extraction.degraded
        else:
            text = payload if isinstance(payload, str) else json.dumps(payload)
            output = clean_response(text)

        tokens_used = calculate_tokens(request.subject, serialize_output(output))
        self._charge(account_id, entitlement, tokens_used)

        if isinstance(request, StrategicBriefRequest):
            persist_brief(
                self.repository,
                account_id,
                objective=request.objective,
                model=compiled.model_key,
                tone=request.tone or None,
                result=output,
                tokens_used=tokens_used
            )

        record_activity(self.repository, account_id, request.kind, request.subject, tokens_used)

        logger.info("%s for account %s: %d tokens%s", request.kind.value, account_id,
                    tokens_used, " (degraded)" if degraded else "")

        return GenerationResult(
            kind=request.kind,
            output=output,
            model=compiled.model_key,
            tokens_used=tokens_used,
            degraded=degraded,
            tone=self._echo_tone(request),
            length=request.length if isinstance(request, ContentRefinementRequest) else None
        )

    def generate_intel(self, account_id: str, request: MarketAnalysisRequest) -> Dict[str, Any]:
        """Run a market analysis and return the API payload."""
        return self.run(account_id, request).to_response()

    def refine_content(self, account_id: str, request: ContentRefinementRequest) -> Dict[str, Any]:
        """Run a content refinement and return the API payload."""
        return self.run(account_id, request).to_response()

    def generate_brief(self, account_id: str, request: StrategicBriefRequest) -> Dict[str, Any]:
        """Run a strategic brief and return the API payload."""
        return self.run(account_id, request).to_response()

    def _charge(
        self,
        account_id: str,
        entitlement: Entitlement,
        tokens_used: int
    ) -> Optional[ChargeResult]:
        # The generation already succeeded; only a blocked overshoot may
        # still reject the request.
        try:
            return charge_tokens(
                self.repository,
                entitlement,
                tokens_used,
                on_overshoot=self.config.quota.on_overshoot
            )
        except QuotaExceeded:
            raise
        except Exception:
            logger.error("Failed to update token usage for account %s", account_id, exc_info=True)
            return None

    @staticmethod
    def _echo_tone(request: GenerationRequest) -> Optional[str]:
        if isinstance(request, ContentRefinementRequest):
            return request.tone
        if isinstance(request, StrategicBriefRequest):
            return request.tone or None
        return None
