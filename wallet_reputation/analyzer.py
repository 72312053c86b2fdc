"""
Wallet analysis pipeline.

    address -> classify chain -> validate token list
            -> provider manager (wallet info, tokens created)
            -> outcome classifier + heuristics -> score composer
            -> AnalysisResult (cached for the analysis TTL)

``handle_request`` is the error boundary: it turns a raw payload into a
``(status_code, body)`` pair and never raises for taxonomy errors.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from .cache import CacheKeys, CacheTTL, LRUCache, get_shared_cache
from .config import Settings, get_settings
from .context import RequestContext
from .exceptions import (
    AppError,
    NetworkError,
    ScoringError,
    ValidationError,
    format_error_response,
    wrap_exception,
)
from .models import AnalysisMetadata, AnalysisResult, TokenSummary, WalletInfo
from .outcome import summarize_launches
from .provider_manager import ProviderManager, create_provider_manager
from .scoring import compute_score
from .validators import AnalysisRequest, validate_address, validate_token_list

logger = logging.getLogger(__name__)


def _pydantic_message(error: PydanticValidationError) -> Tuple[str, Optional[str]]:
    first = error.errors()[0]
    message = str(first.get("msg") or "Invalid request")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    loc = first.get("loc") or ()
    return message, str(loc[0]) if loc else None


class WalletAnalyzer:
    """Runs wallet analyses against a provider manager."""

    def __init__(
        self,
        manager: Optional[ProviderManager] = None,
        cache: Optional[LRUCache] = None,
        settings: Optional[Settings] = None,
        analysis_ttl: Optional[float] = None,
        pipeline_timeout: Optional[float] = None,
        max_manual_tokens: Optional[int] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else get_shared_cache(self.settings.cache.max_entries)
        self.manager = manager if manager is not None else create_provider_manager(self.settings, self.cache)
        self.analysis_ttl = analysis_ttl if analysis_ttl is not None else self.settings.cache.analysis_ttl
        self.pipeline_timeout = (
            pipeline_timeout if pipeline_timeout is not None else self.settings.analysis.pipeline_timeout
        )
        self.max_manual_tokens = max_manual_tokens or self.settings.analysis.max_manual_tokens

    async def analyze(
        self,
        address: str,
        token_addresses: Optional[List[str]] = None,
        force_refresh: bool = False,
        request_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AnalysisResult:
        """
        Analyze one wallet.

        Raises:
            ValidationError: malformed address or token list
            NetworkError: the whole pipeline exceeded ``pipeline_timeout``
            ScoringError: scoring failed on the fetched data
        """
        detected = validate_address(address)
        chain = detected.blockchain
        wallet = detected.normalized_address
        tokens_requested = validate_token_list(
            token_addresses, chain, self.max_manual_tokens
        ).raise_if_invalid()

        ctx = RequestContext(request_id=request_id, wallet=wallet, chain=chain.value)
        key = CacheKeys.analysis(chain.value, wallet, tokens_requested)

        if not force_refresh:
            cached = await self.cache.get(key)
            if cached is not None:
                ctx.logger.info("Serving cached analysis for %s", wallet)
                return cached.as_cached(ctx.request_id, ctx.elapsed_ms)

        run = self._run(wallet, chain.value, tokens_requested, force_refresh, ctx, now)
        if self.pipeline_timeout:
            try:
                result = await asyncio.wait_for(run, timeout=self.pipeline_timeout)
            except asyncio.TimeoutError as e:
                raise NetworkError(
                    message=f"Analysis timed out after {self.pipeline_timeout}s",
                    request_id=ctx.request_id,
                    context={"wallet": wallet},
                ) from e
        else:
            result = await run

        await self.cache.set(key, result, self.analysis_ttl or CacheTTL.ANALYSIS_RESULT)
        ctx.logger.info(
            "Analysis complete: %s on %s scored %d (%s) in %dms, %d API calls",
            wallet, chain.value, result.score, result.confidence.level.value,
            result.metadata.processing_time_ms, ctx.metrics.api_call_count,
        )
        return result

    async def _run(
        self,
        wallet: str,
        chain: str,
        manual_tokens: List[str],
        force_refresh: bool,
        ctx: RequestContext,
        now: Optional[datetime],
    ) -> AnalysisResult:
        wallet_info, tokens = await asyncio.gather(
            self.manager.get_wallet_info(wallet, chain=chain, ctx=ctx, force_refresh=force_refresh),
            self.manager.get_tokens_created(
                wallet,
                chain=chain,
                ctx=ctx,
                force_refresh=force_refresh,
                manual_tokens=manual_tokens or None,
            ),
        )
        ctx.logger.debug("Fetched wallet info (%d txs) and %d tokens", wallet_info.tx_count, len(tokens))
        return self._build_result(wallet, chain, wallet_info, tokens, ctx, now)

    def _build_result(
        self,
        wallet: str,
        chain: str,
        wallet_info: WalletInfo,
        tokens: List[TokenSummary],
        ctx: RequestContext,
        now: Optional[datetime],
    ) -> AnalysisResult:
        try:
            scored = compute_score(wallet_info, tokens, now=now)
            launches = summarize_launches(tokens)
        except AppError:
            raise
        except Exception as e:
            ctx.logger.error("Scoring failed for %s: %s", wallet, e)
            raise wrap_exception(
                e, ScoringError, message="Failed to score wallet", request_id=ctx.request_id
            ) from e

        notes = list(scored.notes)
        for token in tokens:
            if token.verification_warning:
                notes.append(f"{token.token}: {token.verification_warning}")

        return AnalysisResult(
            address=wallet,
            blockchain=chain,
            score=scored.score,
            breakdown=scored.breakdown,
            confidence=scored.confidence,
            notes=notes,
            wallet_info=wallet_info,
            token_launch_summary=launches,
            metadata=AnalysisMetadata(
                processing_time_ms=ctx.elapsed_ms,
                cached=False,
                providers_used=ctx.sorted_providers_used(),
                request_id=ctx.request_id,
                analyzed_at=now or datetime.now(timezone.utc),
            ),
        )

    async def handle_request(
        self,
        payload: Dict[str, Any],
        request_id: Optional[str] = None,
    ) -> Tuple[int, Dict[str, Any]]:
        """Validate ``payload``, analyze, and return ``(status_code, body)``."""
        try:
            request = AnalysisRequest.model_validate(payload or {})
        except PydanticValidationError as e:
            message, field_name = _pydantic_message(e)
            error = ValidationError(message=message, field=field_name, request_id=request_id)
            return error.status_code, format_error_response(error, request_id)

        try:
            result = await self.analyze(
                request.address,
                token_addresses=request.token_addresses,
                force_refresh=request.force_refresh,
                request_id=request_id,
            )
        except AppError as e:
            if e.status_code >= 500:
                logger.error("Analysis failed: %s", e)
            return e.status_code, format_error_response(e, request_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Unexpected error during analysis")
            return 500, format_error_response(e, request_id)

        return 200, result.to_dict()

    async def close(self) -> None:
        await self.manager.shutdown()

    async def __aenter__(self) -> "WalletAnalyzer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["WalletAnalyzer"]
