"""
Provider adapter base class.

A provider wraps one upstream blockchain-data API behind the capability
interface used by the provider manager:

    is_available()        cheap local check (credentials, quota)
    get_wallet_info()     wallet creation time and activity
    get_tokens_created()  tokens launched by the wallet
    get_rate_limit()      last quota reported by the upstream

Every network call goes through ``_request``, which spaces calls to the
upstream, retries with backoff, handles throttling with its own bounded
loop and memoizes responses in the shared cache keyed by URL and
parameters. "No data found" is an empty result, never an exception.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

from .cache import LRUCache, TTLPolicy, get_shared_cache, make_request_key
from .context import RequestContext
from .exceptions import (
    APIError,
    NetworkError,
    RateLimitError,
    ValidationError,
    create_network_error,
)
from .models import TokenSummary, WalletInfo
from .rate_limiter import RateLimitInfo, RequestSpacer, parse_retry_after
from .retry import (
    PROVIDER_RETRY_POLICY,
    RetryConfig,
    is_retryable_error,
    retry_with_backoff,
    with_rate_limit_handling,
)
from .validators import BlockchainType, detect_blockchain

logger = logging.getLogger(__name__)

USER_AGENT = "wallet-reputation/1.0"


# =============================================================================
# CONFIGURATION & STATUS
# =============================================================================

@dataclass
class ProviderConfig:
    """
    Static configuration of one provider.

    Attributes:
        name: Provider name reported in ``providers_used``
        priority: Lower is tried first
        min_interval_ms: Minimum spacing between calls (derived from
            max_requests_per_second when unset)
        max_requests_per_minute: Optional sliding one-minute budget
        timeout: HTTP timeout per request in seconds
        retry: Backoff policy for each request
        rate_limit_delay_ms: Fixed wait after the upstream throttles us
        max_rate_limit_retries: Throttled retries before giving up
        ttls: Cache lifetimes per data class; ``ttls.request`` is the default
    """
    name: str
    priority: int = 1
    min_interval_ms: Optional[float] = None
    max_requests_per_second: Optional[float] = None
    max_requests_per_minute: Optional[int] = None
    timeout: float = 30.0
    retry: RetryConfig = field(default_factory=lambda: PROVIDER_RETRY_POLICY)
    rate_limit_delay_ms: int = 5000
    max_rate_limit_retries: int = 2
    ttls: TTLPolicy = field(default_factory=TTLPolicy)


@dataclass
class ProviderHealth:
    name: str
    healthy: bool
    available: bool
    last_check: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    latency_ms: Optional[int] = None
    last_error: Optional[str] = None
    rate_limit: Optional[RateLimitInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "available": self.available,
            "last_check": self.last_check.isoformat(),
            "latency_ms": self.latency_ms,
            "last_error": self.last_error,
            "rate_limit": self.rate_limit.to_dict() if self.rate_limit else None,
        }


# =============================================================================
# BASE PROVIDER
# =============================================================================

class BaseProvider(ABC):
    """Common HTTP machinery for provider adapters."""

    chain: BlockchainType = BlockchainType.ETHEREUM

    def __init__(
        self,
        config: ProviderConfig,
        api_key: Optional[str] = None,
        cache: Optional[LRUCache] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config
        self._api_key = api_key
        self._cache = cache
        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()
        self._spacer = RequestSpacer(
            min_interval_ms=config.min_interval_ms,
            max_per_second=config.max_requests_per_second,
            max_per_minute=config.max_requests_per_minute,
        )
        self._rate_limit = RateLimitInfo(limit=config.max_requests_per_minute)
        self.last_error: Optional[str] = None
        self.last_success: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def priority(self) -> int:
        return self.config.priority

    @property
    def ttls(self) -> TTLPolicy:
        return self.config.ttls

    @property
    def cache(self) -> LRUCache:
        if self._cache is None:
            self._cache = get_shared_cache()
        return self._cache

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, priority={self.priority})"

    # ---- capability interface ----

    def is_available(self) -> bool:
        """Credentials present and the upstream has not reported an exhausted quota."""
        if not self._api_key:
            return False
        return not self._rate_limit.exhausted

    @abstractmethod
    async def get_wallet_info(
        self,
        address: str,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
    ) -> WalletInfo:
        ...

    @abstractmethod
    async def get_tokens_created(
        self,
        address: str,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
        manual_tokens: Optional[List[str]] = None,
    ) -> List[TokenSummary]:
        ...

    def get_rate_limit(self) -> RateLimitInfo:
        return self._rate_limit

    async def ping(self) -> None:
        """Cheap upstream call used by health checks. Raise on failure."""
        return None

    async def get_health_status(self) -> ProviderHealth:
        available = self.is_available()
        if not available:
            return ProviderHealth(
                name=self.name,
                healthy=False,
                available=False,
                last_error=self.last_error or "Provider not configured or quota exhausted",
                rate_limit=self._rate_limit,
            )

        start = time.perf_counter()
        try:
            await self.ping()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.last_error = str(e)
            logger.warning("Health check failed for %s: %s", self.name, e)
            return ProviderHealth(
                name=self.name,
                healthy=False,
                available=True,
                latency_ms=int((time.perf_counter() - start) * 1000),
                last_error=self.last_error,
                rate_limit=self._rate_limit,
            )

        return ProviderHealth(
            name=self.name,
            healthy=True,
            available=True,
            latency_ms=int((time.perf_counter() - start) * 1000),
            last_error=None,
            rate_limit=self._rate_limit,
        )

    # ---- helpers ----

    def validate_address(self, address: str) -> str:
        """Normalize ``address`` and check it belongs to this provider's chain."""
        result = detect_blockchain(address)
        if not result.valid:
            raise ValidationError(message=result.error, field="address")
        if result.blockchain != self.chain:
            raise ValidationError(
                message=f"{self.name} does not support {result.blockchain.value} addresses",
                field="address",
            )
        return result.normalized_address

    # ---- session management ----

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=50,
                    limit_per_host=10,
                    ttl_dns_cache=300,
                )
                timeout = aiohttp.ClientTimeout(total=self.config.timeout)
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    timeout=timeout,
                    headers={
                        "Accept": "application/json",
                        "User-Agent": USER_AGENT,
                    },
                )
                self._owns_session = True
            return self._session

    async def close(self) -> None:
        """Close the HTTP session if this provider created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "BaseProvider":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ---- HTTP ----

    def _validate_payload(self, data: Any) -> Any:
        """Hook for upstream-specific logical error detection. Returns the payload to cache."""
        return data

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Any] = None,
    ) -> Any:
        """One HTTP exchange, mapped onto the error taxonomy."""
        session = await self._ensure_session()
        try:
            async with session.request(method, url, params=params, json=json_data) as response:
                self._rate_limit.update_from_headers(response.headers)

                if response.status == 429:
                    retry_after = parse_retry_after(response.headers.get("Retry-After"))
                    raise RateLimitError(
                        message=f"{self.name} rate limit exceeded (429)",
                        retry_after=retry_after,
                        limit=self._rate_limit.limit,
                        remaining=self._rate_limit.remaining,
                        reset_time=self._rate_limit.reset_time,
                        context={"provider": self.name},
                    )

                try:
                    data = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    data = None

                if response.status >= 400:
                    detail = ""
                    if isinstance(data, dict):
                        detail = str(data.get("error") or data.get("message") or "")
                    raise APIError(
                        message=f"HTTP {response.status}{': ' + detail if detail else ''}",
                        provider=self.name,
                        api_status_code=response.status,
                    )

                if data is None:
                    raise APIError(
                        message="Invalid JSON response",
                        provider=self.name,
                        api_status_code=response.status,
                    )
                return self._validate_payload(data)

        except asyncio.TimeoutError as e:
            raise NetworkError(
                message=f"Request to {self.name} timed out after {self.config.timeout}s",
                provider=self.name,
            ) from e
        except aiohttp.ClientError as e:
            raise create_network_error(f"Connection error: {e}", provider=self.name, original=e) from e

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Any] = None,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
        cache_ttl: Optional[float] = None,
        cacheable: bool = True,
        label: str = "request",
    ) -> Any:
        """
        Spaced, retried, cached request.

        Raises NetworkError, RateLimitError or APIError once retries are
        exhausted. The cache is bypassed for reads when ``force_refresh``
        is set, but fresh responses are still stored.
        """
        key = make_request_key(f"{method} {url}", {"params": params, "json": json_data})

        if cacheable and not force_refresh:
            cached = await self.cache.get(key)
            if cached is not None:
                if ctx:
                    ctx.record_cache(True)
                return cached
            if ctx:
                ctx.record_cache(False)

        async def attempt() -> Any:
            await self._spacer.wait()
            if ctx:
                ctx.record_api_call(self.name)
            return await self._send(method, url, params, json_data)

        async def throttled() -> Any:
            return await with_rate_limit_handling(
                attempt,
                delay_ms=self.config.rate_limit_delay_ms,
                max_retries=self.config.max_rate_limit_retries,
            )

        def on_retry(attempt_no: int, error: BaseException, delay_ms: int) -> None:
            if ctx:
                ctx.record_retry()
                ctx.logger.debug("%s %s retry %d in %dms: %s", self.name, label, attempt_no, delay_ms, error)

        result = await retry_with_backoff(
            throttled,
            config=self.config.retry,
            on_retry=on_retry,
            should_retry=self._should_retry,
            metric=f"{self.name}:{label}",
        )

        if not result.success:
            self.last_error = str(result.error)
            raise result.error

        self.last_success = datetime.now(timezone.utc)
        if cacheable:
            await self.cache.set(key, result.data, cache_ttl if cache_ttl is not None else self.ttls.request)
        return result.data

    async def _memoize(
        self,
        key: str,
        ttl: float,
        compute: Callable[[], Awaitable[Any]],
        force_refresh: bool = False,
    ) -> Any:
        """Cache a derived metric under ``key``. None results are not stored."""
        if not force_refresh:
            cached = await self.cache.get(key)
            if cached is not None:
                return cached
        value = await compute()
        if value is not None:
            await self.cache.set(key, value, ttl)
        return value

    def _should_retry(self, error: BaseException) -> bool:
        # Throttling already had its own loop in with_rate_limit_handling.
        if isinstance(error, RateLimitError):
            return False
        if isinstance(error, NetworkError):
            return True
        return is_retryable_error(error, self.config.retry.retryable_errors)


__all__ = [
    "ProviderConfig",
    "ProviderHealth",
    "BaseProvider",
]
