"""
Request-scoped context.

One RequestContext is created per wallet analysis and passed explicitly to
the provider manager and providers. It owns the request id, the per-request
metrics and a logger adapter that tags every line with the request id, so
concurrent analyses never share mutable counters.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, MutableMapping, Optional, Set, Tuple

from .exceptions import generate_request_id

logger = logging.getLogger(__name__)


@dataclass
class PerformanceMetrics:
    api_call_count: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    retries: int = 0
    provider_calls: Dict[str, int] = field(default_factory=dict)
    provider_failures: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "api_call_count": self.api_call_count,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "retries": self.retries,
            "provider_calls": dict(self.provider_calls),
            "provider_failures": dict(self.provider_failures),
        }


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Prefixes messages with ``[request_id]``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = kwargs.setdefault("extra", {})
        extra.setdefault("request_id", self.extra["request_id"])
        return f"[{self.extra['request_id']}] {msg}", kwargs


class RequestContext:
    def __init__(
        self,
        request_id: Optional[str] = None,
        wallet: Optional[str] = None,
        chain: Optional[str] = None,
        base_logger: Optional[logging.Logger] = None,
    ):
        self.request_id = request_id or generate_request_id()
        self.wallet = wallet
        self.chain = chain
        self.metrics = PerformanceMetrics()
        self.providers_used: Set[str] = set()
        self._started = time.perf_counter()
        self.logger = RequestLoggerAdapter(
            base_logger or logging.getLogger("wallet_reputation.request"),
            {"request_id": self.request_id},
        )

    @property
    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._started) * 1000)

    def record_api_call(self, provider: str) -> None:
        self.metrics.api_call_count += 1
        self.metrics.provider_calls[provider] = self.metrics.provider_calls.get(provider, 0) + 1

    def record_cache(self, hit: bool) -> None:
        if hit:
            self.metrics.cache_hits += 1
        else:
            self.metrics.cache_misses += 1

    def record_retry(self) -> None:
        self.metrics.retries += 1

    def record_provider_failure(self, provider: str) -> None:
        self.metrics.provider_failures[provider] = self.metrics.provider_failures.get(provider, 0) + 1

    def record_provider_used(self, provider: str) -> None:
        if provider:
            self.providers_used.add(provider)

    def sorted_providers_used(self) -> List[str]:
        return sorted(self.providers_used)

    def summary(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "wallet": self.wallet,
            "chain": self.chain,
            "elapsed_ms": self.elapsed_ms,
            "providers_used": self.sorted_providers_used(),
            "metrics": self.metrics.to_dict(),
        }


__all__ = ["PerformanceMetrics", "RequestLoggerAdapter", "RequestContext"]
