"""
Provider Manager.

Holds the provider adapters of each chain in priority order and serves
wallet info and token lists with sequential failover:

    for provider in priority order:
        skip if not provider.is_available()
        try the call (bounded by fallback_timeout)
        first success wins, provider name is recorded
    all failed / none registered -> safe defaults

Provider failures never escape the manager. Only malformed input raises.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, TypeVar, Union

from .cache import LRUCache, get_shared_cache
from .config import Settings, get_settings, secret_value
from .context import RequestContext
from .evm_providers import AlchemyProvider, EtherscanProvider
from .exceptions import ValidationError
from .models import TokenSummary, WalletInfo
from .providers import BaseProvider, ProviderHealth
from .solana_providers import HeliusProvider
from .validators import BlockchainType, detect_blockchain

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_FALLBACK_TIMEOUT = 300.0
DEFAULT_HEALTH_CHECK_INTERVAL = 60.0


class ProviderManager:
    """Priority-ordered failover over registered providers, per chain."""

    def __init__(
        self,
        providers: Optional[List[BaseProvider]] = None,
        fallback_timeout: Optional[float] = DEFAULT_FALLBACK_TIMEOUT,
        health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL,
    ):
        # Buckets hold (provider, registration sequence) in failover order.
        self._providers: Dict[BlockchainType, List[Tuple[BaseProvider, int]]] = {}
        self._registration_order = 0
        self.fallback_timeout = fallback_timeout
        self.health_check_interval = health_check_interval
        self._providers_used: Set[str] = set()
        self._health: Dict[str, ProviderHealth] = {}
        self._health_task: Optional[asyncio.Task] = None
        self._running = False

        for provider in providers or []:
            self.register_provider(provider)

    # ---- registry ----

    def register_provider(self, provider: BaseProvider) -> None:
        """Add a provider; ties in priority keep registration order."""
        chain = BlockchainType(provider.chain)
        bucket = self._providers.setdefault(chain, [])
        bucket.append((provider, self._registration_order))
        self._registration_order += 1
        bucket.sort(key=lambda entry: (entry[0].priority, entry[1]))
        logger.info("Registered provider %s for %s (priority %d)", provider.name, chain.value, provider.priority)

    def unregister_provider(self, name: str, chain: Optional[Union[str, BlockchainType]] = None) -> bool:
        removed = False
        chains = [BlockchainType(chain)] if chain else list(self._providers)
        for key in chains:
            bucket = self._providers.get(key, [])
            kept = [entry for entry in bucket if entry[0].name != name]
            if len(kept) != len(bucket):
                removed = True
                self._providers[key] = kept
        return removed

    def get_providers(self, chain: Union[str, BlockchainType]) -> List[BaseProvider]:
        return [provider for provider, _ in self._providers.get(BlockchainType(chain), [])]

    def get_available_providers(self, chain: Union[str, BlockchainType]) -> List[BaseProvider]:
        return [p for p in self.get_providers(chain) if p.is_available()]

    def all_providers(self) -> List[BaseProvider]:
        return [provider for bucket in self._providers.values() for provider, _ in bucket]

    @property
    def providers_used(self) -> List[str]:
        """Distinct providers that served at least one request, sorted."""
        return sorted(self._providers_used)

    # ---- failover ----

    def _resolve_chain(self, address: str, chain: Optional[Union[str, BlockchainType]]) -> BlockchainType:
        if chain is not None:
            return BlockchainType(chain)
        detected = detect_blockchain(address)
        if not detected.valid:
            raise ValidationError(message=detected.error, field="address")
        return detected.blockchain

    async def _with_failover(
        self,
        chain: BlockchainType,
        operation: str,
        call: Callable[[BaseProvider], Awaitable[T]],
        default: Callable[[], T],
        ctx: Optional[RequestContext],
    ) -> T:
        log = ctx.logger if ctx else logger
        providers = self.get_providers(chain)
        if not providers:
            log.warning("No providers registered for %s, using defaults for %s", chain.value, operation)
            return default()

        for provider in providers:
            if not provider.is_available():
                log.debug("Skipping unavailable provider %s for %s", provider.name, operation)
                continue
            try:
                if self.fallback_timeout:
                    result = await asyncio.wait_for(call(provider), timeout=self.fallback_timeout)
                else:
                    result = await call(provider)
            except ValidationError:
                raise
            except asyncio.CancelledError:
                raise
            except asyncio.TimeoutError:
                log.warning("%s timed out on %s after %ss, trying next provider",
                            provider.name, operation, self.fallback_timeout)
                if ctx:
                    ctx.record_provider_failure(provider.name)
                continue
            except Exception as e:
                log.warning("%s failed on %s: %s, trying next provider", provider.name, operation, e)
                if ctx:
                    ctx.record_provider_failure(provider.name)
                continue

            self._providers_used.add(provider.name)
            if ctx:
                ctx.record_provider_used(provider.name)
            return result

        log.warning("All %s providers failed for %s, using defaults", chain.value, operation)
        return default()

    async def get_wallet_info(
        self,
        address: str,
        chain: Optional[Union[str, BlockchainType]] = None,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
    ) -> WalletInfo:
        resolved = self._resolve_chain(address, chain)
        return await self._with_failover(
            resolved,
            "get_wallet_info",
            lambda p: p.get_wallet_info(address, ctx=ctx, force_refresh=force_refresh),
            WalletInfo.empty,
            ctx,
        )

    async def get_tokens_created(
        self,
        address: str,
        chain: Optional[Union[str, BlockchainType]] = None,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
        manual_tokens: Optional[List[str]] = None,
    ) -> List[TokenSummary]:
        resolved = self._resolve_chain(address, chain)
        return await self._with_failover(
            resolved,
            "get_tokens_created",
            lambda p: p.get_tokens_created(
                address, ctx=ctx, force_refresh=force_refresh, manual_tokens=manual_tokens
            ),
            list,
            ctx,
        )

    # ---- health ----

    async def check_health(self) -> Dict[str, ProviderHealth]:
        providers = self.all_providers()
        results = await asyncio.gather(
            *(p.get_health_status() for p in providers), return_exceptions=True
        )
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                result = ProviderHealth(
                    name=provider.name,
                    healthy=False,
                    available=provider.is_available(),
                    last_error=str(result),
                )
            self._health[provider.name] = result
        return dict(self._health)

    def get_provider_statuses(self) -> List[Dict[str, Any]]:
        """Last known status per provider, in chain and priority order."""
        statuses = []
        for chain, bucket in self._providers.items():
            for provider, _ in bucket:
                health = self._health.get(provider.name)
                status = health.to_dict() if health else {
                    "name": provider.name,
                    "healthy": None,
                    "available": provider.is_available(),
                    "last_check": None,
                    "latency_ms": None,
                    "last_error": provider.last_error,
                    "rate_limit": provider.get_rate_limit().to_dict(),
                }
                status["chain"] = chain.value
                status["priority"] = provider.priority
                statuses.append(status)
        return statuses

    async def start_health_checks(self) -> None:
        if self._running:
            logger.warning("Health checks already running")
            return
        self._running = True
        self._health_task = asyncio.create_task(self._health_loop())
        logger.info("Provider health checks started (every %ss)", self.health_check_interval)

    async def stop_health_checks(self) -> None:
        self._running = False
        if self._health_task:
            self._health_task.cancel()
            try:
                await self._health_task
            except asyncio.CancelledError:
                pass
            self._health_task = None

    async def _health_loop(self) -> None:
        while self._running:
            try:
                await self.check_health()
                await asyncio.sleep(self.health_check_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Health check loop error: %s", e)
                await asyncio.sleep(self.health_check_interval)

    async def shutdown(self) -> None:
        """Stop health checks and close every provider session."""
        await self.stop_health_checks()
        results = await asyncio.gather(
            *(p.close() for p in self.all_providers()), return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Error closing provider: %s", result)
        logger.info("Provider manager shut down")

    async def __aenter__(self) -> "ProviderManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()


# =============================================================================
# FACTORY
# =============================================================================

def create_provider_manager(
    settings: Optional[Settings] = None,
    cache: Optional[LRUCache] = None,
) -> ProviderManager:
    """Build a manager with an adapter for every configured API key."""
    settings = settings or get_settings()
    cfg = settings.providers
    retry = settings.retry.to_retry_config()
    ttls = settings.cache.to_ttl_policy()
    cache = cache if cache is not None else get_shared_cache(settings.cache.max_entries)

    manager = ProviderManager(
        fallback_timeout=cfg.fallback_timeout,
        health_check_interval=cfg.health_check_interval,
    )

    etherscan_key = secret_value(cfg.etherscan_api_key)
    if etherscan_key:
        manager.register_provider(EtherscanProvider(
            api_key=etherscan_key,
            base_url=cfg.etherscan_base_url,
            chain_id=cfg.etherscan_chain_id,
            min_interval_ms=cfg.etherscan_min_interval_ms,
            timeout=cfg.request_timeout,
            retry=retry,
            max_receipt_lookups=cfg.max_receipt_lookups,
            max_enhanced_tokens=cfg.max_enhanced_tokens,
            batch_concurrency=settings.retry.batch_concurrency,
            batch_delay_ms=settings.retry.batch_delay_ms,
            eth_price_usd=cfg.eth_price_usd,
            ttls=ttls,
            cache=cache,
        ))

    alchemy_key = secret_value(cfg.alchemy_api_key)
    if alchemy_key:
        manager.register_provider(AlchemyProvider(
            api_key=alchemy_key,
            base_url=cfg.alchemy_base_url,
            min_interval_ms=cfg.alchemy_min_interval_ms,
            timeout=cfg.request_timeout,
            retry=retry,
            max_receipt_lookups=cfg.max_receipt_lookups,
            ttls=ttls,
            cache=cache,
        ))

    helius_key = secret_value(cfg.helius_api_key)
    if helius_key:
        manager.register_provider(HeliusProvider(
            api_key=helius_key,
            base_url=cfg.helius_base_url,
            rpc_url=cfg.helius_rpc_url,
            min_interval_ms=cfg.helius_min_interval_ms,
            timeout=cfg.request_timeout,
            retry=retry,
            max_signature_pages=cfg.max_signature_pages,
            ttls=ttls,
            cache=cache,
        ))

    for provider in manager.all_providers():
        provider.config.rate_limit_delay_ms = settings.retry.rate_limit_delay_ms
        provider.config.max_rate_limit_retries = settings.retry.max_rate_limit_retries

    if not manager.all_providers():
        logger.warning("No provider API keys configured, analyses will use default data")
    return manager


__all__ = ["ProviderManager", "create_provider_manager"]
