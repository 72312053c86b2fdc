# tests/conftest.py
"""
Shared fixtures: fixed clock, sample wallets and tokens, fake providers.
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from wallet_reputation.cache import LRUCache, reset_shared_cache
from wallet_reputation.context import RequestContext
from wallet_reputation.models import TokenSummary, WalletInfo
from wallet_reputation.providers import BaseProvider, ProviderConfig
from wallet_reputation.retry import RetryConfig
from wallet_reputation.validators import BlockchainType

ETH_WALLET = "0x" + "ab" * 20
ETH_WALLET_MIXED = "0x" + "aB" * 20
ETH_TOKEN_A = "0x" + "11" * 20
ETH_TOKEN_B = "0x" + "22" * 20
SOL_WALLET = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
SOL_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

# No backoff sleeps in tests.
FAST_RETRY = RetryConfig(max_attempts=3, initial_delay_ms=0, max_delay_ms=0, jitter_factor=0.0)
NO_RETRY = RetryConfig(max_attempts=1, initial_delay_ms=0, max_delay_ms=0, jitter_factor=0.0)


class FakeProvider(BaseProvider):
    """In-memory provider; raises ``error`` when set."""

    def __init__(
        self,
        name: str,
        priority: int = 1,
        chain: BlockchainType = BlockchainType.ETHEREUM,
        wallet_info: Optional[WalletInfo] = None,
        tokens: Optional[List[TokenSummary]] = None,
        error: Optional[Exception] = None,
        available: bool = True,
    ):
        super().__init__(ProviderConfig(name=name, priority=priority), api_key="test-key")
        self.chain = chain
        self.wallet_info = wallet_info or WalletInfo(tx_count=1)
        self.tokens = tokens or []
        self.error = error
        self.available = available
        self.calls: List[str] = []
        self.closed = False

    def is_available(self) -> bool:
        return self.available

    async def get_wallet_info(self, address, ctx=None, force_refresh=False):
        self.calls.append("get_wallet_info")
        if self.error:
            raise self.error
        return self.wallet_info

    async def get_tokens_created(self, address, ctx=None, force_refresh=False, manual_tokens=None):
        self.calls.append("get_tokens_created")
        if self.error:
            raise self.error
        return list(self.tokens)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _fresh_shared_cache():
    """Each test gets its own process-wide cache."""
    reset_shared_cache()
    yield
    reset_shared_cache()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def cache():
    return LRUCache(max_size=100, default_ttl=300)


@pytest.fixture
def ctx():
    return RequestContext(request_id="req_test")


@pytest.fixture
def old_wallet():
    """Two-year-old wallet with a long history."""
    return WalletInfo(
        created_at=FIXED_NOW - timedelta(days=730),
        first_tx_hash="0xfirst",
        tx_count=1500,
    )


@pytest.fixture
def fresh_wallet():
    return WalletInfo(created_at=FIXED_NOW - timedelta(days=3), tx_count=4)


@pytest.fixture
def successful_token():
    return TokenSummary(
        token=ETH_TOKEN_A,
        name="Good",
        initial_liquidity=80_000,
        holders_after_7_days=450,
        liquidity_locked=True,
        dev_sell_ratio=0.05,
    )


@pytest.fixture
def rugged_token():
    return TokenSummary(
        token=ETH_TOKEN_B,
        name="Rug",
        initial_liquidity=0,
        holders_after_7_days=3,
        liquidity_locked=False,
        dev_sell_ratio=0.9,
    )


@pytest.fixture
def fake_provider_factory():
    return FakeProvider
