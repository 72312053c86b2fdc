# tests/test_providers.py
"""
Unit tests for provider adapters.

HTTP is served by an in-memory fake session; nothing touches the network.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import aiohttp
import pytest

from wallet_reputation.cache import LRUCache, TTLPolicy
from wallet_reputation.context import RequestContext
from wallet_reputation.dex import (
    BALANCE_OF_SELECTOR,
    DEX_CONFIGS,
    GET_PAIR_SELECTOR,
    GET_RESERVES_SELECTOR,
    KNOWN_LOCK_CONTRACTS,
    encode_address,
    encode_uint,
)
from wallet_reputation.evm_providers import AlchemyProvider, EtherscanProvider
from wallet_reputation.exceptions import APIError, NetworkError, RateLimitError, ValidationError
from wallet_reputation.models import Outcome
from wallet_reputation.outcome import determine_outcome
from wallet_reputation.solana_providers import (
    WRAPPED_SOL_MINT,
    HeliusProvider,
    created_mint,
    is_token_creation,
)
from tests.conftest import ETH_WALLET, FAST_RETRY, NO_RETRY, SOL_MINT, SOL_WALLET

ZERO = "0x" + "00" * 20
TOKEN_C1 = "0x" + "c1" * 20
TOKEN_C2 = "0x" + "c2" * 20
POOL = "0x" + "90" * 20
ALICE = "0x" + "a1" * 20
OTHER = "0x" + "0f" * 20
TEAM = "0x" + "7e" * 20
PAIR = "0x" + "9a" * 20
UNISWAP_V2 = DEX_CONFIGS[0]
ROUTER = UNISWAP_V2.router
ZERO_WORD = "0x" + "0" * 64
LAUNCH = 1_600_000_000
DAY = 86400

Handler = Callable[[str, str, Optional[dict], Optional[Any]], Tuple[int, Any, Dict[str, str]]]


class FakeResponse:
    def __init__(self, status: int, body: Any, headers: Optional[Dict[str, str]] = None):
        self.status = status
        self._body = body
        self.headers = headers or {}

    async def json(self, content_type=None):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class _RequestContextManager:
    def __init__(self, session: "FakeSession", method, url, params, json):
        self._session = session
        self._args = (method, url, params, json)

    async def __aenter__(self):
        self._session.requests.append(self._args)
        result = self._session.handler(*self._args)
        if isinstance(result, BaseException):
            raise result
        status, body, headers = result
        return FakeResponse(status, body, headers)

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession."""

    def __init__(self, handler: Handler):
        self.handler = handler
        self.requests: List[tuple] = []
        self.closed = False

    def request(self, method, url, params=None, json=None):
        return _RequestContextManager(self, method, url, params, json)

    async def close(self):
        self.closed = True


def ok(body: Any) -> Tuple[int, Any, Dict[str, str]]:
    return 200, body, {}


def etherscan(handler: Handler, **kwargs) -> Tuple[EtherscanProvider, FakeSession]:
    session = FakeSession(handler)
    provider = EtherscanProvider(
        api_key="key",
        min_interval_ms=0,
        retry=kwargs.pop("retry", FAST_RETRY),
        batch_delay_ms=0,
        cache=kwargs.pop("cache") if "cache" in kwargs else LRUCache(max_size=100),
        session=session,
        **kwargs,
    )
    provider.config.rate_limit_delay_ms = 0
    provider.config.max_rate_limit_retries = 1
    return provider, session


# =============================================================================
# BASE PROVIDER BEHAVIOR
# =============================================================================

class TestBaseProvider:
    """Test cases for shared provider machinery"""

    def test_unavailable_without_key(self):
        """Missing credentials make the provider unavailable"""
        assert not EtherscanProvider(api_key=None).is_available()
        assert EtherscanProvider(api_key="k").is_available()

    def test_unavailable_when_quota_exhausted(self):
        """Exhausted upstream quota disables the provider until reset"""
        provider = EtherscanProvider(api_key="k")
        provider.get_rate_limit().update_from_headers({"x-ratelimit-remaining": "0", "x-ratelimit-reset": "60"})
        assert not provider.is_available()

    def test_chain_mismatch(self):
        """A Solana address is rejected by an Ethereum provider"""
        with pytest.raises(ValidationError):
            EtherscanProvider(api_key="k").validate_address(SOL_WALLET)

    @pytest.mark.asyncio
    async def test_responses_are_cached(self):
        """Second identical call is served from cache"""
        provider, session = etherscan(lambda *a: ok({"status": "1", "result": []}))
        ctx = RequestContext()
        await provider.get_wallet_info(ETH_WALLET, ctx=ctx)
        await provider.get_wallet_info(ETH_WALLET, ctx=ctx)
        assert len(session.requests) == 1
        assert ctx.metrics.api_call_count == 1
        assert ctx.metrics.cache_hits == 1
        assert ctx.metrics.provider_calls == {"etherscan": 1}

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(self):
        """force_refresh always hits the upstream"""
        provider, session = etherscan(lambda *a: ok({"status": "1", "result": []}))
        await provider.get_wallet_info(ETH_WALLET)
        await provider.get_wallet_info(ETH_WALLET, force_refresh=True)
        assert len(session.requests) == 2

    @pytest.mark.asyncio
    async def test_http_error_maps_to_api_error(self):
        """4xx/5xx responses become APIError with the status"""
        provider, session = etherscan(lambda *a: (500, {"message": "boom"}, {}))
        with pytest.raises(APIError) as exc_info:
            await provider.get_wallet_info(ETH_WALLET)
        assert exc_info.value.api_status_code == 500
        assert exc_info.value.message.startswith("etherscan: ")
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_gateway_errors_are_retried(self):
        """Retryable statuses use the backoff loop"""
        provider, session = etherscan(lambda *a: (503, None, {}))
        with pytest.raises(APIError):
            await provider.get_wallet_info(ETH_WALLET)
        assert len(session.requests) == FAST_RETRY.max_attempts

    @pytest.mark.asyncio
    async def test_http_429_raises_rate_limit(self):
        """Throttling surfaces as RateLimitError after its own loop"""
        provider, session = etherscan(lambda *a: (429, None, {"Retry-After": "2"}))
        with pytest.raises(RateLimitError):
            await provider.get_wallet_info(ETH_WALLET)
        # one call plus one throttled retry, no backoff retries on top
        assert len(session.requests) == 2

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Unparseable bodies are an APIError"""
        provider, _ = etherscan(lambda *a: ok(ValueError("not json")), retry=NO_RETRY)
        with pytest.raises(APIError):
            await provider.get_wallet_info(ETH_WALLET)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """Transport failures become NetworkError with the provider name"""
        provider, session = etherscan(lambda *a: aiohttp.ClientConnectionError("refused"))
        with pytest.raises(NetworkError) as exc_info:
            await provider.get_wallet_info(ETH_WALLET)
        assert exc_info.value.provider == "etherscan"
        assert len(session.requests) == FAST_RETRY.max_attempts

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Timeouts become NetworkError"""
        provider, _ = etherscan(lambda *a: asyncio.TimeoutError(), retry=NO_RETRY)
        with pytest.raises(NetworkError):
            await provider.get_wallet_info(ETH_WALLET)

    @pytest.mark.asyncio
    async def test_health_status(self):
        """Ping failures are reported, not raised"""
        provider, _ = etherscan(lambda *a: (500, None, {}), retry=NO_RETRY)
        health = await provider.get_health_status()
        assert health.available is True
        assert health.healthy is False
        assert "500" in health.last_error

        provider, _ = etherscan(lambda *a: ok({"jsonrpc": "2.0", "result": "0x10"}))
        assert (await provider.get_health_status()).healthy is True

    @pytest.mark.asyncio
    async def test_close_keeps_external_session(self):
        """Sessions passed in are not closed by the provider"""
        provider, session = etherscan(lambda *a: ok({}))
        await provider.close()
        assert session.closed is False


# =============================================================================
# ETHERSCAN
# =============================================================================

def etherscan_routes(params: dict) -> Any:
    action = params.get("action")
    if action == "txlist":
        return {"status": "1", "message": "OK", "result": [
            {"hash": "0xdeploy1", "timeStamp": str(LAUNCH), "to": "", "input": "0x6080",
             "contractAddress": TOKEN_C1},
            {"hash": "0xplain", "timeStamp": str(LAUNCH + 10), "to": POOL, "input": "0x",
             "contractAddress": ""},
            {"hash": "0xdeploy2", "timeStamp": str(LAUNCH + 20), "to": "", "input": "0x6080",
             "contractAddress": ""},
        ]}
    if action == "eth_getTransactionReceipt":
        return {"jsonrpc": "2.0", "id": 1, "result": {"contractAddress": TOKEN_C2.upper().replace("0X", "0x")}}
    if action == "tokentx" and "address" in params:
        # The wallet bought OTHER; buying is not creating.
        return {"status": "1", "result": [
            {"contractAddress": TOKEN_C1, "tokenName": "One", "tokenSymbol": "ONE"},
            {"contractAddress": OTHER, "tokenName": "Other", "tokenSymbol": "OTH"},
        ]}
    if action == "tokentx" and params.get("contractaddress") == TOKEN_C1:
        return {"status": "1", "result": [
            {"from": ZERO, "to": ETH_WALLET, "value": "1000", "timeStamp": str(LAUNCH)},
            {"from": ETH_WALLET, "to": ROUTER, "value": "300", "timeStamp": str(LAUNCH + 100)},
            {"from": ETH_WALLET, "to": TEAM, "value": "300", "timeStamp": str(LAUNCH + 150)},
            {"from": ROUTER, "to": ALICE, "value": "100", "timeStamp": str(LAUNCH + 200)},
            {"from": TEAM, "to": OTHER, "value": "100", "timeStamp": str(LAUNCH + 8 * DAY)},
        ]}
    if action == "tokentx":
        return {"status": "0", "message": "No transactions found", "result": []}
    if action == "eth_call":
        # No pools on any factory.
        return {"jsonrpc": "2.0", "id": 1, "result": ZERO_WORD}
    if action == "getcontractcreation":
        token = params["contractaddresses"]
        creator = ETH_WALLET if token == TOKEN_C1 else OTHER
        return {"status": "1", "result": [
            {"contractAddress": token, "contractCreator": creator, "txHash": "0x1", "timestamp": str(LAUNCH)},
        ]}
    raise AssertionError(f"unexpected call {params}")


def etherscan_handler(method, url, params, json_data):
    return ok(etherscan_routes(params))


class TestEtherscanProvider:
    """Test cases for EtherscanProvider"""

    @pytest.mark.asyncio
    async def test_wallet_info(self):
        """First transaction gives creation time and hash"""
        provider, session = etherscan(etherscan_handler)
        info = await provider.get_wallet_info(ETH_WALLET.upper().replace("0X", "0x"))
        assert info.tx_count == 3
        assert info.first_tx_hash == "0xdeploy1"
        assert info.created_at == datetime.fromtimestamp(LAUNCH, tz=timezone.utc)
        assert info.age
        assert session.requests[0][2]["address"] == ETH_WALLET
        assert session.requests[0][2]["apikey"] == "key"

    @pytest.mark.asyncio
    async def test_no_transactions_is_empty(self):
        """'No transactions found' is a valid empty result"""
        provider, _ = etherscan(lambda *a: ok({"status": "0", "message": "No transactions found", "result": []}))
        info = await provider.get_wallet_info(ETH_WALLET)
        assert info.tx_count == 0
        assert info.created_at is None

    @pytest.mark.asyncio
    async def test_rate_limit_message(self):
        """Etherscan's in-body throttle message is a rate limit"""
        provider, _ = etherscan(lambda *a: ok({"status": "0", "message": "NOTOK",
                                               "result": "Max rate limit reached"}))
        with pytest.raises(RateLimitError):
            await provider.get_wallet_info(ETH_WALLET)

    @pytest.mark.asyncio
    async def test_logical_error(self):
        """Other NOTOK results are API errors"""
        provider, _ = etherscan(lambda *a: ok({"status": "0", "message": "NOTOK", "result": "Invalid API Key"}),
                                retry=NO_RETRY)
        with pytest.raises(APIError) as exc_info:
            await provider.get_wallet_info(ETH_WALLET)
        assert "Invalid API Key" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_discovers_created_contracts_only(self):
        """Deployments are tokens; bought tokens are not"""
        provider, _ = etherscan(etherscan_handler)
        tokens = await provider.get_tokens_created(ETH_WALLET)
        by_address = {t.token: t for t in tokens}
        assert set(by_address) == {TOKEN_C1, TOKEN_C2}
        assert by_address[TOKEN_C1].name == "One"
        assert by_address[TOKEN_C1].creator == ETH_WALLET
        assert by_address[TOKEN_C2].launch_at == datetime.fromtimestamp(LAUNCH + 20, tz=timezone.utc)

    @pytest.mark.asyncio
    async def test_enrichment_metrics(self):
        """Dev sell ratio and 7-day holders from transfer history"""
        provider, _ = etherscan(etherscan_handler)
        tokens = {t.token: t for t in await provider.get_tokens_created(ETH_WALLET)}
        one = tokens[TOKEN_C1]
        # only the router transfer is a sale
        assert one.dev_sell_ratio == pytest.approx(0.3)
        # wallet 400, router 200, team 300, alice 100; OTHER arrives after day 7
        assert one.holders_after_7_days == 4
        assert one.initial_liquidity is None
        assert one.liquidity_locked is None
        # no transfers means metrics stay unknown
        assert tokens[TOKEN_C2].dev_sell_ratio is None

    @pytest.mark.asyncio
    async def test_transfer_to_team_wallet_is_not_a_sale(self):
        """Moving supply to a non-router wallet does not make the token a rug"""
        def handler(method, url, params, json_data):
            if params.get("action") == "tokentx" and params.get("contractaddress") == TOKEN_C1:
                return ok({"status": "1", "result": [
                    {"from": ZERO, "to": ETH_WALLET, "value": "1000", "timeStamp": str(LAUNCH)},
                    {"from": ETH_WALLET, "to": TEAM, "value": "600", "timeStamp": str(LAUNCH + 100)},
                ]})
            return ok(etherscan_routes(params))

        provider, _ = etherscan(handler)
        tokens = {t.token: t for t in await provider.get_tokens_created(ETH_WALLET)}
        one = tokens[TOKEN_C1]
        assert one.dev_sell_ratio == 0.0
        assert determine_outcome(one).outcome != Outcome.RUG

    @pytest.mark.asyncio
    async def test_initial_liquidity_and_lock(self):
        """WETH reserves at pair creation priced in USD; LP held by a known locker"""
        unicrypt = KNOWN_LOCK_CONTRACTS[1].address

        def handler(method, url, params, json_data):
            action = params.get("action")
            if action == "eth_call":
                to, data = params["to"], params["data"]
                if to == UNISWAP_V2.factory and data.startswith(GET_PAIR_SELECTOR) and encode_address(TOKEN_C1) in data:
                    return ok({"jsonrpc": "2.0", "id": 1, "result": "0x" + encode_address(PAIR)})
                if to == PAIR and data == GET_RESERVES_SELECTOR:
                    assert params["tag"] == hex(101)
                    # WETH sorts below TOKEN_C1, so it is token0
                    return ok({"jsonrpc": "2.0", "id": 1,
                               "result": "0x" + encode_uint(5 * 10 ** 18) + encode_uint(123456)})
                if to == PAIR and data == BALANCE_OF_SELECTOR + encode_address(unicrypt):
                    return ok({"jsonrpc": "2.0", "id": 1, "result": "0x" + encode_uint(1)})
            if action == "getcontractcreation" and params["contractaddresses"] == PAIR:
                return ok({"status": "1", "result": [
                    {"contractAddress": PAIR, "contractCreator": UNISWAP_V2.factory,
                     "txHash": "0xpair", "blockNumber": "100"},
                ]})
            return ok(etherscan_routes(params))

        provider, session = etherscan(handler, eth_price_usd=2000.0)
        tokens = {t.token: t for t in await provider.get_tokens_created(ETH_WALLET)}
        one = tokens[TOKEN_C1]
        assert one.initial_liquidity == pytest.approx(10000.0)
        assert one.liquidity_locked is True
        # no pool for the second token keeps both values unknown
        assert tokens[TOKEN_C2].initial_liquidity is None
        assert tokens[TOKEN_C2].liquidity_locked is None
        assert any(r[2].get("tag") == hex(101) for r in session.requests)

    @pytest.mark.asyncio
    async def test_unlocked_pair(self):
        """A V2 pair whose LP tokens sit in no known locker is unlocked"""
        def handler(method, url, params, json_data):
            if params.get("action") == "eth_call" and params["to"] == UNISWAP_V2.factory \
                    and encode_address(TOKEN_C1) in params["data"]:
                return ok({"jsonrpc": "2.0", "id": 1, "result": "0x" + encode_address(PAIR)})
            if params.get("action") == "getcontractcreation" and params["contractaddresses"] == PAIR:
                return ok({"status": "1", "result": [{"contractAddress": PAIR, "blockNumber": "100"}]})
            return ok(etherscan_routes(params))

        provider, _ = etherscan(handler)
        tokens = {t.token: t for t in await provider.get_tokens_created(ETH_WALLET)}
        one = tokens[TOKEN_C1]
        assert one.liquidity_locked is False
        assert one.initial_liquidity == 0.0
        assert determine_outcome(one).outcome == Outcome.RUG

    @pytest.mark.asyncio
    async def test_cache_lifetimes_follow_policy(self):
        """Wallet info expires after the configured lifetime, not the default"""
        now = [1000.0]
        cache = LRUCache(max_size=100, default_ttl=300, clock=lambda: now[0])
        provider, session = etherscan(
            lambda *a: ok({"status": "1", "result": []}), ttls=TTLPolicy(wallet_info=5), cache=cache
        )
        await provider.get_wallet_info(ETH_WALLET)
        now[0] += 4
        await provider.get_wallet_info(ETH_WALLET)
        assert len(session.requests) == 1
        now[0] += 2
        await provider.get_wallet_info(ETH_WALLET)
        assert len(session.requests) == 2

    @pytest.mark.asyncio
    async def test_receipt_lookups_are_capped(self):
        """No receipt lookups beyond the cap"""
        provider, session = etherscan(etherscan_handler, max_receipt_lookups=0)
        tokens = await provider.get_tokens_created(ETH_WALLET)
        assert [t.token for t in tokens] == [TOKEN_C1]
        assert not any(r[2].get("action") == "eth_getTransactionReceipt" for r in session.requests)

    @pytest.mark.asyncio
    async def test_enrichment_is_capped(self):
        """Only the first max_enhanced_tokens tokens are enriched"""
        provider, session = etherscan(etherscan_handler, max_enhanced_tokens=0)
        tokens = await provider.get_tokens_created(ETH_WALLET)
        assert len(tokens) == 2
        assert not any(r[2].get("contractaddress") for r in session.requests)

    @pytest.mark.asyncio
    async def test_enrichment_failure_is_isolated(self):
        """A failed metric fetch leaves that token's metrics absent"""
        def handler(method, url, params, json_data):
            if params.get("contractaddress") == TOKEN_C1:
                return (404, None, {})
            return ok(etherscan_routes(params))

        provider, _ = etherscan(handler)
        tokens = {t.token: t for t in await provider.get_tokens_created(ETH_WALLET)}
        assert set(tokens) == {TOKEN_C1, TOKEN_C2}
        assert tokens[TOKEN_C1].dev_sell_ratio is None

    @pytest.mark.asyncio
    async def test_manual_tokens_are_verified(self):
        """Supplied tokens are checked against the contract creator"""
        provider, _ = etherscan(etherscan_handler)
        tokens = {t.token: t for t in await provider.get_tokens_created(
            ETH_WALLET, manual_tokens=[TOKEN_C1, TOKEN_C2]
        )}
        assert tokens[TOKEN_C1].verified is True
        assert tokens[TOKEN_C1].verification_warning is None
        assert tokens[TOKEN_C2].verified is False
        assert OTHER in tokens[TOKEN_C2].verification_warning

    @pytest.mark.asyncio
    async def test_manual_verification_failure_degrades(self):
        """Unverifiable tokens are kept with a warning"""
        def handler(method, url, params, json_data):
            if params.get("action") == "getcontractcreation":
                return (404, None, {})
            return ok(etherscan_routes(params))

        provider, _ = etherscan(handler)
        tokens = await provider.get_tokens_created(ETH_WALLET, manual_tokens=[TOKEN_C2])
        assert tokens[0].token == TOKEN_C2
        assert tokens[0].verified is None
        assert tokens[0].verification_warning == "Could not verify token creator"


# =============================================================================
# ALCHEMY
# =============================================================================

def alchemy_handler(method, url, params, body):
    assert url.endswith("/akey")
    rpc = body["method"]
    if rpc == "alchemy_getAssetTransfers":
        query = body["params"][0]
        if "toAddress" in query:
            return ok({"result": {"transfers": [
                {"hash": "0xin", "to": ETH_WALLET, "metadata": {"blockTimestamp": "2020-06-01T00:00:00.000Z"}},
            ]}})
        if query["category"] == ["external"]:
            return ok({"result": {"transfers": [
                {"hash": "0xdeploy", "to": None, "metadata": {"blockTimestamp": "2021-03-01T00:00:00.000Z"}},
                {"hash": "0xsend", "to": POOL, "metadata": {"blockTimestamp": "2021-03-02T00:00:00.000Z"}},
            ]}})
        return ok({"result": {"transfers": [
            {"hash": "0xout", "to": POOL, "metadata": {"blockTimestamp": "2021-01-01T00:00:00.000Z"}},
        ]}})
    if rpc == "eth_getTransactionCount":
        return ok({"result": "0x2a"})
    if rpc == "eth_getTransactionReceipt":
        return ok({"result": {"contractAddress": TOKEN_C1}})
    raise AssertionError(rpc)


def alchemy(handler) -> Tuple[AlchemyProvider, FakeSession]:
    session = FakeSession(handler)
    provider = AlchemyProvider(
        api_key="akey", min_interval_ms=0, retry=NO_RETRY, cache=LRUCache(max_size=50), session=session
    )
    return provider, session


class TestAlchemyProvider:
    """Test cases for AlchemyProvider"""

    @pytest.mark.asyncio
    async def test_wallet_info_uses_earliest_transfer(self):
        """Earliest of incoming and outgoing transfers"""
        provider, _ = alchemy(alchemy_handler)
        info = await provider.get_wallet_info(ETH_WALLET)
        assert info.tx_count == 42
        assert info.first_tx_hash == "0xin"
        assert info.created_at == datetime(2020, 6, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_tokens_from_deployments(self):
        """Only recipient-less transactions are deployments"""
        provider, session = alchemy(alchemy_handler)
        tokens = await provider.get_tokens_created(ETH_WALLET)
        assert [t.token for t in tokens] == [TOKEN_C1]
        receipts = [r for r in session.requests if r[3]["method"] == "eth_getTransactionReceipt"]
        assert len(receipts) == 1

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        """JSON-RPC errors are API errors"""
        provider, _ = alchemy(lambda *a: ok({"error": {"code": -32602, "message": "invalid params"}}))
        with pytest.raises(APIError):
            await provider.get_wallet_info(ETH_WALLET)

    @pytest.mark.asyncio
    async def test_manual_tokens_unverified(self):
        """Supplied tokens are returned with a warning"""
        provider, session = alchemy(alchemy_handler)
        tokens = await provider.get_tokens_created(ETH_WALLET, manual_tokens=[TOKEN_C2])
        assert tokens[0].token == TOKEN_C2
        assert tokens[0].verification_warning
        assert session.requests == []


# =============================================================================
# HELIUS
# =============================================================================

def creation_tx(**overrides):
    tx = {
        "signature": "sig-create",
        "feePayer": SOL_WALLET,
        "type": "CREATE",
        "source": "PUMP_FUN",
        "description": "",
        "timestamp": LAUNCH,
        "tokenTransfers": [
            {"mint": WRAPPED_SOL_MINT, "fromUserAccount": SOL_WALLET, "toUserAccount": "pool", "tokenAmount": 1},
            {"mint": SOL_MINT, "fromUserAccount": "", "toUserAccount": SOL_WALLET, "tokenAmount": 1000},
        ],
    }
    tx.update(overrides)
    return tx


class TestTokenCreationDetection:
    """Test cases for is_token_creation and created_mint"""

    def test_creation_by_type(self):
        """CREATE paid by the wallet is a creation"""
        assert is_token_creation(creation_tx(), SOL_WALLET)

    def test_other_fee_payer(self):
        """Someone else's creation is not the wallet's"""
        assert not is_token_creation(creation_tx(feePayer="someone"), SOL_WALLET)

    @pytest.mark.parametrize("tx_type", ["SWAP", "TRANSFER", "TOKEN_TRANSFER"])
    def test_trades_are_not_creations(self, tx_type):
        """Swaps and transfers are rejected"""
        assert not is_token_creation(creation_tx(type=tx_type), SOL_WALLET)

    def test_description_fallback(self):
        """Untyped transactions are judged by description"""
        assert is_token_creation(creation_tx(type="UNKNOWN", description="wallet created token FOO"), SOL_WALLET)
        assert not is_token_creation(
            creation_tx(type="UNKNOWN", description="wallet bought a newly created token"), SOL_WALLET
        )
        assert not is_token_creation(creation_tx(type="UNKNOWN", description="did something"), SOL_WALLET)

    def test_created_mint_skips_wrapped_sol(self):
        """The first non-SOL mint is the created token"""
        assert created_mint(creation_tx()) == SOL_MINT
        assert created_mint(creation_tx(tokenTransfers=[])) is None


def helius(handler) -> Tuple[HeliusProvider, FakeSession]:
    session = FakeSession(handler)
    provider = HeliusProvider(
        api_key="hkey", min_interval_ms=0, retry=NO_RETRY, cache=LRUCache(max_size=50), session=session,
        max_signature_pages=3,
    )
    return provider, session


class TestHeliusProvider:
    """Test cases for HeliusProvider"""

    @pytest.mark.asyncio
    async def test_wallet_info_paginates(self):
        """Signature pages are walked back to the oldest"""
        def handler(method, url, params, body):
            options = body["params"][1]
            if "before" not in options:
                page = [{"signature": f"s{i}", "blockTime": LAUNCH + 5000 - i} for i in range(1000)]
            else:
                assert options["before"] == "s999"
                page = [{"signature": "oldest", "blockTime": LAUNCH}]
            return ok({"jsonrpc": "2.0", "result": page})

        provider, session = helius(handler)
        info = await provider.get_wallet_info(SOL_WALLET)
        assert info.tx_count == 1001
        assert info.first_tx_hash == "oldest"
        assert info.created_at == datetime.fromtimestamp(LAUNCH, tz=timezone.utc)
        assert session.requests[0][2] == {"api-key": "hkey"}

    @pytest.mark.asyncio
    async def test_wallet_without_history(self):
        """No signatures means unknown age and zero transactions"""
        provider, _ = helius(lambda *a: ok({"jsonrpc": "2.0", "result": []}))
        info = await provider.get_wallet_info(SOL_WALLET)
        assert info.tx_count == 0
        assert info.created_at is None

    @pytest.mark.asyncio
    async def test_tokens_created(self):
        """Creations are reported with dev sell from the wallet's transfers"""
        transactions = [
            {"signature": "sig-sell", "feePayer": SOL_WALLET, "type": "SWAP", "timestamp": LAUNCH + 60,
             "description": "wallet sold 250 tokens",
             "tokenTransfers": [
                 {"mint": SOL_MINT, "fromUserAccount": SOL_WALLET, "toUserAccount": "pool", "tokenAmount": 250},
             ]},
            creation_tx(),
            {"signature": "sig-buy", "feePayer": SOL_WALLET, "type": "SWAP", "timestamp": LAUNCH - 60,
             "tokenTransfers": [
                 {"mint": "OtherMint", "fromUserAccount": "pool", "toUserAccount": SOL_WALLET, "tokenAmount": 5},
             ]},
        ]

        def handler(method, url, params, body):
            assert url.endswith(f"/addresses/{SOL_WALLET}/transactions")
            return ok(transactions)

        provider, _ = helius(handler)
        tokens = await provider.get_tokens_created(SOL_WALLET)
        assert len(tokens) == 1
        token = tokens[0]
        assert token.token == SOL_MINT
        assert token.creator == SOL_WALLET
        assert token.liquidity_locked is True
        assert token.dev_sell_ratio == pytest.approx(0.25)
        assert token.holders_after_7_days is None

    @pytest.mark.asyncio
    async def test_plain_transfers_are_not_sales(self):
        """Only swaps and known AMM accounts count toward the dev sell ratio"""
        raydium = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
        transactions = [
            {"signature": "sig-team", "feePayer": SOL_WALLET, "type": "TRANSFER", "timestamp": LAUNCH + 30,
             "tokenTransfers": [
                 {"mint": SOL_MINT, "fromUserAccount": SOL_WALLET, "toUserAccount": "TeamWallet",
                  "tokenAmount": 500},
             ]},
            {"signature": "sig-amm", "feePayer": SOL_WALLET, "type": "UNKNOWN", "timestamp": LAUNCH + 20,
             "tokenTransfers": [
                 {"mint": SOL_MINT, "fromUserAccount": SOL_WALLET, "toUserAccount": raydium, "tokenAmount": 250},
             ]},
            creation_tx(),
        ]
        provider, _ = helius(lambda *a: ok(transactions))
        tokens = await provider.get_tokens_created(SOL_WALLET)
        assert tokens[0].dev_sell_ratio == pytest.approx(0.25)

    @pytest.mark.asyncio
    async def test_manual_tokens_ignored(self):
        """Solana discovery runs even when tokens are supplied"""
        provider, session = helius(lambda *a: ok([]))
        assert await provider.get_tokens_created(SOL_WALLET, manual_tokens=[SOL_MINT]) == []
        assert len(session.requests) == 1

    def test_rejects_ethereum_address(self):
        """Chain check"""
        with pytest.raises(ValidationError):
            HeliusProvider(api_key="k").validate_address(ETH_WALLET)
