"""
Ethereum provider adapters.

EtherscanProvider (priority 1) uses the Etherscan v2 REST API.
AlchemyProvider (priority 2) uses Alchemy's JSON-RPC extensions and is the
fallback when Etherscan is unavailable or failing.

Token discovery looks for contract deployments sent by the wallet
(transactions with an empty ``to``), never for tokens the wallet merely
received or traded. Receipt lookups per address are capped.

Etherscan enriches discovered tokens with three isolated metrics: WETH pool
liquidity with its lock status, holders seven days after launch, and the
share of the creator's allocation sold into known DEX routers.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

from .cache import CacheKeys, LRUCache, TTLPolicy
from .calculators import (
    ZERO_ADDRESS,
    DevSellCalculator,
    TransferEvent,
    dev_sell_fraction,
    format_age,
    holders_after_days,
)
from .context import RequestContext
from .dex import (
    BALANCE_OF_SELECTOR,
    DEFAULT_ETH_PRICE_USD,
    DEX_CONFIGS,
    EVM_DEX_ROUTERS,
    GET_PAIR_SELECTOR,
    GET_POOL_SELECTOR,
    GET_RESERVES_SELECTOR,
    KNOWN_LOCK_CONTRACTS,
    UNISWAP_V3_FEE_TIERS,
    WETH_ADDRESS,
    LiquidityPool,
    block_tag,
    decode_address,
    decode_uint,
    encode_address,
    encode_call,
    encode_uint,
    weth_reserve,
    wei_to_usd,
)
from .exceptions import APIError, NetworkError
from .models import TokenSummary, WalletInfo
from .providers import BaseProvider, ProviderConfig
from .retry import RetryConfig, batch_execute, execute_with_isolation, with_graceful_degradation
from .validators import BlockchainType

logger = logging.getLogger(__name__)

ETHERSCAN_BASE_URL = "https://api.etherscan.io/v2/api"
ALCHEMY_BASE_URL = "https://eth-mainnet.g.alchemy.com/v2"

MAX_RECEIPT_LOOKUPS = 20
MAX_ENHANCED_TOKENS = 5
TXLIST_PAGE_SIZE = 10000
TRANSFER_PAGE_SIZE = 10000

_EMPTY_RESULT_MARKERS = ("no transactions found", "no records found", "no token transfers found")


def _is_creation_tx(tx: Dict[str, Any]) -> bool:
    """A deployment has no recipient and carries init code."""
    to = (tx.get("to") or "").lower()
    data = tx.get("input") or ""
    return (to == "" or to == ZERO_ADDRESS) and len(data) > 2


def _timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _hex_to_int(value: Any) -> int:
    if value in (None, "", "0x"):
        return 0
    return int(value, 16) if isinstance(value, str) else int(value)


class _TransferLoader:
    """Fetches a token's transfers once for the metrics that share them."""

    def __init__(self, fetch: Callable[[], Awaitable[List[TransferEvent]]]):
        self._fetch = fetch
        self._lock = asyncio.Lock()
        self._transfers: Optional[List[TransferEvent]] = None

    async def get(self) -> List[TransferEvent]:
        async with self._lock:
            if self._transfers is None:
                self._transfers = await self._fetch()
            return self._transfers


# =============================================================================
# ETHERSCAN
# =============================================================================

class EtherscanProvider(BaseProvider):
    """Etherscan v2 API adapter."""

    chain = BlockchainType.ETHEREUM

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = ETHERSCAN_BASE_URL,
        chain_id: int = 1,
        priority: int = 1,
        min_interval_ms: float = 400,
        timeout: float = 30.0,
        retry: Optional[RetryConfig] = None,
        max_receipt_lookups: int = MAX_RECEIPT_LOOKUPS,
        max_enhanced_tokens: int = MAX_ENHANCED_TOKENS,
        batch_concurrency: int = 3,
        batch_delay_ms: int = 100,
        eth_price_usd: float = DEFAULT_ETH_PRICE_USD,
        ttls: Optional[TTLPolicy] = None,
        cache: Optional[LRUCache] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        config = ProviderConfig(
            name="etherscan",
            priority=priority,
            min_interval_ms=min_interval_ms,
            max_requests_per_second=5,
            timeout=timeout,
        )
        if retry is not None:
            config.retry = retry
        if ttls is not None:
            config.ttls = ttls
        super().__init__(config, api_key=api_key, cache=cache, session=session)
        self.base_url = base_url
        self.chain_id = chain_id
        self.max_receipt_lookups = max_receipt_lookups
        self.max_enhanced_tokens = max_enhanced_tokens
        self.batch_concurrency = batch_concurrency
        self.batch_delay_ms = batch_delay_ms
        self.eth_price_usd = eth_price_usd
        # Only transfers into a DEX router are sales; LP adds and team wallets are not.
        self._sell_calculator = DevSellCalculator(sell_destinations=EVM_DEX_ROUTERS)

    def _validate_payload(self, data: Any) -> Any:
        """
        Etherscan reports logical errors with ``status == "0"``. An empty
        history is a valid result; throttling messages become a 429.
        """
        if not isinstance(data, dict) or data.get("status") != "0":
            if isinstance(data, dict) and isinstance(data.get("error"), dict):
                error = data["error"]
                raise APIError(
                    message=str(error.get("message") or "JSON-RPC error"),
                    provider=self.name,
                    api_status_code=error.get("code"),
                )
            return data

        message = str(data.get("message") or "")
        result = data.get("result")
        text = f"{message} {result if isinstance(result, str) else ''}".lower()

        if any(marker in text for marker in _EMPTY_RESULT_MARKERS):
            return {"status": "1", "message": "OK", "result": []}
        if "rate limit" in text:
            raise APIError(message=f"{message}: {result}", provider=self.name, api_status_code=429)
        raise APIError(message=f"{message}: {result}", provider=self.name)

    async def _call(
        self,
        params: Dict[str, Any],
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
        cache_ttl: Optional[float] = None,
    ) -> Any:
        query = {"chainid": self.chain_id, **params, "apikey": self._api_key}
        label = f"{params.get('module')}.{params.get('action')}"
        data = await self._request(
            "GET",
            self.base_url,
            params=query,
            ctx=ctx,
            force_refresh=force_refresh,
            cache_ttl=cache_ttl,
            label=label,
        )
        return data.get("result") if isinstance(data, dict) else None

    async def ping(self) -> None:
        await self._call({"module": "proxy", "action": "eth_blockNumber"}, force_refresh=True)

    # ---- wallet info ----

    async def get_wallet_info(
        self,
        address: str,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
    ) -> WalletInfo:
        address = self.validate_address(address)
        txs = await self._call(
            {
                "module": "account",
                "action": "txlist",
                "address": address,
                "startblock": 0,
                "endblock": 99999999,
                "page": 1,
                "offset": TXLIST_PAGE_SIZE,
                "sort": "asc",
            },
            ctx=ctx,
            force_refresh=force_refresh,
            cache_ttl=self.ttls.wallet_info,
        )
        if not isinstance(txs, list) or not txs:
            return WalletInfo(created_at=None, tx_count=0)

        first = txs[0]
        created_at = _timestamp(first.get("timeStamp"))
        return WalletInfo(
            created_at=created_at,
            first_tx_hash=first.get("hash"),
            tx_count=len(txs),
            age=format_age(created_at),
        )

    # ---- token discovery ----

    async def get_tokens_created(
        self,
        address: str,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
        manual_tokens: Optional[List[str]] = None,
    ) -> List[TokenSummary]:
        address = self.validate_address(address)

        if manual_tokens:
            tokens = await self._manual_tokens(address, manual_tokens, ctx, force_refresh)
        else:
            tokens = await self._discover_tokens(address, ctx, force_refresh)

        if not tokens:
            return []
        return await self._enhance_tokens(tokens, address, ctx, force_refresh)

    async def _discover_tokens(
        self,
        address: str,
        ctx: Optional[RequestContext],
        force_refresh: bool,
    ) -> List[TokenSummary]:
        token_txs = await self._call(
            {
                "module": "account",
                "action": "tokentx",
                "address": address,
                "startblock": 0,
                "endblock": 99999999,
                "sort": "asc",
            },
            ctx=ctx,
            force_refresh=force_refresh,
            cache_ttl=self.ttls.tokens,
        )
        tx_list = await self._call(
            {
                "module": "account",
                "action": "txlist",
                "address": address,
                "startblock": 0,
                "endblock": 99999999,
                "page": 1,
                "offset": TXLIST_PAGE_SIZE,
                "sort": "asc",
            },
            ctx=ctx,
            force_refresh=force_refresh,
            cache_ttl=self.ttls.wallet_info,
        )

        # Name/symbol only. Appearing in tokentx does not make the wallet the creator.
        metadata: Dict[str, Dict[str, Optional[str]]] = {}
        for tx in token_txs or []:
            contract = (tx.get("contractAddress") or "").lower()
            if contract and contract not in metadata:
                metadata[contract] = {
                    "name": tx.get("tokenName") or None,
                    "symbol": tx.get("tokenSymbol") or None,
                }

        creations = [tx for tx in (tx_list or []) if _is_creation_tx(tx)]
        if len(creations) > self.max_receipt_lookups:
            logger.info(
                "%s: %d contract creations for %s, checking first %d",
                self.name, len(creations), address, self.max_receipt_lookups,
            )

        tokens: Dict[str, TokenSummary] = {}
        lookups = 0
        for tx in creations:
            contract = (tx.get("contractAddress") or "").lower()
            if not contract:
                if lookups >= self.max_receipt_lookups:
                    continue
                lookups += 1
                contract = await self._receipt_contract(tx.get("hash"), ctx)
            if not contract or contract == ZERO_ADDRESS or contract in tokens:
                continue
            meta = metadata.get(contract, {})
            tokens[contract] = TokenSummary(
                token=contract,
                name=meta.get("name"),
                symbol=meta.get("symbol"),
                creator=address,
                launch_at=_timestamp(tx.get("timeStamp")),
            )

        logger.info("%s: wallet %s created %d contracts", self.name, address, len(tokens))
        return list(tokens.values())

    async def _receipt_contract(self, tx_hash: Optional[str], ctx: Optional[RequestContext]) -> Optional[str]:
        if not tx_hash:
            return None
        receipt = await self._call(
            {"module": "proxy", "action": "eth_getTransactionReceipt", "txhash": tx_hash},
            ctx=ctx,
            cache_ttl=self.ttls.contract_creation,
        )
        if not isinstance(receipt, dict):
            return None
        contract = receipt.get("contractAddress")
        return contract.lower() if contract else None

    async def _manual_tokens(
        self,
        address: str,
        manual_tokens: List[str],
        ctx: Optional[RequestContext],
        force_refresh: bool,
    ) -> List[TokenSummary]:
        logger.info("%s: analyzing %d supplied tokens for %s", self.name, len(manual_tokens), address)
        tokens = []
        for token in manual_tokens:
            token = token.lower()
            verification = await with_graceful_degradation(
                lambda token=token: self._verify_creator(token, address, ctx),
                fallback=None,
            )
            summary = TokenSummary(token=token, creator=address)
            if verification.degraded or verification.data is None:
                summary.verification_warning = "Could not verify token creator"
            else:
                creator, launch_at = verification.data
                summary.verified = creator == address
                summary.launch_at = launch_at
                if not summary.verified:
                    summary.creator = creator
                    summary.verification_warning = (
                        f"Token was created by {creator}, not by the analyzed wallet"
                    )
            tokens.append(summary)
        return tokens

    async def _verify_creator(
        self, token: str, wallet: str, ctx: Optional[RequestContext]
    ) -> Optional[tuple]:
        """Return (creator, launch_at) for a contract, or None if unknown."""
        result = await self._call(
            {"module": "contract", "action": "getcontractcreation", "contractaddresses": token},
            ctx=ctx,
            cache_ttl=self.ttls.verification,
        )
        if not isinstance(result, list) or not result:
            return None
        entry = result[0]
        creator = (entry.get("contractCreator") or "").lower() or None
        if creator is None:
            return None
        return creator, _timestamp(entry.get("timestamp"))

    # ---- enrichment ----

    async def _token_transfers(
        self, token: str, ctx: Optional[RequestContext], force_refresh: bool
    ) -> List[TransferEvent]:
        raw = await self._call(
            {
                "module": "account",
                "action": "tokentx",
                "contractaddress": token,
                "page": 1,
                "offset": TRANSFER_PAGE_SIZE,
                "sort": "asc",
            },
            ctx=ctx,
            force_refresh=force_refresh,
            cache_ttl=self.ttls.holder_count,
        )
        transfers = []
        for tx in raw or []:
            transfers.append(TransferEvent(
                from_address=(tx.get("from") or "").lower(),
                to_address=(tx.get("to") or "").lower(),
                value=float(tx.get("value") or 0),
                timestamp=int(tx["timeStamp"]) if tx.get("timeStamp") else None,
            ))
        return transfers

    # ---- liquidity ----

    async def _eth_call(
        self,
        to: str,
        data: str,
        block: Optional[int] = None,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
    ) -> str:
        result = await self._call(
            {"module": "proxy", "action": "eth_call", "to": to, "data": data, "tag": block_tag(block)},
            ctx=ctx,
            force_refresh=force_refresh,
            cache_ttl=self.ttls.liquidity,
        )
        return result if isinstance(result, str) else "0x"

    async def _find_pools(
        self, token: str, ctx: Optional[RequestContext], force_refresh: bool
    ) -> List[LiquidityPool]:
        """Token/WETH pools on every known factory. A failing DEX is skipped."""
        pools = []
        for dex in DEX_CONFIGS:
            if dex.version == "v2":
                lookups = [(dex.name, encode_call(
                    GET_PAIR_SELECTOR, encode_address(token), encode_address(WETH_ADDRESS)
                ))]
            else:
                lookups = [
                    (f"{dex.name} ({fee / 10000:g}%)", encode_call(
                        GET_POOL_SELECTOR, encode_address(token), encode_address(WETH_ADDRESS), encode_uint(fee)
                    ))
                    for fee in UNISWAP_V3_FEE_TIERS
                ]
            try:
                for label, data in lookups:
                    address = decode_address(await self._eth_call(dex.factory, data, ctx=ctx,
                                                                  force_refresh=force_refresh))
                    if address != ZERO_ADDRESS:
                        pools.append(LiquidityPool(address=address, dex=label, version=dex.version))
            except (APIError, NetworkError) as e:
                logger.warning("%s: pool lookup on %s failed for %s: %s", self.name, dex.name, token, e)
        return pools

    async def _creation_block(self, contract: str, ctx: Optional[RequestContext]) -> Optional[int]:
        result = await self._call(
            {"module": "contract", "action": "getcontractcreation", "contractaddresses": contract},
            ctx=ctx,
            cache_ttl=self.ttls.contract_creation,
        )
        if not isinstance(result, list) or not result:
            return None
        entry = result[0]
        if entry.get("blockNumber"):
            return int(entry["blockNumber"])
        if not entry.get("txHash"):
            return None
        receipt = await self._call(
            {"module": "proxy", "action": "eth_getTransactionReceipt", "txhash": entry["txHash"]},
            ctx=ctx,
            cache_ttl=self.ttls.contract_creation,
        )
        if isinstance(receipt, dict) and receipt.get("blockNumber"):
            return _hex_to_int(receipt["blockNumber"])
        return None

    async def _initial_reserve_wei(
        self,
        token: str,
        pool: LiquidityPool,
        ctx: Optional[RequestContext],
        force_refresh: bool,
    ) -> int:
        """WETH held by the pool one block after it was created (latest when unknown)."""
        block = pool.created_at_block + 1 if pool.created_at_block else None
        if pool.version == "v2":
            raw = await self._eth_call(pool.address, GET_RESERVES_SELECTOR, block, ctx, force_refresh)
            return weth_reserve(token, decode_uint(raw, 0), decode_uint(raw, 1))
        raw = await self._eth_call(
            WETH_ADDRESS, encode_call(BALANCE_OF_SELECTOR, encode_address(pool.address)), block, ctx, force_refresh
        )
        return decode_uint(raw)

    async def _find_lock(
        self, pool: LiquidityPool, ctx: Optional[RequestContext], force_refresh: bool
    ) -> Optional[str]:
        """Name of the first known locker holding LP tokens of ``pool``."""
        for locker in KNOWN_LOCK_CONTRACTS:
            raw = await self._eth_call(
                pool.address,
                encode_call(BALANCE_OF_SELECTOR, encode_address(locker.address)),
                ctx=ctx,
                force_refresh=force_refresh,
            )
            if decode_uint(raw) > 0:
                return locker.name
        return None

    async def _liquidity(
        self, token: str, ctx: Optional[RequestContext], force_refresh: bool
    ) -> Dict[str, Any]:
        """
        Initial liquidity in USD summed over the token's WETH pools, and
        whether the LP tokens of its first V2 pair sit in a known locker.

        Without any pool both values stay unknown; the token may trade
        against another quote asset or on a DEX not listed here.
        """
        pools = await self._find_pools(token, ctx, force_refresh)
        if not pools:
            logger.debug("%s: no WETH pools for %s", self.name, token)
            return {"initial_liquidity": None, "liquidity_locked": None, "pools": []}

        total_wei = 0
        for pool in pools:
            pool.created_at_block = await self._creation_block(pool.address, ctx)
            total_wei += await self._initial_reserve_wei(token, pool, ctx, force_refresh)

        locked: Optional[bool] = None
        pair = next((p for p in pools if p.version == "v2"), None)
        if pair is not None:
            locker = await self._find_lock(pair, ctx, force_refresh)
            locked = locker is not None
            if locker:
                logger.info("%s: LP tokens of %s locked in %s", self.name, pair.address, locker)

        return {
            "initial_liquidity": wei_to_usd(total_wei, self.eth_price_usd),
            "liquidity_locked": locked,
            "pools": [p.address for p in pools],
        }

    # ---- per-token metrics ----

    async def _enhance_token(
        self,
        token: TokenSummary,
        creator: str,
        ctx: Optional[RequestContext],
        force_refresh: bool,
    ) -> TokenSummary:
        """
        Fill liquidity, holder and dev-sell metrics for one token.

        Each metric is isolated: a failure leaves only that metric absent.
        Computed values are cached per token for their own lifetimes.
        """
        chain = self.chain.value
        seller = token.creator or creator
        transfers = _TransferLoader(lambda: self._token_transfers(token.token, ctx, force_refresh))

        async def liquidity() -> Dict[str, Any]:
            return await self._memoize(
                CacheKeys.liquidity(chain, token.token),
                self.ttls.liquidity,
                lambda: self._liquidity(token.token, ctx, force_refresh),
                force_refresh,
            )

        async def holders() -> Optional[int]:
            if token.launch_at is None:
                return None
            launch = int(token.launch_at.timestamp())

            async def compute() -> Optional[int]:
                events = await transfers.get()
                return holders_after_days(events, launch) if events else None

            return await self._memoize(
                CacheKeys.holder_count(chain, token.token), self.ttls.holder_count, compute, force_refresh
            )

        async def dev_sell() -> Optional[float]:
            async def compute() -> Optional[float]:
                # Mint transfers count as received, so the ratio is relative to initial allocation.
                totals = self._sell_calculator.totals(await transfers.get(), seller)
                if totals["received"] <= 0:
                    return None
                return dev_sell_fraction(totals["received"], totals["sold"])

            return await self._memoize(
                CacheKeys.dev_sell_ratio(chain, token.token, seller), self.ttls.dev_sell_ratio, compute, force_refresh
            )

        labels = ["liquidity", "holder_count", "dev_sell_ratio"]
        liquidity_result, holder_result, dev_sell_result = await execute_with_isolation(
            [liquidity, holders, dev_sell], labels
        )

        if liquidity_result.success:
            token.initial_liquidity = liquidity_result.data["initial_liquidity"]
            token.liquidity_locked = liquidity_result.data["liquidity_locked"]
        if holder_result.success:
            token.holders_after_7_days = holder_result.data
        if dev_sell_result.success:
            token.dev_sell_ratio = dev_sell_result.data

        for label, result in zip(labels, (liquidity_result, holder_result, dev_sell_result)):
            if not result.success:
                logger.warning("%s: %s unavailable for %s: %s", self.name, label, token.token, result.error.error)
        return token

    async def _enhance_tokens(
        self,
        tokens: List[TokenSummary],
        creator: str,
        ctx: Optional[RequestContext],
        force_refresh: bool,
    ) -> List[TokenSummary]:
        to_enhance = tokens[: self.max_enhanced_tokens]
        skipped = tokens[self.max_enhanced_tokens:]
        if skipped:
            logger.info("%s: enriching %d tokens, skipping %d", self.name, len(to_enhance), len(skipped))

        results = await batch_execute(
            [lambda t=t: self._enhance_token(t, creator, ctx, force_refresh) for t in to_enhance],
            concurrency=self.batch_concurrency,
            delay_between_ms=self.batch_delay_ms,
        )
        enhanced = []
        for token, outcome in zip(to_enhance, results):
            if outcome.success:
                enhanced.append(outcome.data)
            else:
                logger.warning("%s: metrics unavailable for %s: %s", self.name, token.token, outcome.error.error)
                enhanced.append(token)
        return enhanced + skipped


# =============================================================================
# ALCHEMY
# =============================================================================

class AlchemyProvider(BaseProvider):
    """Alchemy JSON-RPC adapter."""

    chain = BlockchainType.ETHEREUM

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = ALCHEMY_BASE_URL,
        priority: int = 2,
        min_interval_ms: float = 100,
        timeout: float = 30.0,
        retry: Optional[RetryConfig] = None,
        max_receipt_lookups: int = MAX_RECEIPT_LOOKUPS,
        ttls: Optional[TTLPolicy] = None,
        cache: Optional[LRUCache] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        config = ProviderConfig(
            name="alchemy",
            priority=priority,
            min_interval_ms=min_interval_ms,
            timeout=timeout,
        )
        if retry is not None:
            config.retry = retry
        if ttls is not None:
            config.ttls = ttls
        super().__init__(config, api_key=api_key, cache=cache, session=session)
        self.base_url = base_url.rstrip("/")
        self.max_receipt_lookups = max_receipt_lookups

    @property
    def rpc_url(self) -> str:
        return f"{self.base_url}/{self._api_key}"

    def _validate_payload(self, data: Any) -> Any:
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            if "rate limit" in str(message).lower() or code == 429:
                code = 429
            raise APIError(message=str(message or "JSON-RPC error"), provider=self.name, api_status_code=code)
        return data

    async def _rpc(
        self,
        method: str,
        params: List[Any],
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
        cache_ttl: Optional[float] = None,
    ) -> Any:
        body = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        data = await self._request(
            "POST",
            self.rpc_url,
            json_data=body,
            ctx=ctx,
            force_refresh=force_refresh,
            cache_ttl=cache_ttl,
            label=method,
        )
        return data.get("result") if isinstance(data, dict) else None

    async def ping(self) -> None:
        await self._rpc("eth_blockNumber", [], force_refresh=True)

    async def _asset_transfers(
        self,
        direction: str,
        address: str,
        categories: List[str],
        max_count: int,
        ctx: Optional[RequestContext],
        force_refresh: bool,
    ) -> List[Dict[str, Any]]:
        params = {
            "fromBlock": "0x0",
            "toBlock": "latest",
            direction: address,
            "category": categories,
            "order": "asc",
            "maxCount": hex(max_count),
            "withMetadata": True,
            "excludeZeroValue": False,
        }
        result = await self._rpc(
            "alchemy_getAssetTransfers", [params], ctx=ctx, force_refresh=force_refresh,
            cache_ttl=self.ttls.wallet_info,
        )
        if not isinstance(result, dict):
            return []
        return result.get("transfers") or []

    async def get_wallet_info(
        self,
        address: str,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
    ) -> WalletInfo:
        address = self.validate_address(address)
        categories = ["external", "erc20", "erc721", "erc1155"]

        outgoing = await self._asset_transfers("fromAddress", address, categories, 1, ctx, force_refresh)
        incoming = await self._asset_transfers("toAddress", address, categories, 1, ctx, force_refresh)
        nonce = await self._rpc(
            "eth_getTransactionCount", [address, "latest"], ctx=ctx, force_refresh=force_refresh,
            cache_ttl=self.ttls.wallet_info,
        )

        candidates = []
        for transfer in outgoing[:1] + incoming[:1]:
            ts = (transfer.get("metadata") or {}).get("blockTimestamp")
            if ts:
                parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
                candidates.append((parsed, transfer.get("hash")))

        tx_count = _hex_to_int(nonce)
        if not candidates:
            return WalletInfo(created_at=None, tx_count=tx_count)

        created_at, first_hash = min(candidates, key=lambda item: item[0])
        return WalletInfo(
            created_at=created_at,
            first_tx_hash=first_hash,
            tx_count=tx_count,
            age=format_age(created_at),
        )

    async def get_tokens_created(
        self,
        address: str,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
        manual_tokens: Optional[List[str]] = None,
    ) -> List[TokenSummary]:
        address = self.validate_address(address)

        if manual_tokens:
            return [
                TokenSummary(
                    token=token.lower(),
                    creator=address,
                    verification_warning="Creator verification not supported by this provider",
                )
                for token in manual_tokens
            ]

        transfers = await self._asset_transfers(
            "fromAddress", address, ["external"], 1000, ctx, force_refresh
        )
        # Deployments have no recipient.
        deployments = [t for t in transfers if not t.get("to")]

        tokens: Dict[str, TokenSummary] = {}
        for transfer in deployments[: self.max_receipt_lookups]:
            tx_hash = transfer.get("hash")
            if not tx_hash:
                continue
            receipt = await self._rpc(
                "eth_getTransactionReceipt", [tx_hash], ctx=ctx, cache_ttl=self.ttls.contract_creation
            )
            contract = (receipt or {}).get("contractAddress") if isinstance(receipt, dict) else None
            if not contract:
                continue
            contract = contract.lower()
            if contract in tokens:
                continue
            ts = (transfer.get("metadata") or {}).get("blockTimestamp")
            tokens[contract] = TokenSummary(
                token=contract,
                creator=address,
                launch_at=datetime.fromisoformat(ts.replace("Z", "+00:00")) if ts else None,
            )

        logger.info("%s: wallet %s created %d contracts", self.name, address, len(tokens))
        return list(tokens.values())


__all__ = [
    "EtherscanProvider",
    "AlchemyProvider",
    "ETHERSCAN_BASE_URL",
    "ALCHEMY_BASE_URL",
    "MAX_RECEIPT_LOOKUPS",
    "MAX_ENHANCED_TOKENS",
]
