"""
Solana provider adapter backed by Helius.

Wallet age comes from walking ``getSignaturesForAddress`` back to the oldest
signature. Token launches are read from Helius enhanced transactions: only
transactions paid for by the wallet and classified as a creation count, so
tokens the wallet bought, sold or received are never reported.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp

from .cache import LRUCache, TTLPolicy
from .calculators import DevSellCalculator, TransferEvent, format_age
from .context import RequestContext
from .dex import SOLANA_DEX_ACCOUNTS
from .exceptions import APIError
from .models import TokenSummary, WalletInfo
from .providers import BaseProvider, ProviderConfig
from .retry import RetryConfig
from .validators import BlockchainType

logger = logging.getLogger(__name__)

HELIUS_BASE_URL = "https://api.helius.xyz/v0"
HELIUS_RPC_URL = "https://mainnet.helius-rpc.com"

WRAPPED_SOL_MINT = "So11111111111111111111111111111111111111112"
SIGNATURE_PAGE_LIMIT = 1000
TRANSACTION_PAGE_LIMIT = 100
MAX_TRANSACTIONS_SCANNED = 1000
MAX_SIGNATURE_PAGES = 50

CREATION_TYPES = frozenset({"CREATE", "CREATE_POOL", "INITIALIZE_MINT", "TOKEN_MINT"})
NON_CREATION_TYPES = frozenset({"SWAP", "TRANSFER", "TOKEN_TRANSFER", "NFT_SALE", "BURN"})
NON_CREATION_WORDS = ("bought", "sold", "swap", "traded", "transferred")


def is_token_creation(tx: Dict[str, Any], wallet: str) -> bool:
    """
    True when ``tx`` launched a token for ``wallet``.

    The wallet must have paid the fee. Explicit trade/transfer types are
    rejected before creation types are accepted; untyped transactions fall
    back to the description text.
    """
    if tx.get("feePayer") != wallet:
        return False

    tx_type = str(tx.get("type") or "").upper()
    if tx_type in NON_CREATION_TYPES:
        return False
    if tx_type in CREATION_TYPES:
        return True

    description = str(tx.get("description") or "").lower()
    if any(word in description for word in NON_CREATION_WORDS):
        return False
    return "created" in description and ("token" in description or "launched" in description)


def created_mint(tx: Dict[str, Any]) -> Optional[str]:
    """First non-SOL mint moved by a creation transaction."""
    for transfer in tx.get("tokenTransfers") or []:
        mint = transfer.get("mint")
        if mint and mint != WRAPPED_SOL_MINT:
            return mint
    return None


def _is_pump_fun(tx: Dict[str, Any]) -> bool:
    source = str(tx.get("source") or "").upper()
    return source in ("PUMP_FUN", "PUMP_AMM")


class HeliusProvider(BaseProvider):
    """Helius enhanced API adapter for Solana wallets."""

    chain = BlockchainType.SOLANA

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = HELIUS_BASE_URL,
        rpc_url: str = HELIUS_RPC_URL,
        priority: int = 1,
        min_interval_ms: float = 200,
        timeout: float = 30.0,
        retry: Optional[RetryConfig] = None,
        max_signature_pages: int = MAX_SIGNATURE_PAGES,
        ttls: Optional[TTLPolicy] = None,
        cache: Optional[LRUCache] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        config = ProviderConfig(
            name="helius",
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
        self.rpc_url = rpc_url.rstrip("/")
        self.max_signature_pages = max_signature_pages

    def _validate_payload(self, data: Any) -> Any:
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            if "rate limit" in str(message).lower():
                code = 429
            raise APIError(message=str(message or "Helius error"), provider=self.name, api_status_code=code)
        return data

    async def _rpc(
        self,
        method: str,
        params: List[Any],
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
        cache_ttl: Optional[float] = None,
    ) -> Any:
        data = await self._request(
            "POST",
            f"{self.rpc_url}/",
            params={"api-key": self._api_key},
            json_data={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
            ctx=ctx,
            force_refresh=force_refresh,
            cache_ttl=cache_ttl,
            label=method,
        )
        return data.get("result") if isinstance(data, dict) else None

    async def ping(self) -> None:
        await self._rpc("getHealth", [], force_refresh=True)

    # ---- wallet info ----

    async def get_wallet_info(
        self,
        address: str,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
    ) -> WalletInfo:
        address = self.validate_address(address)

        tx_count = 0
        oldest: Optional[Dict[str, Any]] = None
        before: Optional[str] = None

        for _ in range(self.max_signature_pages):
            options: Dict[str, Any] = {"limit": SIGNATURE_PAGE_LIMIT}
            if before:
                options["before"] = before
            page = await self._rpc(
                "getSignaturesForAddress",
                [address, options],
                ctx=ctx,
                force_refresh=force_refresh,
                cache_ttl=self.ttls.wallet_info,
            )
            if not page:
                break
            tx_count += len(page)
            oldest = page[-1]
            if len(page) < SIGNATURE_PAGE_LIMIT:
                break
            before = oldest.get("signature")
        else:
            logger.info(
                "%s: stopped after %d signature pages for %s, age is a lower bound",
                self.name, self.max_signature_pages, address,
            )

        if oldest is None:
            return WalletInfo(created_at=None, tx_count=0)

        block_time = oldest.get("blockTime")
        created_at = datetime.fromtimestamp(block_time, tz=timezone.utc) if block_time else None
        return WalletInfo(
            created_at=created_at,
            first_tx_hash=oldest.get("signature"),
            tx_count=tx_count,
            age=format_age(created_at),
        )

    # ---- token discovery ----

    async def _transactions(
        self,
        address: str,
        ctx: Optional[RequestContext],
        force_refresh: bool,
    ) -> List[Dict[str, Any]]:
        collected: List[Dict[str, Any]] = []
        before: Optional[str] = None

        while len(collected) < MAX_TRANSACTIONS_SCANNED:
            params: Dict[str, Any] = {"api-key": self._api_key, "limit": TRANSACTION_PAGE_LIMIT}
            if before:
                params["before"] = before
            page = await self._request(
                "GET",
                f"{self.base_url}/addresses/{address}/transactions",
                params=params,
                ctx=ctx,
                force_refresh=force_refresh,
                cache_ttl=self.ttls.tokens,
                label="transactions",
            )
            if not isinstance(page, list) or not page:
                break
            collected.extend(page)
            if len(page) < TRANSACTION_PAGE_LIMIT:
                break
            before = page[-1].get("signature")
            if not before:
                break
        return collected

    async def get_tokens_created(
        self,
        address: str,
        ctx: Optional[RequestContext] = None,
        force_refresh: bool = False,
        manual_tokens: Optional[List[str]] = None,
    ) -> List[TokenSummary]:
        address = self.validate_address(address)
        if manual_tokens:
            log = ctx.logger if ctx else logger
            log.info("%s: explicit token lists are not supported on Solana, discovering instead", self.name)

        transactions = await self._transactions(address, ctx, force_refresh)

        tokens: Dict[str, TokenSummary] = {}
        for tx in transactions:
            if not is_token_creation(tx, address):
                continue
            mint = created_mint(tx)
            if not mint or mint in tokens:
                continue
            timestamp = tx.get("timestamp")
            summary = TokenSummary(
                token=mint,
                creator=address,
                launch_at=datetime.fromtimestamp(timestamp, tz=timezone.utc) if timestamp else None,
            )
            if _is_pump_fun(tx):
                # Pump.fun bonding curves hold liquidity until migration.
                summary.liquidity_locked = True
            tokens[mint] = summary

        if tokens:
            self._apply_dev_sells(tokens, transactions, address)

        logger.info("%s: wallet %s created %d tokens", self.name, address, len(tokens))
        return list(tokens.values())

    def _apply_dev_sells(
        self,
        tokens: Dict[str, TokenSummary],
        transactions: List[Dict[str, Any]],
        creator: str,
    ) -> None:
        """
        Dev sell ratio from the creator's own transfers of each mint.

        Only transfers into a DEX count as sales: known AMM accounts plus the
        counterparties of the creator's swaps. Plain transfers to other
        wallets are not sales.
        """
        by_mint: Dict[str, List[TransferEvent]] = {mint: [] for mint in tokens}
        destinations = set(SOLANA_DEX_ACCOUNTS)
        for tx in transactions:
            is_swap = str(tx.get("type") or "").upper() == "SWAP"
            for transfer in tx.get("tokenTransfers") or []:
                mint = transfer.get("mint")
                if mint not in by_mint:
                    continue
                event = TransferEvent(
                    from_address=transfer.get("fromUserAccount") or "",
                    to_address=transfer.get("toUserAccount") or "",
                    value=float(transfer.get("tokenAmount") or 0),
                    timestamp=tx.get("timestamp"),
                )
                if is_swap and event.from_address == creator and event.to_address:
                    destinations.add(event.to_address)
                by_mint[mint].append(event)

        calculator = DevSellCalculator(sell_destinations=destinations, case_sensitive=True)
        for mint, transfers in by_mint.items():
            totals = calculator.totals(transfers, creator)
            if totals["received"] > 0:
                tokens[mint].dev_sell_ratio = calculator.calculate(transfers, creator)


__all__ = [
    "HeliusProvider",
    "is_token_creation",
    "created_mint",
    "HELIUS_BASE_URL",
    "HELIUS_RPC_URL",
    "WRAPPED_SOL_MINT",
]
