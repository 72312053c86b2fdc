"""
DEX reference data and eth_call helpers.

Routers and AMM programs a creator sells into, the factories used to find a
token's WETH pools, the lockers that hold LP tokens, and the few ABI
encoders needed to query them through a JSON-RPC proxy.
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from .calculators import ZERO_ADDRESS

WETH_ADDRESS = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
WEI_PER_ETH = 10 ** 18
DEFAULT_ETH_PRICE_USD = 2000.0

# Function selectors
GET_PAIR_SELECTOR = "0xe6a43905"       # getPair(address,address)
GET_POOL_SELECTOR = "0x1698ee82"       # getPool(address,address,uint24)
GET_RESERVES_SELECTOR = "0x0902f1ac"   # getReserves()
BALANCE_OF_SELECTOR = "0x70a08231"     # balanceOf(address)


# =============================================================================
# ETHEREUM
# =============================================================================

@dataclass(frozen=True)
class DexConfig:
    name: str
    version: str
    factory: str
    router: str


DEX_CONFIGS = (
    DexConfig(
        name="Uniswap V2",
        version="v2",
        factory="0x5c69bee701ef814a2b6a3edd4b1652cb9cc5aa6f",
        router="0x7a250d5630b4cf539739df2c5dacb4c659f2488d",
    ),
    DexConfig(
        name="SushiSwap",
        version="v2",
        factory="0xc0aee478e3658e2610c5f7a4a2e1777ce9e4f2ac",
        router="0xd9e1ce17f2641f24ae83637ab66a2cca9c378b9f",
    ),
    DexConfig(
        name="Uniswap V3",
        version="v3",
        factory="0x1f98431c8ad98523631ae4a59f267346ea31f984",
        router="0xe592427a0aece92de3edee1f18e0157c05861564",
    ),
)

UNISWAP_V3_FEE_TIERS = (500, 3000, 10000)

UNISWAP_SWAP_ROUTER_02 = "0x68b3465833fb72a70ecdf485e0e4c7bd8665fc45"
UNISWAP_UNIVERSAL_ROUTER = "0x3fc91a3afd70395cd496c647d5a6cc9d4b2b7fad"

EVM_DEX_ROUTERS: FrozenSet[str] = frozenset(
    {dex.router for dex in DEX_CONFIGS} | {UNISWAP_SWAP_ROUTER_02, UNISWAP_UNIVERSAL_ROUTER}
)


@dataclass(frozen=True)
class LockContract:
    name: str
    address: str


KNOWN_LOCK_CONTRACTS = (
    LockContract("Team Finance", "0xe2fe530c047f2d85298b07d9333c05737f1435fb"),
    LockContract("Unicrypt", "0xdba68f07d1b7ca219f78ae8582c213d975c25caf"),
    LockContract("UNCX v2", "0x663a5c229c09b049e36dcc11a9b0d4a8eb9db214"),
    LockContract("UNCX v3", "0xc77aab3c6d7dab46248f3cc3033c856171878bd5"),
    LockContract("PinkLock", "0x71b5759d73262fbb223956913ecf4ecc51057641"),
)


@dataclass
class LiquidityPool:
    """A token/WETH pool found through a factory lookup."""
    address: str
    dex: str
    version: str
    created_at_block: Optional[int] = None


# =============================================================================
# SOLANA
# =============================================================================

# Case sensitive; base58 addresses are never folded.
SOLANA_DEX_ACCOUNTS: FrozenSet[str] = frozenset({
    "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",   # Jupiter v6
    "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",  # Raydium AMM v4
    "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1",  # Raydium AMM v4 authority
    "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C",  # Raydium CPMM
    "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",   # Orca Whirlpool
    "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",   # pump.fun
    "pAMMBay6oceH9fJKBRHGP5D4bD4sWpmSwMn52FMfXEA",   # PumpSwap AMM
})


# =============================================================================
# ABI HELPERS
# =============================================================================

def encode_address(address: str) -> str:
    """One 32-byte ABI word holding ``address``."""
    return address.lower().replace("0x", "").rjust(64, "0")


def encode_uint(value: int) -> str:
    return format(value, "x").rjust(64, "0")


def encode_call(selector: str, *words: str) -> str:
    return selector + "".join(words)


def decode_uint(data: Optional[str], index: int = 0) -> int:
    """Word ``index`` of an eth_call result; missing words read as 0."""
    if not data or data == "0x":
        return 0
    body = data[2:] if data.startswith("0x") else data
    word = body[index * 64:(index + 1) * 64]
    return int(word, 16) if word else 0


def decode_address(data: Optional[str]) -> str:
    if not data or len(data) < 66:
        return ZERO_ADDRESS
    return "0x" + data[-40:].lower()


def block_tag(block: Optional[int]) -> str:
    return hex(block) if block is not None else "latest"


def weth_reserve(token: str, reserve0: int, reserve1: int) -> int:
    """WETH side of a V2 pair's reserves; token0 is the lower address."""
    return reserve0 if WETH_ADDRESS < token.lower() else reserve1


def wei_to_usd(wei: int, eth_price_usd: float = DEFAULT_ETH_PRICE_USD) -> float:
    return wei / WEI_PER_ETH * eth_price_usd


__all__ = [
    "DexConfig",
    "LockContract",
    "LiquidityPool",
    "DEX_CONFIGS",
    "UNISWAP_V3_FEE_TIERS",
    "EVM_DEX_ROUTERS",
    "KNOWN_LOCK_CONTRACTS",
    "SOLANA_DEX_ACCOUNTS",
    "WETH_ADDRESS",
    "DEFAULT_ETH_PRICE_USD",
    "GET_PAIR_SELECTOR",
    "GET_POOL_SELECTOR",
    "GET_RESERVES_SELECTOR",
    "BALANCE_OF_SELECTOR",
    "encode_address",
    "encode_uint",
    "encode_call",
    "decode_uint",
    "decode_address",
    "block_tag",
    "weth_reserve",
    "wei_to_usd",
]
