"""
Bounded TTL cache shared by all requests of the process.

Recency order is kept in an explicit doubly-linked list with a dict index,
so promote and evict are O(1). Expired entries are dropped lazily on read;
capacity is enforced on write, which bounds memory to ``max_size`` entries.
"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# TTLS & KEYS
# =============================================================================

class CacheTTL:
    """Default lifetimes in seconds per data class."""
    ANALYSIS_RESULT = 300
    WALLET_INFO = 600
    TOKENS = 600
    REQUEST = 300
    LIQUIDITY = 86400
    HOLDER_COUNT = 3600
    DEV_SELL_RATIO = 21600
    VERIFICATION = 86400
    # Contract creation is historical fact and never changes.
    CONTRACT_CREATION = 86400


@dataclass
class TTLPolicy:
    """Lifetimes used by provider adapters; built from CacheSettings."""
    wallet_info: float = CacheTTL.WALLET_INFO
    tokens: float = CacheTTL.TOKENS
    request: float = CacheTTL.REQUEST
    contract_creation: float = CacheTTL.CONTRACT_CREATION
    holder_count: float = CacheTTL.HOLDER_COUNT
    dev_sell_ratio: float = CacheTTL.DEV_SELL_RATIO
    verification: float = CacheTTL.VERIFICATION
    liquidity: float = CacheTTL.LIQUIDITY


class CacheKeys:
    """Key builders; addresses are expected in normalized form."""

    @staticmethod
    def analysis(chain: str, address: str, tokens: Optional[List[str]] = None) -> str:
        key = f"analysis:{chain}:{address}"
        if tokens:
            key += ":" + ",".join(sorted(tokens))
        return key

    @staticmethod
    def liquidity(chain: str, token: str) -> str:
        return f"liquidity:{chain}:{token}"

    @staticmethod
    def holder_count(chain: str, token: str) -> str:
        return f"holders:{chain}:{token}"

    @staticmethod
    def dev_sell_ratio(chain: str, token: str, creator: str) -> str:
        return f"devsell:{chain}:{token}:{creator}"


def make_request_key(url: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Stable key for an upstream request; secrets in params are hashed, not stored."""
    payload = json.dumps(params or {}, sort_keys=True, default=str)
    digest = hashlib.md5(f"{url}|{payload}".encode()).hexdigest()
    return f"request:{digest}"


# =============================================================================
# LRU CACHE
# =============================================================================

class _Node:
    __slots__ = ("key", "value", "expires_at", "prev", "next")

    def __init__(self, key: Optional[str] = None, value: Any = None, expires_at: float = 0.0):
        self.key = key
        self.value = value
        self.expires_at = expires_at
        self.prev: Optional["_Node"] = None
        self.next: Optional["_Node"] = None


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": round(self.hit_rate, 4),
        }


class LRUCache(Generic[T]):
    """Memory-bounded LRU cache with per-entry TTL."""

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float = CacheTTL.REQUEST,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._index: Dict[str, _Node] = {}
        # Sentinels: head.next is most recent, tail.prev is least recent.
        self._head = _Node()
        self._tail = _Node()
        self._head.next = self._tail
        self._tail.prev = self._head
        self._lock = asyncio.Lock()
        self._stats = CacheStats(max_size=max_size)

    # ---- list primitives (caller holds the lock) ----

    def _unlink(self, node: _Node) -> None:
        node.prev.next = node.next
        node.next.prev = node.prev
        node.prev = node.next = None

    def _push_front(self, node: _Node) -> None:
        node.prev = self._head
        node.next = self._head.next
        self._head.next.prev = node
        self._head.next = node

    def _remove(self, node: _Node) -> None:
        self._unlink(node)
        del self._index[node.key]

    def _iter_nodes(self) -> Iterator[_Node]:
        node = self._head.next
        while node is not self._tail:
            nxt = node.next
            yield node
            node = nxt

    # ---- public API ----

    async def get(self, key: str, default: Optional[T] = None) -> Optional[T]:
        """Get value if present and unexpired, promoting it to most recently used."""
        async with self._lock:
            node = self._index.get(key)
            if node is None:
                self._stats.misses += 1
                return default

            if self._clock() >= node.expires_at:
                self._remove(node)
                self._stats.expirations += 1
                self._stats.misses += 1
                return default

            self._unlink(node)
            self._push_front(node)
            self._stats.hits += 1
            return node.value

    async def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        """Insert or replace ``key``, evicting least recently used entries at capacity."""
        ttl = ttl if ttl is not None else self.default_ttl
        async with self._lock:
            existing = self._index.get(key)
            if existing is not None:
                self._remove(existing)

            while len(self._index) >= self.max_size:
                lru = self._tail.prev
                self._remove(lru)
                self._stats.evictions += 1
                logger.debug("Evicted cache key %s", lru.key)

            node = _Node(key, value, self._clock() + ttl)
            self._push_front(node)
            self._index[key] = node

    async def delete(self, key: str) -> bool:
        async with self._lock:
            node = self._index.get(key)
            if node is None:
                return False
            self._remove(node)
            return True

    async def clear(self, prefix: Optional[str] = None) -> int:
        """Remove all entries, or only those whose key starts with ``prefix``."""
        async with self._lock:
            if prefix is None:
                count = len(self._index)
                self._index.clear()
                self._head.next = self._tail
                self._tail.prev = self._head
                return count
            doomed = [n for n in self._iter_nodes() if n.key.startswith(prefix)]
            for node in doomed:
                self._remove(node)
            return len(doomed)

    async def cleanup_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        async with self._lock:
            now = self._clock()
            expired = [n for n in self._iter_nodes() if now >= n.expires_at]
            for node in expired:
                self._remove(node)
            self._stats.expirations += len(expired)
            return len(expired)

    async def keys(self) -> List[str]:
        """Keys from most to least recently used, expired ones included."""
        async with self._lock:
            return [n.key for n in self._iter_nodes()]

    async def items(self) -> List[Tuple[str, T]]:
        async with self._lock:
            return [(n.key, n.value) for n in self._iter_nodes()]

    @property
    def size(self) -> int:
        return len(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key: str) -> bool:
        node = self._index.get(key)
        return node is not None and self._clock() < node.expires_at

    def stats(self) -> CacheStats:
        self._stats.size = len(self._index)
        return CacheStats(**{k: getattr(self._stats, k) for k in (
            "hits", "misses", "evictions", "expirations", "size", "max_size"
        )})

    def reset_stats(self) -> None:
        self._stats = CacheStats(max_size=self.max_size)


# =============================================================================
# SHARED INSTANCE
# =============================================================================

_shared_cache: Optional[LRUCache[Any]] = None


def get_shared_cache(max_size: Optional[int] = None) -> LRUCache[Any]:
    """Process-wide cache, created on first use."""
    global _shared_cache
    if _shared_cache is None:
        if max_size is None:
            from .config import get_settings
            max_size = get_settings().cache.max_entries
        _shared_cache = LRUCache(max_size=max_size)
        logger.info("Shared cache created (max_size=%d)", max_size)
    return _shared_cache


def reset_shared_cache() -> None:
    global _shared_cache
    _shared_cache = None


__all__ = [
    "CacheTTL",
    "TTLPolicy",
    "CacheKeys",
    "CacheStats",
    "LRUCache",
    "make_request_key",
    "get_shared_cache",
    "reset_shared_cache",
]
