"""
Calculation helpers for token and wallet metrics.

Dev-sell ratios, holder counts reconstructed from transfer history, and
wallet age formatting. All functions are pure.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Set

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
SECONDS_PER_DAY = 86400
HOLDER_WINDOW_DAYS = 7


@dataclass(frozen=True)
class TransferEvent:
    """One token transfer. ``value`` is in the token's smallest unit."""
    from_address: str
    to_address: str
    value: float
    timestamp: Optional[int] = None


# =============================================================================
# DEV SELL RATIO
# =============================================================================

def calculate_dev_sell_ratio(tokens_received: float, tokens_sold: float) -> float:
    """
    Percentage of received tokens the developer sold, in [0, 100].

    Returns 0 when either operand is zero (or negative) and 100 when
    everything received was sold.
    """
    if tokens_received <= 0 or tokens_sold <= 0:
        return 0.0
    if tokens_sold >= tokens_received:
        return 100.0
    return min(100.0, max(0.0, tokens_sold / tokens_received * 100.0))


def dev_sell_fraction(tokens_received: float, tokens_sold: float) -> float:
    """Same as calculate_dev_sell_ratio but as a fraction in [0, 1]."""
    return calculate_dev_sell_ratio(tokens_received, tokens_sold) / 100.0


class DevSellCalculator:
    """Aggregates a creator's transfers of one token into a sell ratio."""

    def __init__(self, sell_destinations: Optional[Iterable[str]] = None, case_sensitive: bool = False):
        self.case_sensitive = case_sensitive
        self.sell_destinations: Optional[Set[str]] = (
            {self._norm(a) for a in sell_destinations} if sell_destinations is not None else None
        )

    def _norm(self, address: str) -> str:
        return address if self.case_sensitive else address.lower()

    def totals(self, transfers: Iterable[TransferEvent], creator: str) -> Dict[str, float]:
        creator_key = self._norm(creator)
        received = 0.0
        sold = 0.0
        for transfer in transfers:
            src = self._norm(transfer.from_address)
            dst = self._norm(transfer.to_address)
            if dst == creator_key and src != creator_key:
                received += transfer.value
            elif src == creator_key and dst != creator_key:
                if self.sell_destinations is None or dst in self.sell_destinations:
                    sold += transfer.value
        return {"received": received, "sold": sold}

    def calculate(self, transfers: Iterable[TransferEvent], creator: str) -> float:
        totals = self.totals(transfers, creator)
        return dev_sell_fraction(totals["received"], totals["sold"])


# =============================================================================
# HOLDERS
# =============================================================================

def count_holders_at(
    transfers: Iterable[TransferEvent],
    until: Optional[int] = None,
    zero_address: str = ZERO_ADDRESS,
) -> int:
    """Distinct addresses with a positive balance after replaying transfers up to ``until``."""
    balances: Dict[str, float] = {}
    zero = zero_address.lower()
    for transfer in transfers:
        if until is not None and transfer.timestamp is not None and transfer.timestamp > until:
            continue
        src = transfer.from_address.lower()
        dst = transfer.to_address.lower()
        if src and src != zero:
            balances[src] = balances.get(src, 0.0) - transfer.value
        if dst:
            balances[dst] = balances.get(dst, 0.0) + transfer.value
    return sum(1 for address, balance in balances.items() if address != zero and balance > 0)


def holders_after_days(
    transfers: List[TransferEvent],
    launch_timestamp: int,
    days: int = HOLDER_WINDOW_DAYS,
) -> int:
    return count_holders_at(transfers, until=launch_timestamp + days * SECONDS_PER_DAY)


# =============================================================================
# WALLET AGE
# =============================================================================

def wallet_age_days(created_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[float]:
    if created_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    return max(0.0, (now - created_at) / timedelta(days=1))


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def format_age(created_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[str]:
    """Human age such as "2 years, 3 months", "5 days" or "4 hours"."""
    if created_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    seconds = max(0, int((now - created_at).total_seconds()))
    days = seconds // SECONDS_PER_DAY
    months = days // 30
    years = days // 365

    if years > 0:
        return f"{_plural(years, 'year')}, {_plural(months % 12, 'month')}"
    if months > 0:
        return _plural(months, "month")
    if days > 0:
        return _plural(days, "day")
    if seconds >= 3600:
        return _plural(seconds // 3600, "hour")
    if seconds >= 60:
        return _plural(seconds // 60, "minute")
    return _plural(seconds, "second")


__all__ = [
    "TransferEvent",
    "calculate_dev_sell_ratio",
    "dev_sell_fraction",
    "DevSellCalculator",
    "count_holders_at",
    "holders_after_days",
    "wallet_age_days",
    "format_age",
    "ZERO_ADDRESS",
]
