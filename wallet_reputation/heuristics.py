"""
Heuristics sub-score from per-token risk and trust metrics.

Each adjustment applies only when its metric is present. Adjustments
accumulate across all tokens from a base of 100 and the total is clamped
to [HEURISTICS_FLOOR, HEURISTICS_CEILING]. The floor means a token with
every red flag scores the same as one with two; this is a known loss of
precision that callers rely on.
"""

import logging
from typing import List, Sequence

from .models import HeuristicsResult, TokenSummary, is_present

logger = logging.getLogger(__name__)

HEURISTICS_BASE = 100
HEURISTICS_FLOOR = 10
HEURISTICS_CEILING = 100
NEUTRAL_SCORE = 50

# Penalties (points subtracted)
HIGH_DEV_SELL_PENALTY = 50
MODERATE_DEV_SELL_PENALTY = 15
ZERO_LIQUIDITY_PENALTY = 40
LOW_LIQUIDITY_PENALTY = 10
UNLOCKED_LIQUIDITY_PENALTY = 15
FEW_HOLDERS_PENALTY = 20

# Bonuses (points added)
LOW_DEV_SELL_BONUS = 10
STRONG_LIQUIDITY_BONUS = 10
LOCKED_LIQUIDITY_BONUS = 20
HOLDER_GROWTH_BONUS = 10

# Thresholds
HIGH_DEV_SELL_RATIO = 0.5
MODERATE_DEV_SELL_RATIO = 0.25
LOW_DEV_SELL_RATIO = 0.10
LOW_LIQUIDITY_USD = 1_000
STRONG_LIQUIDITY_USD = 50_000
FEW_HOLDERS = 10
MANY_HOLDERS = 100


def _label(token: TokenSummary) -> str:
    return token.name or token.symbol or f"{token.token[:8]}..."


def calculate_heuristics_score(tokens: Sequence[TokenSummary]) -> HeuristicsResult:
    if not tokens:
        return HeuristicsResult(
            score=HEURISTICS_CEILING,
            notes=["No tokens to analyze - no launch risk detected"],
            data_available=False,
        )

    if not any(token.has_any_metric() for token in tokens):
        return HeuristicsResult(
            score=NEUTRAL_SCORE,
            notes=["Insufficient data for heuristics analysis - no token metrics available"],
            data_available=False,
        )

    critical: List[str] = []
    warnings: List[str] = []
    positive: List[str] = []

    adjustment = 0
    penalties = 0
    bonuses = 0

    for token in tokens:
        name = _label(token)

        if is_present(token.dev_sell_ratio):
            ratio = token.dev_sell_ratio
            if ratio >= HIGH_DEV_SELL_RATIO:
                adjustment -= HIGH_DEV_SELL_PENALTY
                penalties += 1
                critical.append(f"{name}: High dev sell ratio ({ratio * 100:.1f}% sold)")
            elif ratio >= MODERATE_DEV_SELL_RATIO:
                adjustment -= MODERATE_DEV_SELL_PENALTY
                penalties += 1
                warnings.append(f"{name}: Moderate dev selling ({ratio * 100:.1f}% sold)")
            elif ratio < LOW_DEV_SELL_RATIO:
                adjustment += LOW_DEV_SELL_BONUS
                bonuses += 1
                positive.append(f"{name}: Developer held {(1 - ratio) * 100:.1f}% of tokens")

        if is_present(token.initial_liquidity):
            liquidity = token.initial_liquidity
            if liquidity == 0:
                adjustment -= ZERO_LIQUIDITY_PENALTY
                penalties += 1
                critical.append(f"{name}: Zero initial liquidity")
            elif liquidity < LOW_LIQUIDITY_USD:
                adjustment -= LOW_LIQUIDITY_PENALTY
                penalties += 1
                warnings.append(f"{name}: Low initial liquidity (${liquidity:,.0f})")
            elif liquidity >= STRONG_LIQUIDITY_USD:
                adjustment += STRONG_LIQUIDITY_BONUS
                bonuses += 1
                positive.append(f"{name}: Strong initial liquidity (${liquidity:,.0f})")

        if token.liquidity_locked is True:
            adjustment += LOCKED_LIQUIDITY_BONUS
            bonuses += 1
            positive.append(f"{name}: Liquidity is locked")
        elif token.liquidity_locked is False:
            adjustment -= UNLOCKED_LIQUIDITY_PENALTY
            penalties += 1
            warnings.append(f"{name}: Liquidity not locked")

        if is_present(token.holders_after_7_days):
            holders = token.holders_after_7_days
            if holders < FEW_HOLDERS:
                adjustment -= FEW_HOLDERS_PENALTY
                penalties += 1
                warnings.append(f"{name}: Very few holders ({holders} after 7 days)")
            elif holders >= MANY_HOLDERS:
                adjustment += HOLDER_GROWTH_BONUS
                bonuses += 1
                positive.append(f"{name}: Strong holder growth ({holders} holders after 7 days)")

    raw = HEURISTICS_BASE + adjustment
    score = max(HEURISTICS_FLOOR, min(HEURISTICS_CEILING, raw))
    if raw < HEURISTICS_FLOOR:
        logger.debug("Heuristics score %d clamped to floor %d", raw, HEURISTICS_FLOOR)

    return HeuristicsResult(
        score=int(score),
        notes=critical + warnings + positive,
        penalties_applied=penalties,
        bonuses_applied=bonuses,
        data_available=True,
    )


__all__ = [
    "HEURISTICS_FLOOR",
    "HEURISTICS_CEILING",
    "NEUTRAL_SCORE",
    "calculate_heuristics_score",
]
