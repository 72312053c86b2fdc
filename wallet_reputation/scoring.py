"""
Score composition.

Combines four bounded sub-scores into a final integer score in [0, 100]:

    wallet age      0-25   saturates at one year
    activity        0-30   saturates at 1000 transactions
    token outcome   0-30   success ratio among classified tokens
    heuristics     10-100  per-token risk/trust adjustments

Weights shift toward wallet metrics when token metrics are missing. The
confidence level is derived from how much of the expected data was
actually populated. Given identical inputs and ``now``, the result is
identical.
"""

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from .calculators import format_age, wallet_age_days
from .heuristics import calculate_heuristics_score
from .models import (
    Confidence,
    ConfidenceLevel,
    Outcome,
    ScoreBreakdown,
    ScoreResult,
    ScoreWeights,
    TokenSummary,
    WalletInfo,
)
from .outcome import determine_outcome

logger = logging.getLogger(__name__)

WALLET_AGE_MAX = 25
ACTIVITY_MAX = 30
TOKEN_OUTCOME_MAX = 30
HEURISTICS_MAX = 100

UNKNOWN_AGE_SCORE = 5
NEUTRAL_TOKEN_OUTCOME_SCORE = 15

# (minimum days, points), highest first
WALLET_AGE_TIERS: Tuple[Tuple[int, int], ...] = (
    (365, 25),
    (180, 21),
    (90, 17),
    (30, 12),
    (14, 8),
    (7, 5),
    (0, 2),
)

# (minimum transactions, points), highest first
ACTIVITY_TIERS: Tuple[Tuple[int, int], ...] = (
    (1000, 30),
    (500, 26),
    (200, 22),
    (100, 18),
    (50, 13),
    (20, 9),
    (10, 5),
    (1, 2),
)

# Confidence inputs saturate at these values.
AGE_SATURATION_DAYS = 365
TX_SATURATION = 1000
TOKEN_SAMPLE_SATURATION = 10

LEVEL_ORDER = (
    ConfidenceLevel.LOW,
    ConfidenceLevel.MEDIUM_LOW,
    ConfidenceLevel.MEDIUM,
    ConfidenceLevel.HIGH,
)

CONFIDENCE_REASONS = {
    ConfidenceLevel.HIGH: "Comprehensive wallet and token data available for analysis",
    ConfidenceLevel.MEDIUM: "Partial data available - some metrics missing",
    ConfidenceLevel.MEDIUM_LOW: "Limited data available - analysis may be incomplete",
    ConfidenceLevel.LOW: "Minimal data available - score primarily based on wallet metrics",
}
NO_TOKENS_REASON = "No token launches detected - score based on wallet metrics only"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# =============================================================================
# SUB-SCORES
# =============================================================================

def wallet_age_score(age_days: Optional[float]) -> int:
    if age_days is None:
        return UNKNOWN_AGE_SCORE
    for threshold, points in WALLET_AGE_TIERS:
        if age_days >= threshold:
            return points
    return WALLET_AGE_TIERS[-1][1]


def activity_score(tx_count: int) -> int:
    for threshold, points in ACTIVITY_TIERS:
        if tx_count >= threshold:
            return points
    return 0


def token_outcome_score(tokens: Sequence[TokenSummary]) -> Tuple[int, int, int]:
    """Return (score, succeeded, rugged). Unknown outcomes are excluded from the ratio."""
    succeeded = rugged = 0
    for token in tokens:
        outcome = determine_outcome(token).outcome
        if outcome == Outcome.SUCCESS:
            succeeded += 1
        elif outcome == Outcome.RUG:
            rugged += 1
    classified = succeeded + rugged
    if classified == 0:
        return NEUTRAL_TOKEN_OUTCOME_SCORE, succeeded, rugged
    return _round_half_up(TOKEN_OUTCOME_MAX * succeeded / classified), succeeded, rugged


# =============================================================================
# WEIGHTS & CONFIDENCE
# =============================================================================

def calculate_data_completeness(tokens: Sequence[TokenSummary]) -> float:
    """Fraction of the four per-token metrics that are populated, across all tokens."""
    if not tokens:
        return 0.0
    present = sum(token.present_metrics() for token in tokens)
    return present / (len(TokenSummary.METRIC_FIELDS) * len(tokens))


def determine_weights(token_count: int, metric_completeness: float) -> ScoreWeights:
    if token_count == 0:
        return ScoreWeights(0.6, 0.4, 0.0, 0.0)
    if metric_completeness >= 0.75:
        return ScoreWeights(0.2, 0.1, 0.35, 0.35)
    if metric_completeness >= 0.5:
        return ScoreWeights(0.3, 0.2, 0.25, 0.25)
    if metric_completeness >= 0.25:
        return ScoreWeights(0.4, 0.25, 0.175, 0.175)
    return ScoreWeights(0.5, 0.3, 0.1, 0.1)


def _level_for(completeness: float) -> ConfidenceLevel:
    if completeness >= 0.75:
        return ConfidenceLevel.HIGH
    if completeness >= 0.5:
        return ConfidenceLevel.MEDIUM
    if completeness >= 0.25:
        return ConfidenceLevel.MEDIUM_LOW
    return ConfidenceLevel.LOW


def _downgrade(level: ConfidenceLevel) -> ConfidenceLevel:
    index = LEVEL_ORDER.index(level)
    return LEVEL_ORDER[max(0, index - 1)]


def calculate_confidence(
    wallet_info: WalletInfo,
    tokens: Sequence[TokenSummary],
    age_days: Optional[float],
) -> Tuple[Confidence, List[str]]:
    """
    Confidence plus the notes explaining any downgrade.

    data_completeness = 0.25 * age/365 + 0.25 * tx/1000 + 0.2 * tokens/10
    + 0.3 * token-metric completeness, each term saturating at 1.
    """
    age_part = min(age_days / AGE_SATURATION_DAYS, 1.0) if age_days is not None else 0.0
    tx_part = min(wallet_info.tx_count / TX_SATURATION, 1.0)
    token_part = min(len(tokens) / TOKEN_SAMPLE_SATURATION, 1.0)
    metric_part = calculate_data_completeness(tokens)

    completeness = round(
        0.25 * age_part + 0.25 * tx_part + 0.2 * token_part + 0.3 * metric_part, 4
    )
    completeness = min(1.0, max(0.0, completeness))
    level = _level_for(completeness)

    notes: List[str] = []
    if wallet_info.created_at is None:
        level = _downgrade(level)
        notes.append("Wallet creation date unavailable - confidence reduced")
    if wallet_info.tx_count == 0:
        level = _downgrade(level)
        notes.append("No transactions found for wallet - confidence reduced")

    reason = NO_TOKENS_REASON if not tokens else CONFIDENCE_REASONS[level]
    return Confidence(level=level, reason=reason, data_completeness=completeness), notes


# =============================================================================
# COMPOSITION
# =============================================================================

def compute_score(
    wallet_info: WalletInfo,
    tokens: Sequence[TokenSummary],
    now: Optional[datetime] = None,
) -> ScoreResult:
    now = now or datetime.now(timezone.utc)
    tokens = list(tokens)

    raw_age = wallet_age_days(wallet_info.created_at, now)
    age_days = math.floor(raw_age) if raw_age is not None else None

    age_points = wallet_age_score(age_days)
    activity_points = activity_score(wallet_info.tx_count)
    outcome_points, succeeded, rugged = token_outcome_score(tokens)
    heuristics = calculate_heuristics_score(tokens)

    metric_completeness = calculate_data_completeness(tokens)
    weights = determine_weights(len(tokens), metric_completeness)

    weighted = (
        weights.wallet_age * age_points / WALLET_AGE_MAX
        + weights.activity * activity_points / ACTIVITY_MAX
        + weights.token_outcome * outcome_points / TOKEN_OUTCOME_MAX
        + weights.heuristics * heuristics.score / HEURISTICS_MAX
    )
    final = max(0, min(100, _round_half_up(weighted * 100)))

    logger.debug(
        "Sub-scores age=%d activity=%d outcome=%d heuristics=%d weights=%s final=%d",
        age_points, activity_points, outcome_points, heuristics.score, weights.to_dict(), final,
    )

    confidence, confidence_notes = calculate_confidence(wallet_info, tokens, age_days)

    age_label = wallet_info.age or format_age(wallet_info.created_at, now) or "unknown"
    notes = [
        f"Wallet age: {age_label} ({age_points}/{WALLET_AGE_MAX} points)",
        f"Transaction count: {wallet_info.tx_count} ({activity_points}/{ACTIVITY_MAX} points)",
    ]
    if tokens:
        unknown = len(tokens) - succeeded - rugged
        notes.append(
            f"Token launches: {len(tokens)} total, {succeeded} succeeded, "
            f"{rugged} rugged, {unknown} unknown ({outcome_points}/{TOKEN_OUTCOME_MAX} points)"
        )
    else:
        notes.append("No token launches detected")
    notes.extend(heuristics.notes)
    notes.extend(confidence_notes)
    notes.append(f"Confidence: {confidence.level.value} ({confidence.reason})")
    notes.append(f"Data completeness: {round(confidence.data_completeness * 100)}%")

    breakdown = ScoreBreakdown(
        wallet_age_score=age_points,
        activity_score=activity_points,
        token_outcome_score=outcome_points,
        heuristics_score=heuristics.score,
        final=final,
    )
    return ScoreResult(
        score=final,
        breakdown=breakdown,
        confidence=confidence,
        notes=notes,
        weights=weights,
        heuristics=heuristics,
    )


__all__ = [
    "WALLET_AGE_MAX",
    "ACTIVITY_MAX",
    "TOKEN_OUTCOME_MAX",
    "wallet_age_score",
    "activity_score",
    "token_outcome_score",
    "calculate_data_completeness",
    "determine_weights",
    "calculate_confidence",
    "compute_score",
]
