"""
Token outcome classification.

``determine_outcome`` is total and deterministic: every TokenSummary maps to
exactly one of success / rug / unknown with a non-empty reason. Rules are
checked in priority order and the first match wins.
"""

import logging
import math
from typing import Any, Iterable, List, Optional, Tuple

from .models import Outcome, OutcomeResult, TokenResult, TokenLaunchSummary, TokenSummary

logger = logging.getLogger(__name__)

SUCCESS_MIN_HOLDERS = 200
RUG_DEV_SELL_RATIO = 0.5


def _number(value: Any) -> Optional[float]:
    """Numeric value of a present metric, else None. Booleans are not numbers here."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return float(value)


def determine_outcome(token: TokenSummary) -> OutcomeResult:
    holders = _number(token.holders_after_7_days)
    dev_sell = _number(token.dev_sell_ratio)
    liquidity = _number(token.initial_liquidity)

    # Success outranks rug when both hold.
    if token.liquidity_locked is True and holders is not None and holders >= SUCCESS_MIN_HOLDERS:
        return OutcomeResult(
            Outcome.SUCCESS,
            f"Liquidity locked and {int(holders)} holders after 7 days",
        )

    if dev_sell is not None and dev_sell >= RUG_DEV_SELL_RATIO:
        return OutcomeResult(
            Outcome.RUG,
            f"High developer sell ratio ({dev_sell * 100:.0f}% of tokens sold)",
        )

    if liquidity is not None and liquidity == 0:
        return OutcomeResult(Outcome.RUG, "Zero initial liquidity")

    return OutcomeResult(Outcome.UNKNOWN, "Insufficient data to classify token outcome")


def classify_tokens(tokens: Iterable[TokenSummary]) -> List[TokenResult]:
    results = []
    for token in tokens:
        result = determine_outcome(token)
        logger.debug("Token %s classified as %s: %s", token.token, result.outcome.value, result.reason)
        results.append(TokenResult(summary=token, outcome=result.outcome, reason=result.reason))
    return results


def count_outcomes(results: Iterable[TokenResult]) -> Tuple[int, int, int]:
    """Return (succeeded, rugged, unknown)."""
    succeeded = rugged = unknown = 0
    for item in results:
        if item.outcome == Outcome.SUCCESS:
            succeeded += 1
        elif item.outcome == Outcome.RUG:
            rugged += 1
        else:
            unknown += 1
    return succeeded, rugged, unknown


def summarize_launches(tokens: Iterable[TokenSummary]) -> TokenLaunchSummary:
    results = classify_tokens(tokens)
    succeeded, rugged, unknown = count_outcomes(results)
    return TokenLaunchSummary(
        total_launched=len(results),
        succeeded=succeeded,
        rugged=rugged,
        unknown=unknown,
        tokens=results,
    )


__all__ = [
    "SUCCESS_MIN_HOLDERS",
    "RUG_DEV_SELL_RATIO",
    "determine_outcome",
    "classify_tokens",
    "count_outcomes",
    "summarize_launches",
]
