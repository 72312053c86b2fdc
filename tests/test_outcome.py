# tests/test_outcome.py
"""
Unit tests for the token outcome classifier
"""
import math

import pytest

from wallet_reputation.models import Outcome, TokenSummary
from wallet_reputation.outcome import count_outcomes, classify_tokens, determine_outcome, summarize_launches


def token(**metrics):
    return TokenSummary(token="0x" + "11" * 20, **metrics)


class TestDetermineOutcome:
    """Test cases for determine_outcome"""

    def test_success(self):
        """Locked liquidity and 200+ holders"""
        result = determine_outcome(token(liquidity_locked=True, holders_after_7_days=200))
        assert result.outcome == Outcome.SUCCESS
        assert "Liquidity locked" in result.reason
        assert "200" in result.reason

    def test_success_outranks_rug(self):
        """Success is checked first"""
        result = determine_outcome(token(liquidity_locked=True, holders_after_7_days=500, dev_sell_ratio=0.9))
        assert result.outcome == Outcome.SUCCESS

    def test_rug_by_dev_sell(self):
        """Dev sell ratio at the threshold"""
        result = determine_outcome(token(dev_sell_ratio=0.5))
        assert result.outcome == Outcome.RUG
        assert "developer sell" in result.reason

    def test_rug_by_zero_liquidity(self):
        """Exactly zero liquidity is a rug"""
        result = determine_outcome(token(initial_liquidity=0))
        assert result.outcome == Outcome.RUG
        assert result.reason == "Zero initial liquidity"

    def test_missing_is_not_zero(self):
        """Absent liquidity is unknown, not a rug"""
        assert determine_outcome(token()).outcome == Outcome.UNKNOWN
        assert determine_outcome(token(initial_liquidity=math.nan)).outcome == Outcome.UNKNOWN

    @pytest.mark.parametrize("metrics", [
        {"liquidity_locked": True, "holders_after_7_days": 199},
        {"liquidity_locked": False, "holders_after_7_days": 1000},
        {"liquidity_locked": None, "holders_after_7_days": 1000},
        {"dev_sell_ratio": 0.49},
        {"initial_liquidity": 0.01},
    ])
    def test_unknown_near_thresholds(self, metrics):
        """Values just outside each rule stay unknown"""
        result = determine_outcome(token(**metrics))
        assert result.outcome == Outcome.UNKNOWN
        assert result.reason

    def test_deterministic(self):
        """Same input gives the same result"""
        summary = token(dev_sell_ratio=0.7)
        assert determine_outcome(summary) == determine_outcome(summary)


class TestSummaries:
    """Test cases for launch summaries"""

    def test_counts_partition_total(self, successful_token, rugged_token):
        """succeeded + rugged + unknown == total"""
        summary = summarize_launches([successful_token, rugged_token, token()])
        assert summary.total_launched == 3
        assert (summary.succeeded, summary.rugged, summary.unknown) == (1, 1, 1)
        assert summary.tokens[1].outcome == Outcome.RUG

    def test_count_outcomes(self, successful_token):
        """Tally over classified results"""
        assert count_outcomes(classify_tokens([successful_token, successful_token])) == (2, 0, 0)

    def test_to_dict(self, rugged_token):
        """Per-token detail includes outcome and reason"""
        data = summarize_launches([rugged_token]).to_dict()
        assert data["tokens"][0]["outcome"] == "rug"
        assert data["tokens"][0]["reason"]
