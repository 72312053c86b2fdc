"""
Data model for wallet analysis.

Every optional metric distinguishes "unknown" (None) from a present zero or
False. Presence must always be tested with ``is_present`` and never by
truthiness, since 0 liquidity and an unlocked pool are meaningful signals.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def is_present(value: Any) -> bool:
    """True if the datum is known. None and NaN count as absent."""
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


def parse_timestamp(value: Union[None, str, int, float, datetime]) -> Optional[datetime]:
    """Accept ISO-8601 strings, epoch seconds or datetimes; return aware UTC or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    text = str(value).strip()
    if text.isdigit():
        return datetime.fromtimestamp(int(text), tz=timezone.utc)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _clean(value: Optional[float]) -> Optional[float]:
    return value if is_present(value) else None


# =============================================================================
# PROVIDER DATA
# =============================================================================

@dataclass(frozen=True)
class WalletInfo:
    """Wallet-level facts returned by a provider."""
    created_at: Optional[datetime] = None
    first_tx_hash: Optional[str] = None
    tx_count: int = 0
    age: Optional[str] = None

    def __post_init__(self):
        if self.tx_count < 0:
            raise ValueError("tx_count must be >= 0")

    @classmethod
    def empty(cls) -> "WalletInfo":
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created_at": _iso(self.created_at),
            "first_tx_hash": self.first_tx_hash,
            "tx_count": self.tx_count,
            "age": self.age,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WalletInfo":
        return cls(
            created_at=parse_timestamp(data.get("created_at")),
            first_tx_hash=data.get("first_tx_hash"),
            tx_count=int(data.get("tx_count") or 0),
            age=data.get("age"),
        )


@dataclass
class TokenSummary:
    """A token launched by the wallet, with nullable risk/trust metrics."""
    token: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    creator: Optional[str] = None
    launch_at: Optional[datetime] = None
    initial_liquidity: Optional[float] = None
    holders_after_7_days: Optional[int] = None
    liquidity_locked: Optional[bool] = None
    dev_sell_ratio: Optional[float] = None
    # Set only for explicitly supplied tokens.
    verified: Optional[bool] = None
    verification_warning: Optional[str] = None

    METRIC_FIELDS = (
        "initial_liquidity",
        "holders_after_7_days",
        "liquidity_locked",
        "dev_sell_ratio",
    )

    def __post_init__(self):
        if is_present(self.dev_sell_ratio):
            self.dev_sell_ratio = min(1.0, max(0.0, float(self.dev_sell_ratio)))
        if is_present(self.initial_liquidity) and self.initial_liquidity < 0:
            raise ValueError("initial_liquidity must be >= 0")
        if is_present(self.holders_after_7_days) and self.holders_after_7_days < 0:
            raise ValueError("holders_after_7_days must be >= 0")

    def present_metrics(self) -> int:
        return sum(1 for name in self.METRIC_FIELDS if is_present(getattr(self, name)))

    def has_any_metric(self) -> bool:
        return self.present_metrics() > 0

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "token": self.token,
            "name": self.name,
            "symbol": self.symbol,
            "creator": self.creator,
            "launch_at": _iso(self.launch_at),
            "initial_liquidity": _clean(self.initial_liquidity),
            "holders_after_7_days": _clean(self.holders_after_7_days),
            "liquidity_locked": self.liquidity_locked,
            "dev_sell_ratio": _clean(self.dev_sell_ratio),
        }
        if self.verified is not None:
            data["verified"] = self.verified
        if self.verification_warning is not None:
            data["verification_warning"] = self.verification_warning
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSummary":
        return cls(
            token=data["token"],
            name=data.get("name"),
            symbol=data.get("symbol"),
            creator=data.get("creator"),
            launch_at=parse_timestamp(data.get("launch_at")),
            initial_liquidity=data.get("initial_liquidity"),
            holders_after_7_days=data.get("holders_after_7_days"),
            liquidity_locked=data.get("liquidity_locked"),
            dev_sell_ratio=data.get("dev_sell_ratio"),
            verified=data.get("verified"),
            verification_warning=data.get("verification_warning"),
        )


# =============================================================================
# DERIVED VALUES
# =============================================================================

class Outcome(str, Enum):
    SUCCESS = "success"
    RUG = "rug"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class OutcomeResult:
    outcome: Outcome
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"outcome": self.outcome.value, "reason": self.reason}


@dataclass
class HeuristicsResult:
    score: int
    notes: List[str] = field(default_factory=list)
    penalties_applied: int = 0
    bonuses_applied: int = 0
    data_available: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "notes": list(self.notes),
            "penalties_applied": self.penalties_applied,
            "bonuses_applied": self.bonuses_applied,
            "data_available": self.data_available,
        }


@dataclass(frozen=True)
class ScoreBreakdown:
    wallet_age_score: int
    activity_score: int
    token_outcome_score: int
    heuristics_score: int
    final: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet_age_score": self.wallet_age_score,
            "activity_score": self.activity_score,
            "token_outcome_score": self.token_outcome_score,
            "heuristics_score": self.heuristics_score,
            "final": self.final,
        }


class ConfidenceLevel(str, Enum):
    LOW = "LOW"
    MEDIUM_LOW = "MEDIUM-LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class Confidence:
    level: ConfidenceLevel
    reason: str
    data_completeness: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "reason": self.reason,
            "data_completeness": self.data_completeness,
        }


@dataclass(frozen=True)
class ScoreWeights:
    wallet_age: float
    activity: float
    token_outcome: float
    heuristics: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "wallet_age": self.wallet_age,
            "activity": self.activity,
            "token_outcome": self.token_outcome,
            "heuristics": self.heuristics,
        }


@dataclass
class ScoreResult:
    score: int
    breakdown: ScoreBreakdown
    confidence: Confidence
    notes: List[str] = field(default_factory=list)
    weights: Optional[ScoreWeights] = None
    heuristics: Optional[HeuristicsResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "breakdown": self.breakdown.to_dict(),
            "confidence": self.confidence.to_dict(),
            "notes": list(self.notes),
        }


# =============================================================================
# ANALYSIS RESULT
# =============================================================================

@dataclass
class TokenResult:
    """Per-token detail: the summary plus its classified outcome."""
    summary: TokenSummary
    outcome: Outcome
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary.to_dict()
        data["outcome"] = self.outcome.value
        data["reason"] = self.reason
        return data


@dataclass
class TokenLaunchSummary:
    total_launched: int = 0
    succeeded: int = 0
    rugged: int = 0
    unknown: int = 0
    tokens: List[TokenResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_launched": self.total_launched,
            "succeeded": self.succeeded,
            "rugged": self.rugged,
            "unknown": self.unknown,
            "tokens": [t.to_dict() for t in self.tokens],
        }


@dataclass
class AnalysisMetadata:
    processing_time_ms: int = 0
    cached: bool = False
    providers_used: List[str] = field(default_factory=list)
    request_id: Optional[str] = None
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processing_time_ms": self.processing_time_ms,
            "cached": self.cached,
            "providers_used": list(self.providers_used),
            "request_id": self.request_id,
            "analyzed_at": self.analyzed_at.isoformat(),
        }


@dataclass
class AnalysisResult:
    address: str
    blockchain: str
    score: int
    breakdown: ScoreBreakdown
    confidence: Confidence
    notes: List[str]
    wallet_info: WalletInfo
    token_launch_summary: TokenLaunchSummary
    metadata: AnalysisMetadata

    def as_cached(self, request_id: Optional[str], processing_time_ms: int) -> "AnalysisResult":
        """Copy served from cache, with fresh request metadata."""
        return replace(
            self,
            metadata=replace(
                self.metadata,
                cached=True,
                request_id=request_id,
                processing_time_ms=processing_time_ms,
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "blockchain": self.blockchain,
            "score": self.score,
            "breakdown": self.breakdown.to_dict(),
            "confidence": self.confidence.to_dict(),
            "notes": list(self.notes),
            "wallet_info": self.wallet_info.to_dict(),
            "token_launch_summary": self.token_launch_summary.to_dict(),
            "metadata": self.metadata.to_dict(),
        }


__all__ = [
    "is_present",
    "parse_timestamp",
    "WalletInfo",
    "TokenSummary",
    "Outcome",
    "OutcomeResult",
    "HeuristicsResult",
    "ScoreBreakdown",
    "ConfidenceLevel",
    "Confidence",
    "ScoreWeights",
    "ScoreResult",
    "TokenResult",
    "TokenLaunchSummary",
    "AnalysisMetadata",
    "AnalysisResult",
]
