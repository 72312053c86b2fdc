"""
Wallet Reputation

Trust scoring for Ethereum and Solana wallets based on wallet age, activity
and the outcomes of the tokens the wallet has launched.
"""

__version__ = "1.0.0"
__author__ = "Wallet Reputation Developers"

from .analyzer import WalletAnalyzer
from .config import Settings, get_settings
from .exceptions import (
    APIError,
    AppError,
    NetworkError,
    RateLimitError,
    ValidationError,
    format_error_response,
)
from .models import AnalysisResult, Outcome, TokenSummary, WalletInfo
from .provider_manager import ProviderManager, create_provider_manager
from .scoring import compute_score
from .validators import BlockchainType, detect_blockchain

__all__ = [
    "WalletAnalyzer",
    "Settings",
    "get_settings",
    "AppError",
    "ValidationError",
    "NetworkError",
    "RateLimitError",
    "APIError",
    "format_error_response",
    "AnalysisResult",
    "Outcome",
    "TokenSummary",
    "WalletInfo",
    "ProviderManager",
    "create_provider_manager",
    "compute_score",
    "BlockchainType",
    "detect_blockchain",
]
