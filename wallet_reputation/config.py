"""
Configuration for the Wallet Reputation Engine.

Settings are loaded from environment variables (and an optional ``.env``)
using Pydantic v2 BaseSettings. Every component also accepts explicit
arguments, so settings are only the default source of values.

Usage:
    from wallet_reputation.config import get_settings
    print(get_settings().retry.max_attempts)
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# BASE CONFIGURATION
# =============================================================================

class BaseConfig(BaseSettings):
    """Base configuration with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


# =============================================================================
# PROVIDER CONFIGURATION
# =============================================================================

class ProviderSettings(BaseConfig):
    """Upstream data provider credentials and limits."""

    etherscan_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Etherscan API key (enables the Etherscan provider)",
    )

    alchemy_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Alchemy API key (enables the Alchemy fallback provider)",
    )

    helius_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Helius API key (enables the Solana provider)",
    )

    etherscan_base_url: str = Field(
        default="https://api.etherscan.io/v2/api",
        description="Etherscan API endpoint",
    )

    etherscan_chain_id: int = Field(
        default=1,
        ge=1,
        description="EVM chain id passed to Etherscan",
    )

    alchemy_base_url: str = Field(
        default="https://eth-mainnet.g.alchemy.com/v2",
        description="Alchemy JSON-RPC endpoint (API key appended)",
    )

    helius_base_url: str = Field(
        default="https://api.helius.xyz/v0",
        description="Helius enhanced API endpoint",
    )

    helius_rpc_url: str = Field(
        default="https://mainnet.helius-rpc.com",
        description="Helius JSON-RPC endpoint",
    )

    request_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="HTTP timeout per upstream request in seconds",
    )

    fallback_timeout: float = Field(
        default=300.0,
        ge=1.0,
        le=3600.0,
        description="Timeout for one provider call made by the manager, in seconds",
    )

    health_check_interval: float = Field(
        default=60.0,
        ge=5.0,
        description="Seconds between provider health checks",
    )

    etherscan_min_interval_ms: int = Field(default=400, ge=0, description="Min spacing between Etherscan calls")
    alchemy_min_interval_ms: int = Field(default=100, ge=0, description="Min spacing between Alchemy calls")
    helius_min_interval_ms: int = Field(default=200, ge=0, description="Min spacing between Helius calls")

    max_receipt_lookups: int = Field(
        default=20,
        ge=0,
        le=200,
        description="Max transaction receipts fetched per address during token discovery",
    )

    max_enhanced_tokens: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Max tokens per wallet enriched with liquidity, holder and dev-sell metrics",
    )

    max_signature_pages: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Max signature pages walked to find a Solana wallet's first transaction",
    )

    eth_price_usd: float = Field(
        default=2000.0,
        gt=0,
        description="ETH price used to express pool liquidity in USD",
    )


# =============================================================================
# RETRY CONFIGURATION
# =============================================================================

class RetrySettings(BaseConfig):
    """Backoff and batching behavior."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=".env",
        extra="ignore",
    )

    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per upstream call")
    initial_delay_ms: int = Field(default=1000, ge=0, description="First backoff delay")
    max_delay_ms: int = Field(default=10000, ge=0, description="Backoff delay cap")
    backoff_factor: float = Field(default=2.0, ge=1.0, le=10.0, description="Backoff multiplier")
    jitter_factor: float = Field(default=0.1, ge=0.0, le=1.0, description="Jitter fraction")
    rate_limit_delay_ms: int = Field(default=60000, ge=0, description="Fixed wait after throttling")
    max_rate_limit_retries: int = Field(default=3, ge=0, le=10, description="Throttled retries")
    batch_concurrency: int = Field(default=3, ge=1, le=20, description="Concurrent batch operations")
    batch_delay_ms: int = Field(default=100, ge=0, description="Pause between batch windows")

    @field_validator("max_delay_ms")
    @classmethod
    def validate_max_delay(cls, v: int, info) -> int:
        initial = info.data.get("initial_delay_ms")
        if initial is not None and v < initial:
            raise ValueError("max_delay_ms must be >= initial_delay_ms")
        return v

    def to_retry_config(self):
        from .retry import RetryConfig
        return RetryConfig(
            max_attempts=self.max_attempts,
            initial_delay_ms=self.initial_delay_ms,
            max_delay_ms=self.max_delay_ms,
            backoff_factor=self.backoff_factor,
            jitter_factor=self.jitter_factor,
        )


# =============================================================================
# CACHE CONFIGURATION
# =============================================================================

class CacheSettings(BaseConfig):
    """In-process cache capacity and lifetimes (seconds)."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        extra="ignore",
    )

    max_entries: int = Field(default=1000, ge=1, le=1_000_000, description="Cache capacity")
    analysis_ttl: int = Field(default=300, ge=0, description="Analysis result lifetime")
    wallet_info_ttl: int = Field(default=600, ge=0, description="Wallet info lifetime")
    tokens_ttl: int = Field(default=600, ge=0, description="Token list lifetime")
    request_ttl: int = Field(default=300, ge=0, description="Raw upstream response lifetime")
    contract_creation_ttl: int = Field(default=86400, ge=0, description="Discovered contract lifetime")
    holder_count_ttl: int = Field(default=3600, ge=0, description="Holder count lifetime")
    dev_sell_ttl: int = Field(default=21600, ge=0, description="Dev sell ratio lifetime")
    verification_ttl: int = Field(default=86400, ge=0, description="Creator verification lifetime")
    liquidity_ttl: int = Field(default=86400, ge=0, description="Pool liquidity and lock status lifetime")

    def to_ttl_policy(self):
        from .cache import TTLPolicy
        return TTLPolicy(
            wallet_info=self.wallet_info_ttl,
            tokens=self.tokens_ttl,
            request=self.request_ttl,
            contract_creation=self.contract_creation_ttl,
            holder_count=self.holder_count_ttl,
            dev_sell_ratio=self.dev_sell_ttl,
            verification=self.verification_ttl,
            liquidity=self.liquidity_ttl,
        )


# =============================================================================
# ANALYSIS CONFIGURATION
# =============================================================================

class AnalysisSettings(BaseConfig):
    """Pipeline limits."""

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_",
        env_file=".env",
        extra="ignore",
    )

    max_manual_tokens: int = Field(default=10, ge=1, le=100, description="Explicit token list cap")
    pipeline_timeout: Optional[float] = Field(
        default=None,
        ge=1.0,
        description="Overall timeout for one analysis in seconds (None = unbounded)",
    )


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

class LoggingSettings(BaseConfig):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )

    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
        description="Log message format",
    )

    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log date format",
    )

    file_enabled: bool = Field(
        default=False,
        description="Enable file logging",
    )

    file_path: Path = Field(
        default=Path("logs/wallet_reputation.log"),
        description="Log file path",
    )

    file_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        ge=1024,
        description="Max log file size in bytes",
    )

    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of backup log files",
    )


# =============================================================================
# APPLICATION SETTINGS (MAIN)
# =============================================================================

class Settings(BaseConfig):
    """Aggregates all configuration sections."""

    app_name: str = Field(default="Wallet Reputation", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")

    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def mask_secrets(self) -> dict[str, Any]:
        """
        Return settings dict with sensitive values masked.
        Safe for logging and debugging.
        """
        def mask_value(v: Any) -> Any:
            if isinstance(v, SecretStr):
                secret = v.get_secret_value()
                if len(secret) > 8:
                    return f"{secret[:4]}...{secret[-4:]}"
                return "***"
            elif isinstance(v, dict):
                return {k: mask_value(val) for k, val in v.items()}
            elif isinstance(v, Path):
                return str(v)
            return v

        return mask_value(self.model_dump())


# =============================================================================
# SINGLETON & CACHING
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Clear settings cache and reload from environment."""
    get_settings.cache_clear()
    return get_settings()


def secret_value(secret: Optional[SecretStr]) -> Optional[str]:
    """Plain value of an optional secret; blank strings count as unset."""
    if secret is None:
        return None
    value = secret.get_secret_value().strip()
    return value or None


__all__ = [
    "LogLevel",
    "BaseConfig",
    "ProviderSettings",
    "RetrySettings",
    "CacheSettings",
    "AnalysisSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "reload_settings",
    "secret_value",
]
