"""
Exception Hierarchy for the Wallet Reputation Engine.

Every error raised by the engine derives from AppError, which carries:
- A stable error code for logging and for the caller-facing response
- An HTTP-style status code (4xx for bad input, 5xx for upstream trouble)
- Optional context dictionary with debugging info
- is_recoverable flag consumed by the retry engine
- retry_after hint for throttled upstreams

Provider failures are normally absorbed by the provider manager; only
malformed input surfaces to the caller as a hard failure.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


# =============================================================================
# ERROR CODES & MESSAGES
# =============================================================================

class ErrorCodes:
    """Stable error codes exposed in error responses."""
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    API_ERROR = "API_ERROR"
    SCORING_ERROR = "SCORING_ERROR"


class ErrorMessages:
    """Canonical human-readable messages."""
    INVALID_ADDRESS = (
        "Invalid address format. Must be either an Ethereum address (0x...) "
        "or a Solana address (base58-encoded)."
    )
    INVALID_ETHEREUM_ADDRESS = (
        "Invalid Ethereum address format. Must be 42 characters starting with 0x "
        "followed by 40 hexadecimal characters."
    )
    INVALID_SOLANA_ADDRESS = (
        "Invalid Solana address format. Must be 32-44 base58 characters."
    )
    EMPTY_ADDRESS = "Address is required"
    TOO_MANY_TOKENS = "Maximum {max_tokens} tokens allowed, you provided {count}"
    RATE_LIMITED = "Rate limit exceeded"
    UNEXPECTED = "An unexpected error occurred"


# =============================================================================
# BASE EXCEPTION
# =============================================================================

@dataclass
class AppError(Exception):
    """
    Base exception for all wallet reputation errors.

    Attributes:
        message: Human-readable error description
        code: Stable error code (e.g., "VALIDATION_ERROR")
        status_code: HTTP-style status reported to callers
        request_id: Identifier of the analysis request, when known
        context: Optional dictionary with debugging information
        is_recoverable: Whether the operation can be retried
        retry_after: Seconds to wait before retry (for rate limits)
        timestamp: When the error occurred
    """
    message: str
    code: str = ErrorCodes.INTERNAL_ERROR
    status_code: int = 500
    request_id: Optional[str] = None
    context: dict[str, Any] = field(default_factory=dict)
    is_recoverable: bool = False
    retry_after: Optional[float] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        """Initialize the exception with the formatted message."""
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the error message with code and context."""
        base = f"[{self.code}] {self.message}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base += f" | Context: {context_str}"
        return base

    def details(self) -> dict[str, Any]:
        """Caller-safe details for error responses."""
        return dict(self.context)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
            "request_id": self.request_id,
            "context": self.context,
            "is_recoverable": self.is_recoverable,
            "retry_after": self.retry_after,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        return self.format_message()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code!r}, "
            f"message={self.message!r}, "
            f"is_recoverable={self.is_recoverable})"
        )


# =============================================================================
# TAXONOMY
# =============================================================================

@dataclass
class ValidationError(AppError):
    """Malformed address or token-list input."""
    code: str = ErrorCodes.VALIDATION_ERROR
    status_code: int = 400
    is_recoverable: bool = False
    field: Optional[str] = None

    def details(self) -> dict[str, Any]:
        details = dict(self.context)
        if self.field is not None:
            details["field"] = self.field
        return details


@dataclass
class NetworkError(AppError):
    """Transport failure reaching a provider."""
    code: str = ErrorCodes.NETWORK_ERROR
    status_code: int = 503
    is_recoverable: bool = True
    provider: Optional[str] = None

    def details(self) -> dict[str, Any]:
        details = dict(self.context)
        if self.provider is not None:
            details["provider"] = self.provider
        return details


@dataclass
class RateLimitError(AppError):
    """Upstream throttling."""
    code: str = ErrorCodes.RATE_LIMIT_ERROR
    status_code: int = 429
    is_recoverable: bool = True
    retry_after: Optional[float] = 60.0
    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_time: Optional[float] = None

    def details(self) -> dict[str, Any]:
        details = dict(self.context)
        details["retry_after"] = self.retry_after
        for key in ("limit", "remaining", "reset_time"):
            value = getattr(self, key)
            if value is not None:
                details[key] = value
        return details


@dataclass
class APIError(AppError):
    """Provider responded but signaled a logical failure."""
    code: str = ErrorCodes.API_ERROR
    status_code: int = 502
    is_recoverable: bool = True
    provider: str = "unknown"
    api_status_code: Optional[int] = None

    def __post_init__(self) -> None:
        prefix = f"{self.provider}: "
        if not self.message.startswith(prefix):
            self.message = prefix + self.message
        super().__post_init__()

    def details(self) -> dict[str, Any]:
        details = dict(self.context)
        details["provider"] = self.provider
        if self.api_status_code is not None:
            details["api_status_code"] = self.api_status_code
        return details


@dataclass
class ScoringError(AppError):
    """Score composition received inconsistent input."""
    code: str = ErrorCodes.SCORING_ERROR
    status_code: int = 500
    is_recoverable: bool = False


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_request_id() -> str:
    """Generate a request id of the form ``req_<epoch-ms>_<random>``."""
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, AppError):
        return error.is_recoverable
    return False


def get_retry_delay(error: Exception, default: float = 1.0) -> float:
    """Get the recommended retry delay for an error."""
    if isinstance(error, AppError) and error.retry_after is not None:
        return error.retry_after
    return default


def wrap_exception(
    original: Exception,
    wrapper_class: type[AppError],
    message: Optional[str] = None,
    **kwargs: Any
) -> AppError:
    """Wrap a generic exception in an AppError subclass."""
    msg = message or str(original) or type(original).__name__
    context = kwargs.pop("context", {})
    context["original_error"] = type(original).__name__
    context["original_message"] = str(original)

    return wrapper_class(
        message=msg,
        context=context,
        **kwargs
    )


def create_network_error(
    message: str,
    provider: Optional[str] = None,
    original: Optional[Exception] = None,
) -> NetworkError:
    """Build a NetworkError, keeping the original exception name in context."""
    context: dict[str, Any] = {}
    if original is not None:
        context["original_error"] = type(original).__name__
    return NetworkError(message=message, provider=provider, context=context)


def create_rate_limit_error(
    retry_after: Optional[float] = None,
    limit: Optional[int] = None,
    remaining: Optional[int] = None,
    reset_time: Optional[float] = None,
    message: str = ErrorMessages.RATE_LIMITED,
) -> RateLimitError:
    return RateLimitError(
        message=message,
        retry_after=60.0 if retry_after is None else retry_after,
        limit=limit,
        remaining=remaining,
        reset_time=reset_time,
    )


def create_api_error(
    provider: str,
    message: str,
    api_status_code: Optional[int] = None,
) -> APIError:
    return APIError(message=message, provider=provider, api_status_code=api_status_code)


def format_error_response(
    error: BaseException,
    request_id: Optional[str] = None,
) -> dict[str, Any]:
    """
    Build the uniform caller-facing error body.

    The result always has ``code`` and ``message``; ``request_id`` and
    ``details`` are included when known. Non-taxonomy errors become
    INTERNAL_ERROR with the original message under
    ``details.original_message``. No stack trace is ever included.
    """
    if isinstance(error, AppError):
        body: dict[str, Any] = {
            "code": error.code or ErrorCodes.INTERNAL_ERROR,
            "message": error.message or ErrorMessages.UNEXPECTED,
        }
        rid = request_id or error.request_id
        details = _jsonable(error.details())
    else:
        body = {
            "code": ErrorCodes.INTERNAL_ERROR,
            "message": ErrorMessages.UNEXPECTED,
        }
        rid = request_id
        details = {"original_message": str(error) or type(error).__name__}

    if rid:
        body["request_id"] = rid
    if details:
        body["details"] = details
    return {"error": body}


def _jsonable(value: Any) -> Any:
    """Coerce a details payload into plain JSON types."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


# =============================================================================
# EXCEPTION MAPPING
# =============================================================================

ERROR_CODE_MAP: dict[str, type[AppError]] = {
    ErrorCodes.INTERNAL_ERROR: AppError,
    ErrorCodes.VALIDATION_ERROR: ValidationError,
    ErrorCodes.NETWORK_ERROR: NetworkError,
    ErrorCodes.RATE_LIMIT_ERROR: RateLimitError,
    ErrorCodes.API_ERROR: APIError,
    ErrorCodes.SCORING_ERROR: ScoringError,
}


__all__ = [
    "ErrorCodes",
    "ErrorMessages",
    "AppError",
    "ValidationError",
    "NetworkError",
    "RateLimitError",
    "APIError",
    "ScoringError",
    "generate_request_id",
    "is_retryable",
    "get_retry_delay",
    "wrap_exception",
    "create_network_error",
    "create_rate_limit_error",
    "create_api_error",
    "format_error_response",
    "ERROR_CODE_MAP",
]
