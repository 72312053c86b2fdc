"""
Retry Module - exponential backoff, rate-limit handling and error isolation.

Every upstream call made by a provider adapter goes through this module.
Operations are zero-argument coroutine functions so they can be re-invoked
on each attempt. Delays are expressed in milliseconds.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from .exceptions import AppError, RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

Operation = Callable[[], Awaitable[T]]


# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_RETRYABLE_ERRORS: List[str] = [
    "ETIMEDOUT",
    "ECONNRESET",
    "ENOTFOUND",
    "ECONNREFUSED",
    "RATE_LIMIT_ERROR",
    "NETWORK_ERROR",
    "timeout",
    "timed out",
    "connection",
    "rate limit",
    "429",
    "502",
    "503",
    "504",
]

RATE_LIMIT_PATTERNS: List[str] = [
    "rate limit",
    "429",
    "too many requests",
    "throttle",
]


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total attempts including the first call
        initial_delay_ms: Delay before the second attempt
        max_delay_ms: Upper bound on any single delay
        backoff_factor: Multiplier applied per attempt
        jitter_factor: Maximum jitter as fraction of delay (0.0-1.0)
        retryable_errors: Case-insensitive substrings marking an error retryable
    """
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0
    jitter_factor: float = 0.1
    retryable_errors: List[str] = field(default_factory=lambda: list(DEFAULT_RETRYABLE_ERRORS))

    def __post_init__(self):
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay_ms < 0:
            raise ValueError("initial_delay_ms must be >= 0")
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must be >= initial_delay_ms")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")


DEFAULT_RETRY_CONFIG = RetryConfig()

# Explorer-style APIs throttle aggressively, so start slower.
PROVIDER_RETRY_POLICY = RetryConfig(
    max_attempts=3,
    initial_delay_ms=2000,
    max_delay_ms=10000,
    backoff_factor=2.0,
)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class ErrorAnnotation:
    """Captured failure of one operation."""
    metric: str
    error: str
    timestamp: str
    retryable: bool

    @classmethod
    def from_exception(cls, metric: str, exc: BaseException,
                       patterns: Optional[Sequence[str]] = None) -> "ErrorAnnotation":
        return cls(
            metric=metric,
            error=describe_error(exc),
            timestamp=datetime.now(timezone.utc).isoformat(),
            retryable=is_retryable_error(exc, patterns),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "error": self.error,
            "timestamp": self.timestamp,
            "retryable": self.retryable,
        }


@dataclass
class RetryResult(Generic[T]):
    """Outcome of retry_with_backoff."""
    success: bool
    data: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0
    total_delay_ms: int = 0
    annotation: Optional[ErrorAnnotation] = None

    def unwrap(self) -> T:
        """Return the data or re-raise the last error."""
        if not self.success and self.error is not None:
            raise self.error
        return self.data

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "error": describe_error(self.error) if self.error is not None else None,
            "attempts": self.attempts,
            "total_delay_ms": self.total_delay_ms,
        }


@dataclass
class IsolatedResult(Generic[T]):
    """Per-operation outcome of execute_with_isolation / batch_execute."""
    index: int
    success: bool
    data: Optional[T] = None
    error: Optional[ErrorAnnotation] = None


@dataclass
class DegradedResult(Generic[T]):
    data: T
    degraded: bool
    error: Optional[str] = None


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================

def describe_error(exc: BaseException) -> str:
    """Text used for pattern matching: exception type, code, status and message."""
    parts = [type(exc).__name__]
    if isinstance(exc, AppError):
        parts.append(exc.code)
        api_status = getattr(exc, "api_status_code", None)
        if api_status is not None:
            parts.append(str(api_status))
        parts.append(exc.message)
    else:
        code = getattr(exc, "errno", None)
        if code is not None:
            parts.append(str(code))
        status = getattr(exc, "status", None)
        if status is not None:
            parts.append(str(status))
        text = str(exc)
        if text:
            parts.append(text)
    return " ".join(parts)


def is_retryable_error(exc: BaseException, patterns: Optional[Sequence[str]] = None) -> bool:
    """Case-insensitive substring match of the error text against the patterns."""
    if patterns is None:
        patterns = DEFAULT_RETRYABLE_ERRORS
    text = describe_error(exc).lower()
    return any(p.lower() in text for p in patterns if p)


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, RateLimitError):
        return True
    text = describe_error(exc).lower()
    return any(p in text for p in RATE_LIMIT_PATTERNS)


def calculate_backoff_delay(attempt: int, config: RetryConfig = DEFAULT_RETRY_CONFIG) -> int:
    """
    Delay in ms before retrying after ``attempt`` failed.

    delay = initial * factor^(attempt-1), jittered by +/- jitter_factor,
    capped at max_delay_ms, floored at 0 and rounded to an integer.
    """
    attempt = max(1, attempt)
    base = config.initial_delay_ms * (config.backoff_factor ** (attempt - 1))
    jitter = base * config.jitter_factor * (random.random() * 2 - 1)
    delay = max(0.0, min(base + jitter, float(config.max_delay_ms)))
    return int(round(delay))


# =============================================================================
# RETRY LOOPS
# =============================================================================

async def retry_with_backoff(
    operation: Operation,
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, BaseException, int], None]] = None,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    metric: str = "operation",
) -> RetryResult:
    """
    Run ``operation`` up to ``config.max_attempts`` times.

    Never raises for operation failures; the last error is returned in
    the result. Cancellation propagates.
    """
    config = config or DEFAULT_RETRY_CONFIG
    total_delay_ms = 0
    last_error: Optional[BaseException] = None
    attempt = 0

    while attempt < config.max_attempts:
        attempt += 1
        try:
            data = await operation()
            return RetryResult(
                success=True,
                data=data,
                attempts=attempt,
                total_delay_ms=total_delay_ms,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last_error = exc

            if should_retry is not None:
                retryable = should_retry(exc)
            else:
                retryable = is_retryable_error(exc, config.retryable_errors)

            if not retryable or attempt >= config.max_attempts:
                break

            delay_ms = calculate_backoff_delay(attempt, config)
            logger.warning(
                "Retry attempt %d/%d after %dms delay. Exception: %s",
                attempt + 1, config.max_attempts, delay_ms, exc,
            )
            if on_retry is not None:
                on_retry(attempt, exc, delay_ms)

            await asyncio.sleep(delay_ms / 1000)
            total_delay_ms += delay_ms

    logger.error(
        "Operation failed after %d attempts (%dms total delay). Last error: %s",
        attempt, total_delay_ms, last_error,
    )
    return RetryResult(
        success=False,
        error=last_error,
        attempts=attempt,
        total_delay_ms=total_delay_ms,
        annotation=ErrorAnnotation.from_exception(metric, last_error, config.retryable_errors),
    )


async def with_rate_limit_handling(
    operation: Operation,
    delay_ms: int = 60000,
    max_retries: int = 3,
) -> Any:
    """
    Re-run ``operation`` after a fixed delay whenever it is throttled.

    Non rate-limit errors propagate immediately. After ``max_retries``
    throttled retries a RateLimitError is raised.
    """
    retries = 0
    while True:
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not is_rate_limit_error(exc):
                raise
            if retries >= max_retries:
                raise RateLimitError(
                    message=f"Rate limit exceeded after {max_retries} retries",
                    retry_after=delay_ms / 1000,
                ) from exc
            retries += 1
            logger.warning(
                "Rate limited, waiting %dms before retry %d/%d", delay_ms, retries, max_retries
            )
            await asyncio.sleep(delay_ms / 1000)


async def execute_with_isolation(
    operations: Sequence[Operation],
    labels: Optional[Sequence[str]] = None,
) -> List[IsolatedResult]:
    """Run all operations concurrently; one failure never affects another."""
    if not operations:
        return []

    async def _run(op: Operation) -> T:
        # op() may raise before it returns an awaitable.
        return await op()

    outcomes = await asyncio.gather(
        *(_run(op) for op in operations), return_exceptions=True
    )

    results: List[IsolatedResult] = []
    for index, outcome in enumerate(outcomes):
        label = labels[index] if labels and index < len(labels) else f"operation_{index}"
        if isinstance(outcome, BaseException):
            logger.debug("Isolated operation %s failed: %s", label, outcome)
            results.append(IsolatedResult(
                index=index,
                success=False,
                error=ErrorAnnotation.from_exception(label, outcome),
            ))
        else:
            results.append(IsolatedResult(index=index, success=True, data=outcome))
    return results


async def batch_execute(
    operations: Sequence[Operation],
    concurrency: int = 3,
    delay_between_ms: int = 100,
) -> List[IsolatedResult]:
    """
    Run operations in windows of ``concurrency``, pausing between windows.

    Results keep the input order and each window isolates its failures.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")

    results: List[IsolatedResult] = []
    for start in range(0, len(operations), concurrency):
        if start > 0 and delay_between_ms > 0:
            await asyncio.sleep(delay_between_ms / 1000)
        window = operations[start:start + concurrency]
        labels = [f"operation_{start + i}" for i in range(len(window))]
        for item in await execute_with_isolation(window, labels):
            item.index += start
            results.append(item)
    return results


async def with_graceful_degradation(
    operation: Operation,
    fallback: T,
    log_error: bool = True,
) -> DegradedResult:
    """Return the operation's data, or ``fallback`` flagged as degraded."""
    try:
        return DegradedResult(data=await operation(), degraded=False)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        if log_error:
            logger.warning("Operation degraded to fallback: %s", exc)
        return DegradedResult(data=fallback, degraded=True, error=str(exc) or type(exc).__name__)


# =============================================================================
# DECORATOR
# =============================================================================

def async_retry(
    config: Optional[RetryConfig] = None,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
) -> Callable[[F], F]:
    """
    Retry decorator for coroutine functions; re-raises the last error.

    Example:
        @async_retry(RetryConfig(max_attempts=5))
        async def fetch_data():
            ...
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            result = await retry_with_backoff(
                lambda: func(*args, **kwargs),
                config=config,
                should_retry=should_retry,
                metric=func.__name__,
            )
            return result.unwrap()

        return wrapper

    return decorator


__all__ = [
    "RetryConfig",
    "DEFAULT_RETRY_CONFIG",
    "DEFAULT_RETRYABLE_ERRORS",
    "PROVIDER_RETRY_POLICY",
    "RATE_LIMIT_PATTERNS",
    "ErrorAnnotation",
    "RetryResult",
    "IsolatedResult",
    "DegradedResult",
    "describe_error",
    "is_retryable_error",
    "is_rate_limit_error",
    "calculate_backoff_delay",
    "retry_with_backoff",
    "with_rate_limit_handling",
    "execute_with_isolation",
    "batch_execute",
    "with_graceful_degradation",
    "async_retry",
]
