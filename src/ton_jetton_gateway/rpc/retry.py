"""Retry logic with exponential backoff for rate-limited RPC calls."""

import logging
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from ton_jetton_gateway.exceptions import ErrorKind, RetryExhaustedError, classify_error
from ton_jetton_gateway.rpc.limiter import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryConfig:
    """
    Configuration for retry behavior.

    Parameters
    ----------
    max_attempts : int
        Total number of attempts, including the first call
    base_delay : float
        Delay in seconds before the first retry
    growth_factor : float
        Multiplier applied to the delay after each retry
    max_delay : float | None
        Optional ceiling for a single delay

    """

    def __init__(
        self,
        max_attempts: int = 4,
        base_delay: float = 1.0,
        growth_factor: float = 1.5,
        max_delay: float | None = None,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {max_attempts}"
            raise ValueError(msg)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.growth_factor = growth_factor
        self.max_delay = max_delay

    def get_delay(self, attempt: int) -> float:
        """
        Calculate delay after a given failed attempt using exponential backoff.

        Parameters
        ----------
        attempt : int
            Failed attempt number (0-indexed)

        Returns
        -------
        float
            Delay in seconds

        """
        delay = self.base_delay * (self.growth_factor**attempt)
        if self.max_delay is not None:
            return min(delay, self.max_delay)
        return delay


class RetryPolicy:
    """
    Runs operations through the rate limiter and retries them on failure.

    Every attempt first passes ``limiter.acquire()``. Errors classified as
    overload are reported back to the limiter before the retry delay.

    Parameters
    ----------
    limiter : RateLimiter
        Shared limiter gating every attempt
    config : RetryConfig | None
        Retry configuration
    sleep : Callable[[float], None]
        Function used to wait between attempts

    """

    def __init__(
        self,
        limiter: RateLimiter,
        config: RetryConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.limiter = limiter
        self.config = config or RetryConfig()
        self._sleep = sleep

    def call(self, operation: Callable[[], T], name: str | None = None) -> T:
        """
        Execute an operation with rate limiting and retries.

        Parameters
        ----------
        operation : Callable[[], T]
            Zero-argument callable performing one RPC attempt
        name : str | None
            Operation name used in logs and errors

        Returns
        -------
        T
            Result of the first successful attempt

        Raises
        ------
        RetryExhaustedError
            If every attempt fails

        """
        name = name or getattr(operation, "__name__", "rpc call")
        max_attempts = self.config.max_attempts
        last_exception: Exception | None = None

        for attempt in range(max_attempts):
            self.limiter.acquire()
            try:
                return operation()
            except Exception as e:
                last_exception = e

                if classify_error(e) is ErrorKind.OVERLOAD:
                    self.limiter.report_overload()

                # Don't retry on last attempt
                if attempt == max_attempts - 1:
                    break

                delay = self.config.get_delay(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                    name,
                    attempt + 1,
                    max_attempts,
                    delay,
                    e,
                )
                self._sleep(delay)

        logger.debug("%s failed after %d attempts", name, max_attempts)
        raise RetryExhaustedError(name, max_attempts, last_exception) from last_exception  # type: ignore[arg-type]


def with_retry(policy: RetryPolicy) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to route every call of a function through a RetryPolicy.

    Parameters
    ----------
    policy : RetryPolicy
        Policy providing the limiter gate and retry schedule

    Returns
    -------
    Callable
        Decorated function with retry logic

    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return policy.call(lambda: func(*args, **kwargs), name=func.__name__)

        return wrapper

    return decorator
