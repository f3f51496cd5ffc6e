"""Fixed-window request limiter with adaptive exponential backoff."""

import logging
import threading
import time
from collections.abc import Callable

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class RateLimitStats(BaseModel):
    """
    Snapshot of the limiter state.

    Attributes
    ----------
    request_count : int
        Requests counted in the current window
    backoff_multiplier : int
        Current backoff multiplier (1 when not limited)
    is_limited : bool
        Whether the limiter is inside a limited episode
    seconds_until_reset : float
        Time left before the counting window rolls over

    """

    request_count: int
    backoff_multiplier: int
    is_limited: bool
    seconds_until_reset: float


class RateLimiter:
    """
    Gate that every outbound RPC call passes through.

    Requests are counted inside a fixed window. Once the count reaches
    ``threshold`` each further call in the window is delayed by
    ``min(multiplier * base_backoff, max_backoff)`` and the multiplier is
    doubled, up to ``max_multiplier``. The multiplier only returns to 1 when a
    window ends without any limiting event.

    Parameters
    ----------
    threshold : int
        Requests allowed per window before delays kick in
    window : float
        Window length in seconds
    base_backoff : float
        Delay in seconds for a multiplier of 1
    max_backoff : float
        Upper bound for a single delay
    max_multiplier : int
        Ceiling for the backoff multiplier
    clock : Callable[[], float]
        Monotonic time source
    sleep : Callable[[float], None]
        Function used to wait

    """

    def __init__(
        self,
        threshold: int = 100,
        window: float = 60.0,
        base_backoff: float = 1.0,
        max_backoff: float = 30.0,
        max_multiplier: int = 16,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if threshold < 1:
            msg = f"threshold must be at least 1, got {threshold}"
            raise ValueError(msg)
        if window <= 0:
            msg = f"window must be positive, got {window}"
            raise ValueError(msg)
        if max_multiplier < 1:
            msg = f"max_multiplier must be at least 1, got {max_multiplier}"
            raise ValueError(msg)

        self.threshold = threshold
        self.window = window
        self.base_backoff = base_backoff
        self.max_backoff = max_backoff
        self.max_multiplier = max_multiplier
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

        self._request_count = 0
        self._window_resets_at: float | None = None
        self._backoff_multiplier = 1
        self._is_limited = False
        # Set when the current window saw a limiting event
        self._tripped = False

    @property
    def backoff_multiplier(self) -> int:
        return self._backoff_multiplier

    @property
    def is_limited(self) -> bool:
        return self._is_limited

    def current_delay(self) -> float:
        """Delay that would be applied to a call over the threshold right now."""
        return min(self._backoff_multiplier * self.base_backoff, self.max_backoff)

    def acquire(self) -> float:
        """
        Wait until the next request may be sent and count it.

        Returns
        -------
        float
            Seconds spent waiting (0.0 if the call went straight through)

        """
        delay = 0.0
        with self._lock:
            self._roll_window(self._clock())

            if self._request_count >= self.threshold:
                self._is_limited = True
                self._tripped = True
                delay = self.current_delay()
                logger.warning(
                    "RPC rate limit reached (%d requests), backing off %.1fs (multiplier %dx)",
                    self._request_count,
                    delay,
                    self._backoff_multiplier,
                )
                self._escalate()

            # Counted before any wait so concurrent callers see the slot as taken
            self._request_count += 1

        if delay > 0:
            self._sleep(delay)

        return delay

    def report_overload(self) -> None:
        """Record an explicit too-many-requests response from the remote."""
        with self._lock:
            now = self._clock()
            self._is_limited = True
            self._tripped = True
            self._escalate()
            self._window_resets_at = now + self.window

            logger.warning("RPC endpoint reported overload, backoff multiplier now %dx", self._backoff_multiplier)

    def reset(self) -> None:
        """Return to the initial state."""
        with self._lock:
            self._request_count = 0
            self._window_resets_at = None
            self._backoff_multiplier = 1
            self._is_limited = False
            self._tripped = False

    def stats(self) -> RateLimitStats:
        """
        Return a snapshot of the limiter state.

        Returns
        -------
        RateLimitStats
            Counter, multiplier, limited flag and time to window reset

        """
        with self._lock:
            now = self._clock()
            remaining = 0.0
            if self._window_resets_at is not None:
                remaining = max(0.0, self._window_resets_at - now)
            return RateLimitStats(
                request_count=self._request_count,
                backoff_multiplier=self._backoff_multiplier,
                is_limited=self._is_limited,
                seconds_until_reset=remaining,
            )

    def _escalate(self) -> None:
        self._backoff_multiplier = min(self._backoff_multiplier * 2, self.max_multiplier)

    def _roll_window(self, now: float) -> None:
        """Start a new counting window if the current one has ended. Caller holds the lock."""
        if self._window_resets_at is not None and now <= self._window_resets_at:
            return

        # A gap longer than one window means at least one full window passed with no calls
        clean = not self._tripped or (
            self._window_resets_at is not None and now > self._window_resets_at + self.window
        )

        self._request_count = 0
        self._window_resets_at = now + self.window
        self._tripped = False

        if clean:
            if self._is_limited:
                logger.info("RPC rate limit window cleared, backoff reset")
            self._backoff_multiplier = 1
            self._is_limited = False
