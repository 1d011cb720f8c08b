"""
Rate limiting implementation for Shopify Admin GraphQL requests.

Shopify throttles GraphQL calls with a leaky bucket measured in query cost
points. This module keeps a local estimate of that bucket between responses
and decides how long to wait before issuing a request of a given cost.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class RateLimitConfig:
    """Configuration for cost-based rate limiting."""
    max_points: float = 1000.0  # Shopify standard plan bucket size
    restore_rate: float = 50.0  # Points restored per second
    safety_margin_ms: int = 100  # Absorbs clock skew between us and Shopify


@dataclass
class RateBudget:
    """Last known state of the remote cost bucket."""
    available_points: float
    max_points: float
    restore_rate_per_second: float
    last_observed_at: float


class RateLimiter:
    """
    Thread-safe estimator of the Shopify query cost budget.

    The budget is never decremented locally. Between responses it is
    extrapolated from the last observation using the restore rate, and each
    successful response overwrites it with the server's authoritative value.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize rate limiter.

        Args:
            config: Rate limiting configuration
            clock: Monotonic clock returning seconds
            sleep: Function used to suspend for a number of seconds
        """
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._budget = self._initial_budget()
        self._total_wait_time = 0.0
        self._wait_count = 0

    def _initial_budget(self) -> RateBudget:
        return RateBudget(
            available_points=self.config.max_points,
            max_points=self.config.max_points,
            restore_rate_per_second=self.config.restore_rate,
            last_observed_at=self._clock()
        )

    def estimate_available(self) -> float:
        """
        Estimate the points currently available.

        Returns:
            Available points extrapolated to the current time
        """
        with self._lock:
            return self._estimate(self._clock())

    def _estimate(self, now: float) -> float:
        budget = self._budget
        elapsed = max(0.0, now - budget.last_observed_at)
        restored = elapsed * budget.restore_rate_per_second
        return min(budget.max_points, budget.available_points + restored)

    def reserve(self, cost: float) -> int:
        """
        Compute how long to wait before issuing a request.

        Args:
            cost: Estimated query cost in points

        Returns:
            Wait time in milliseconds (0 when the budget already covers the cost)
        """
        with self._lock:
            estimated = self._estimate(self._clock())
            if estimated >= cost:
                return 0

            restore_rate = self._budget.restore_rate_per_second
            if restore_rate <= 0:
                # Nothing is being restored; fall back to the configured rate
                restore_rate = self.config.restore_rate

            deficit_ms = (cost - estimated) / restore_rate * 1000
            return math.ceil(deficit_ms) + self.config.safety_margin_ms

    def wait_if_needed(self, cost: float) -> float:
        """
        Wait if necessary so that a request of the given cost can be issued.

        Args:
            cost: Estimated query cost in points

        Returns:
            Time waited in seconds
        """
        wait_ms = self.reserve(cost)
        if wait_ms <= 0:
            return 0.0

        wait_time = wait_ms / 1000.0

        # Sleep outside the lock so observations can still land
        self._sleep(wait_time)

        with self._lock:
            self._total_wait_time += wait_time
            self._wait_count += 1

        return wait_time

    def observe(
        self,
        currently_available: float,
        restore_rate: float,
        maximum_available: Optional[float] = None
    ) -> None:
        """
        Record the throttle status reported by the server.

        Args:
            currently_available: Points available right now
            restore_rate: Points restored per second
            maximum_available: Bucket size, if reported
        """
        with self._lock:
            max_points = self._budget.max_points
            if maximum_available:
                max_points = float(maximum_available)

            self._budget = RateBudget(
                available_points=float(currently_available),
                max_points=max_points,
                restore_rate_per_second=float(restore_rate),
                last_observed_at=self._clock()
            )

    def observe_throttle_status(self, throttle_status: Optional[dict]) -> bool:
        """
        Record a raw ``throttleStatus`` mapping from a GraphQL response.

        Returns:
            True if the mapping carried usable values
        """
        if not throttle_status:
            return False

        available = throttle_status.get("currentlyAvailable")
        restore_rate = throttle_status.get("restoreRate")
        if available is None or restore_rate is None:
            return False

        self.observe(
            currently_available=available,
            restore_rate=restore_rate,
            maximum_available=throttle_status.get("maximumAvailable")
        )
        return True

    @property
    def budget(self) -> RateBudget:
        """Snapshot of the last observed budget."""
        with self._lock:
            budget = self._budget
            return RateBudget(
                available_points=budget.available_points,
                max_points=budget.max_points,
                restore_rate_per_second=budget.restore_rate_per_second,
                last_observed_at=budget.last_observed_at
            )

    def get_stats(self) -> dict:
        """
        Get rate limiter statistics.

        Returns:
            Dictionary with current statistics
        """
        with self._lock:
            now = self._clock()
            return {
                "estimated_available": self._estimate(now),
                "max_points": self._budget.max_points,
                "restore_rate": self._budget.restore_rate_per_second,
                "seconds_since_observation": now - self._budget.last_observed_at,
                "total_wait_time": self._total_wait_time,
                "wait_count": self._wait_count,
            }

    def reset(self) -> None:
        """Reset rate limiter state."""
        with self._lock:
            self._budget = self._initial_budget()
            self._total_wait_time = 0.0
            self._wait_count = 0
