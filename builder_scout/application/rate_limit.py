"""API budget discipline: quota-driven waits and an hourly user cap."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from builder_scout.application.clock import Clock
from builder_scout.domain.github_interface import IGitHubClient
from builder_scout.domain.models import RateBudget


logger = logging.getLogger(__name__)


class RateLimitGuard:
    """Sleeps until the quota resets whenever the remaining budget drops below a buffer."""

    def __init__(self, client: Optional[IGitHubClient], clock: Clock, buffer: int = 100, margin_seconds: float = 5.0):
        """Initialize the guard.

        Args:
            client: Used to refresh the budget after a wait; without one a
                full quota is assumed once the reset time has passed
            clock: Time source
            buffer: Requests to keep in reserve
            margin_seconds: Extra wait past the advertised reset time
        """
        self._client = client
        self._clock = clock
        self._buffer = buffer
        self._margin = margin_seconds
        self.waits = 0

    def needs_wait(self, budget: RateBudget) -> bool:
        return budget.is_below(self._buffer)

    async def wait_if_needed(self, budget: RateBudget) -> RateBudget:
        """Wait out the reset window when the budget is low.

        Args:
            budget: Current budget

        Returns:
            The budget to continue with (refreshed after a wait)
        """
        if not self.needs_wait(budget):
            return budget

        wait_seconds = budget.seconds_until_reset(self._clock.now()) + self._margin
        logger.warning(
            f"Rate limit low ({budget.remaining}/{self._buffer}). "
            f"Pausing {wait_seconds / 60:.1f} minutes until {budget.reset_at}"
        )
        self.waits += 1
        await self._clock.sleep(wait_seconds)

        refreshed = budget
        if self._client is not None:
            refreshed = await self._client.fetch_rate_limit(budget)
        if refreshed == budget:
            # No fresh numbers, but the reset window has passed: assume a full quota.
            refreshed = RateBudget(remaining=refreshed.limit, limit=refreshed.limit, reset_at=None)
        logger.info(f"Rate limit after wait: {refreshed.remaining}/{refreshed.limit}")
        return refreshed


@dataclass
class HourlyThrottle:
    """Caps processed users per rolling hour regardless of remaining API quota."""
    max_per_hour: int = 100
    window_started_at: Optional[datetime] = None
    count: int = 0

    def record(self, now: datetime) -> None:
        if self.window_started_at is None:
            self.window_started_at = now
        self.count += 1

    async def wait_if_needed(self, clock: Clock) -> bool:
        """Sleep out the rest of the hour once the cap is reached.

        Returns:
            True if the caller had to wait
        """
        now = clock.now()
        if self.window_started_at is None or now - self.window_started_at >= timedelta(hours=1):
            self.window_started_at = now
            self.count = 0
            return False

        if self.count < self.max_per_hour:
            return False

        remaining = timedelta(hours=1) - (now - self.window_started_at)
        logger.info(
            f"Reached hourly limit ({self.max_per_hour} users). "
            f"Waiting {remaining.total_seconds() / 60:.0f} minutes"
        )
        await clock.sleep(remaining.total_seconds())
        self.window_started_at = clock.now()
        self.count = 0
        return True
