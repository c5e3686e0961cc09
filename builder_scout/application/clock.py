"""Time source used by the scanner.

The crawler never calls ``datetime.now`` or ``asyncio.sleep`` directly; it asks
a Clock, so tests can run whole scan cycles without waiting.
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """Abstract source of the current time and of delays."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for ``seconds``."""
        pass


class SystemClock(Clock):
    """Wall-clock time and real asyncio sleeps."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
