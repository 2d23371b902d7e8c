from __future__ import annotations  # Bounded exponential-backoff retry for provider calls

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import ProviderError, ProviderNotConfiguredError


logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Run an async provider call with up to ``attempts`` tries.

    The delay before try ``n + 1`` is ``base ** n * unit`` seconds, so the
    defaults wait 2s then 4s. ``ProviderNotConfiguredError`` is raised
    immediately. After the last failure the final ``ProviderError`` is raised
    with ``attempts`` set to the number of calls made.
    """

    def __init__(
        self,
        attempts: int = 3,
        *,
        base: float = 2.0,
        unit_s: float = 1.0,
        sleep: Optional[Sleeper] = None,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self.attempts = attempts
        self.base = base
        self.unit_s = unit_s
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:  # Seconds to wait after the given 1-based attempt
        return (self.base ** attempt) * self.unit_s

    async def run(self, fn: Callable[[], Awaitable[T]], *, label: str = "provider") -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await fn()
            except ProviderNotConfiguredError:
                raise
            except ProviderError as exc:
                logger.warning(
                    "Provider call failed label=%s attempt=%d/%d error=%s",
                    label,
                    attempt,
                    self.attempts,
                    exc,
                )
                if attempt >= self.attempts:
                    exc.attempts = attempt
                    raise
            await self._sleep(self.delay_for(attempt))


__all__ = ["RetryPolicy", "Sleeper"]
