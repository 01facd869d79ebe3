"""
Polling watcher for the usage-access grant.

The grant can change at any time outside the service (the user flips it in
system settings). Callers either check it once or wait for it to appear.
"""

import asyncio
from collections.abc import Awaitable, Callable

from timeleak.config import settings
from timeleak.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

FAST_POLL_INTERVAL_MS = 250

PermissionCheck = Callable[[], Awaitable[bool]]


class PermissionMonitor:
    def __init__(
        self,
        check: PermissionCheck,
        interval_ms: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._check = check
        self.interval_ms = interval_ms or settings.PERMISSION_POLL_INTERVAL_MS
        self._sleep = sleep

    async def is_granted(self) -> bool:
        try:
            return bool(await self._check())
        except Exception as e:
            logger.warning("Permission check failed, treating as not granted", error=str(e))
            return False

    async def wait_until_granted(self, timeout_s: float | None = None, fast: bool = False) -> bool:
        """
        Poll until the permission is granted or the timeout elapses.

        Args:
            timeout_s: Give up after this many seconds (None waits forever)
            fast: Poll at 250ms instead of the configured interval

        Returns:
            True once granted, False on timeout
        """
        interval_s = (FAST_POLL_INTERVAL_MS if fast else self.interval_ms) / 1000
        waited_s = 0.0

        while True:
            if await self.is_granted():
                logger.info("Usage access granted", waited_s=round(waited_s, 2))
                return True
            if timeout_s is not None and waited_s >= timeout_s:
                logger.info("Gave up waiting for usage access", waited_s=round(waited_s, 2))
                return False
            await self._sleep(interval_s)
            waited_s += interval_s
