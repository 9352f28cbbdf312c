from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from postmonitor.config import Settings
from postmonitor.risk_control import Sleep


logger = logging.getLogger("monitor-navigation")


def is_ok_status(status: Optional[int]) -> bool:
    # No observable response (same-document navigation, cached page) counts as loaded.
    if status is None:
        return True
    return 200 <= int(status) < 300


class NavigationRetrier:
    """Page loads with a bounded number of attempts and linear backoff.

    All navigations of the pipeline go through ``goto_with_retry`` so retry
    and backoff are tuned in one place.
    """

    def __init__(
        self,
        *,
        max_retries: int = 3,
        timeout_ms: int = 90000,
        base_backoff_s: float = 5.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.max_retries = max(1, int(max_retries))
        self.timeout_ms = int(timeout_ms)
        self.base_backoff_s = float(base_backoff_s)
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, sleep: Sleep = asyncio.sleep) -> "NavigationRetrier":
        return cls(
            max_retries=settings.monitor_max_retries,
            timeout_ms=settings.monitor_page_timeout_ms,
            base_backoff_s=settings.monitor_retry_backoff_s,
            sleep=sleep,
        )

    async def goto_with_retry(
        self,
        page: Any,
        url: str,
        *,
        max_retries: Optional[int] = None,
        timeout_ms: Optional[int] = None,
        wait_until: str = "domcontentloaded",
    ) -> bool:
        attempts = max(1, int(max_retries or self.max_retries))
        per_attempt_ms = int(timeout_ms or self.timeout_ms)
        for attempt in range(1, attempts + 1):
            logger.info("Navigating to %s (attempt %d/%d)", url, attempt, attempts)
            try:
                status = await page.goto(url, timeout_ms=per_attempt_ms, wait_until=wait_until)
                if is_ok_status(status):
                    return True
                logger.warning("Non-OK response %s for %s", status, url)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("Navigation attempt %d failed: %s", attempt, str(exc)[:200])
            if attempt < attempts:
                wait_s = attempt * self.base_backoff_s
                logger.info("Waiting %.1fs before retrying", wait_s)
                await self._sleep(wait_s)
        logger.error("Giving up on %s after %d attempts", url, attempts)
        return False
