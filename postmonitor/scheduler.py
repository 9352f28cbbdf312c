from __future__ import annotations

import asyncio
import logging
from typing import Optional

from postmonitor.orchestrator import CrawlOrchestrator
from postmonitor.risk_control import Sleep


logger = logging.getLogger("monitor-scheduler")


async def run_once(orchestrator: CrawlOrchestrator, trigger: str) -> None:
    if orchestrator.is_busy:
        logger.warning("Previous run still in progress, skipping %s run", trigger)
        return
    try:
        summary = await orchestrator.run(trigger=trigger)  # type: ignore[arg-type]
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scheduled run failed: %s", exc)
        return
    if summary.error:
        logger.error("Run %s finished with error %s", summary.run_id, summary.error)


async def run_scheduler(
    orchestrator: CrawlOrchestrator,
    *,
    interval_s: float,
    run_on_start: bool = True,
    max_ticks: Optional[int] = None,
    sleep: Sleep = asyncio.sleep,
) -> None:
    """Fixed-interval loop; ``max_ticks`` bounds the number of interval runs."""
    logger.info("Scheduler started (interval %ss, run_on_start=%s)", interval_s, run_on_start)
    if run_on_start:
        await run_once(orchestrator, "startup")
    ticks = 0
    while max_ticks is None or ticks < max_ticks:
        await sleep(interval_s)
        ticks += 1
        logger.info("Scheduled run #%d", ticks)
        await run_once(orchestrator, "schedule")
