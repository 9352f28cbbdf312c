import asyncio

from postmonitor.config import get_settings
from postmonitor.logging_config import setup_logging
from postmonitor.scheduler import run_scheduler
from postmonitor.service import build_orchestrator


if __name__ == "__main__":
    settings = get_settings()
    setup_logging(settings.monitor_log_level, settings.monitor_log_dir, settings.monitor_log_to_file)
    orchestrator = build_orchestrator(settings)
    asyncio.run(
        run_scheduler(
            orchestrator,
            interval_s=settings.monitor_interval_s,
            run_on_start=settings.monitor_run_on_start,
        )
    )
