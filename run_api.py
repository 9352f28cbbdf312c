import uvicorn

from postmonitor.config import get_settings
from postmonitor.logging_config import setup_logging


if __name__ == "__main__":
    settings = get_settings()
    setup_logging(settings.monitor_log_level, settings.monitor_log_dir, settings.monitor_log_to_file)
    uvicorn.run("postmonitor.main:app", host=settings.api_host, port=settings.api_port, log_config=None)
