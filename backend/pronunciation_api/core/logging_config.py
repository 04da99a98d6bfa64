import logging
import os
from datetime import date
from typing import Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(logs_dir: Optional[str] = None, level: Optional[str] = None) -> None:
    """Console logging plus a daily file under `logs_dir` (app_YYYY-MM-DD.log)."""
    logs_dir = logs_dir or settings.LOGS_DIR
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        os.makedirs(logs_dir, exist_ok=True)
        log_file = os.path.join(logs_dir, f"app_{date.today().isoformat()}.log")
        handlers.append(logging.FileHandler(log_file, encoding="utf-8", delay=True))
    except OSError as e:
        # Read-only filesystems still get console logging
        logging.getLogger(__name__).warning(f"Could not create log directory {logs_dir}: {e}")

    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT, handlers=handlers)
