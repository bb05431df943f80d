from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from cfg.settings import DEFAULT_SETTINGS_PATH
from jag.bootstrap import create_app

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_FILE_NAME = "invsim.log"
LOG_BACKUP_DAYS = 30


def _configure_logging(level_name: str, log_dir: Path) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = (log_dir / LOG_FILE_NAME).resolve()
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    handlers = root_logger.handlers

    if not any(type(handler) is logging.StreamHandler for handler in handlers):
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(formatter)
        root_logger.addHandler(console)

    if not any(getattr(handler, "baseFilename", None) == str(log_path) for handler in handlers):
        daily = TimedRotatingFileHandler(
            filename=log_path,
            when="midnight",
            interval=1,
            backupCount=LOG_BACKUP_DAYS,
            encoding="utf-8",
        )
        daily.suffix = "%Y-%m-%d"
        daily.setLevel(level)
        daily.setFormatter(formatter)
        root_logger.addHandler(daily)


_configure_logging(
    os.getenv("INVSIM_LOG_LEVEL", "INFO"),
    Path(os.getenv("INVSIM_LOG_DIR", "runtime/logs")),
)

app = create_app(settings_path=os.getenv("INVSIM_SETTINGS_PATH", DEFAULT_SETTINGS_PATH))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host=os.getenv("INVSIM_HOST", "127.0.0.1"),
        port=int(os.getenv("INVSIM_PORT", "8000")),
        reload=False,
    )
