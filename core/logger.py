# core/logger.py
import logging
from datetime import datetime
from pathlib import Path

from core.config import Config

NAMESPACE = "captions"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


def _namespace_logger() -> logging.Logger:
    parent = logging.getLogger(NAMESPACE)
    if parent.handlers:
        return parent

    parent.setLevel(logging.DEBUG if Config.DEBUG else logging.INFO)
    parent.propagate = False
    formatter = logging.Formatter(LOG_FORMAT, "%H:%M:%S")

    handlers = [logging.StreamHandler()]
    if Config.LOG_TO_FILE:
        log_dir = Path(Config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(log_dir / f"captions-{datetime.now().strftime('%Y-%m-%d')}.log", encoding="utf-8")
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        parent.addHandler(handler)
    return parent


def get_logger(name="Captions") -> logging.Logger:
    """Component logger (``captions.<name>``); handlers live on the shared parent."""

    _namespace_logger()
    return logging.getLogger(f"{NAMESPACE}.{name}")


if __name__ == "__main__":
    log = get_logger("Test")
    log.info(f"Logging to {Config.LOG_DIR if Config.LOG_TO_FILE else 'stderr only'} ✅")
