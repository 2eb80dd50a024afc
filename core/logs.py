from __future__ import annotations

import logging
import os

from .config import settings


def setup_logging(level: str | None = None) -> None:
    """One stream handler on the root logger. LOG level: arg > env > settings."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root = logging.getLogger()
    root.handlers = [handler]

    level_name = (level or os.getenv("KIOSK_LOG_LEVEL") or settings.log_level).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # uvicorn prints every request line otherwise
    if root.level > logging.DEBUG:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
