from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseModel):
    app_name: str = "Kiosk Quote Builder"
    environment: str = os.getenv("KIOSK_ENV", "dev")
    log_level: str = os.getenv("KIOSK_LOG_LEVEL", "INFO")

    pricebook_path: Path = Path(os.getenv("KIOSK_PRICEBOOK_PATH", str(PROJECT_ROOT / "data" / "pricebook.json")))
    history_dir: Path = Path(os.getenv("KIOSK_HISTORY_DIR", str(PROJECT_ROOT / "data" / "history")))

    # "json" -> one file per quote under history_dir, "memory" -> process-local only
    store: str = os.getenv("KIOSK_STORE", "json")

    # drafts older than this are due a follow-up
    stale_after_days: int = int(os.getenv("KIOSK_STALE_DAYS", "3"))

    # idle web sessions are dropped after this many minutes
    session_ttl_minutes: int = int(os.getenv("KIOSK_SESSION_TTL_MIN", "30"))


settings = Settings()
