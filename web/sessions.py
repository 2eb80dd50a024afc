# web/sessions.py
# In-process registry of kiosk sessions. Idle sessions expire after a TTL.

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from core.wizard import KioskWizard

logger = logging.getLogger(__name__)


class SessionRegistry:
    def __init__(self, ttl: timedelta, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.ttl = ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._items: dict[str, tuple[KioskWizard, datetime]] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, sid: str) -> bool:
        return sid in self._items

    def add(self, wizard: KioskWizard) -> str:
        self.prune()
        sid = uuid.uuid4().hex
        self._items[sid] = (wizard, self._clock())
        return sid

    def get(self, sid: str) -> Optional[KioskWizard]:
        """Looks a session up and marks it as seen."""
        item = self._items.get(sid)
        if item is None:
            return None
        wizard = item[0]
        self._items[sid] = (wizard, self._clock())
        return wizard

    def drop(self, sid: str) -> bool:
        return self._items.pop(sid, None) is not None

    def prune(self) -> int:
        """Removes sessions idle longer than the TTL. Busy sessions are kept."""
        cutoff = self._clock() - self.ttl
        expired = [
            sid for sid, (wizard, seen) in self._items.items() if seen < cutoff and not wizard.busy
        ]
        for sid in expired:
            del self._items[sid]
        if expired:
            logger.info("Expired %d idle kiosk session(s)", len(expired))
        return len(expired)
