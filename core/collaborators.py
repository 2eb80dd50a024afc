# core/collaborators.py
# Boundaries the wizard talks to besides the store: toasts and the signed-in user.

from __future__ import annotations

import logging
from typing import Any, Literal, Optional, Protocol

logger = logging.getLogger(__name__)

NoticeKind = Literal["success", "error", "info"]


class Notifier(Protocol):
    def notify(self, kind: NoticeKind, message: str) -> None: ...


class CurrentUser(Protocol):
    async def __call__(self) -> Optional[dict[str, Any]]: ...


class LoggingNotifier:
    """Default toast sink for headless runs: writes notices to the log."""

    def notify(self, kind: NoticeKind, message: str) -> None:
        if kind == "error":
            logger.warning("notice[%s]: %s", kind, message)
        else:
            logger.info("notice[%s]: %s", kind, message)


async def anonymous_user() -> Optional[dict[str, Any]]:
    return None
