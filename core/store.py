# core/store.py
# Quote persistence. The wizard only needs upsert-by-id and partial update;
# get/list serve the admin side (stale drafts, history).

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

from .config import Settings, settings as default_settings
from .errors import StoreError
from .models import DraftStatus, QuoteDraft

logger = logging.getLogger(__name__)


class QuoteStore(Protocol):
    async def upsert(self, draft: QuoteDraft) -> str: ...

    async def update(self, quote_id: str, fields: dict[str, Any]) -> None: ...

    async def get(self, quote_id: str) -> Optional[QuoteDraft]: ...

    async def list(self, status: Optional[DraftStatus] = None) -> list[QuoteDraft]: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _RecordStore(ABC):
    """Shared upsert/update rules over flat quote rows; subclasses do the I/O."""

    @abstractmethod
    def _load(self, quote_id: str) -> Optional[dict[str, Any]]: ...

    @abstractmethod
    def _save(self, record: dict[str, Any]) -> None: ...

    @abstractmethod
    def _rows(self) -> list[dict[str, Any]]: ...

    async def upsert(self, draft: QuoteDraft) -> str:
        now = _utcnow().isoformat()
        record = draft.to_record()

        if draft.id is None:
            record["id"] = uuid.uuid4().hex
            record["created_at"] = now
        else:
            existing = self._load(draft.id)
            if existing is not None:
                # status only moves forward
                if existing.get("status") == "APPOINTMENT_BOOKED" and record["status"] != "APPOINTMENT_BOOKED":
                    raise StoreError(f"Quote {draft.id} is booked and can no longer be edited")
                record["created_at"] = existing.get("created_at") or now
            else:
                record["created_at"] = now

        record["updated_at"] = now
        self._save(record)
        logger.debug("Upserted quote %s (status=%s)", record["id"], record["status"])
        return record["id"]

    async def update(self, quote_id: str, fields: dict[str, Any]) -> None:
        existing = self._load(quote_id)
        if existing is None:
            raise StoreError(f"Quote {quote_id} not found")

        record = {**existing, **fields, "id": quote_id, "updated_at": _utcnow().isoformat()}
        self._save(record)
        logger.debug("Updated quote %s fields=%s", quote_id, sorted(fields))

    async def get(self, quote_id: str) -> Optional[QuoteDraft]:
        row = self._load(quote_id)
        return QuoteDraft.from_record(row) if row is not None else None

    async def list(self, status: Optional[DraftStatus] = None) -> list[QuoteDraft]:
        rows = [r for r in self._rows() if status is None or r.get("status") == status]
        rows.sort(key=lambda r: r.get("created_at") or "")
        return [QuoteDraft.from_record(r) for r in rows]


class InMemoryQuoteStore(_RecordStore):
    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    def _load(self, quote_id: str) -> Optional[dict[str, Any]]:
        row = self._records.get(quote_id)
        return dict(row) if row is not None else None

    def _save(self, record: dict[str, Any]) -> None:
        self._records[record["id"]] = dict(record)

    def _rows(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self._records.values()]


class JsonFileQuoteStore(_RecordStore):
    """One <id>.json per quote under a history directory."""

    def __init__(self, history_dir: Path) -> None:
        self.history_dir = Path(history_dir)

    def _path(self, quote_id: str) -> Path:
        return self.history_dir / f"{quote_id}.json"

    def _load(self, quote_id: str) -> Optional[dict[str, Any]]:
        path = self._path(quote_id)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot read quote {quote_id}: {e}") from e

    def _save(self, record: dict[str, Any]) -> None:
        path = self._path(record["id"])
        # write aside, then swap in
        tmp = path.with_name(path.name + ".tmp")
        try:
            self.history_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise StoreError(f"Cannot write quote {record['id']}: {e}") from e

    def _rows(self) -> list[dict[str, Any]]:
        if not self.history_dir.exists():
            return []
        rows = []
        for path in sorted(self.history_dir.glob("*.json")):
            try:
                rows.append(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                raise StoreError(f"Cannot read {path.name}: {e}") from e
        return rows


def build_store(cfg: Settings = default_settings) -> QuoteStore:
    if cfg.store == "memory":
        return InMemoryQuoteStore()
    if cfg.store == "json":
        return JsonFileQuoteStore(cfg.history_dir)
    raise ValueError(f"Unknown quote store '{cfg.store}' (expected 'json' or 'memory')")


async def find_stale_drafts(
    store: QuoteStore,
    older_than: timedelta = timedelta(days=default_settings.stale_after_days),
    now: Optional[datetime] = None,
) -> list[QuoteDraft]:
    """Drafts never booked and created before now - older_than, oldest first."""
    cutoff = (now or _utcnow()) - older_than
    drafts = await store.list(status="DRAFT")
    return [d for d in drafts if d.created_at is not None and d.created_at < cutoff]
