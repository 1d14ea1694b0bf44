"""
Local store for label designs

Simple file-based storage: every table is a directory holding one JSON
document per row. Designs live in the ``savedLabels`` table; settings,
export history, templates and products sit next to it.
"""

import asyncio
import json
import logging
import os
import weakref
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote, unquote

from pydantic import ValidationError

from price_tag.errors import ParseFailure, RecordNotFound, StorageFailure
from price_tag.models.design import DesignRecord, generate_id, parse_design_payload, utc_now
from price_tag.models.settings import SETTINGS_ID, HistoryRecord, UserSettings

log = logging.getLogger(__name__)

HISTORY_LIMIT = 100

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class JsonTable:
    """Keyed collection of JSON rows on disk"""

    def __init__(self, root: Path, name: str):
        self.name = name
        self.directory = Path(root) / name

    def _path(self, row_id: str) -> Path:
        if not row_id:
            raise ValueError(f"Row id for table '{self.name}' must not be empty")
        return self.directory / f"{quote(row_id, safe='')}.json"

    def read(self, row_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(row_id)
        try:
            if not path.exists():
                return None
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageFailure(f"Failed to read {self.name}/{row_id}: {e}") from e
        try:
            return json.loads(text)
        except ValueError as e:
            raise ParseFailure(f"Corrupt row {self.name}/{row_id}: {e}") from e

    def write(self, row_id: str, row: Mapping[str, Any]) -> None:
        path = self._path(row_id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(row, f, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageFailure(f"Failed to write {self.name}/{row_id}: {e}") from e

    def remove(self, row_id: str) -> bool:
        path = self._path(row_id)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageFailure(f"Failed to delete {self.name}/{row_id}: {e}") from e

    def scan(self) -> List[Tuple[str, Dict[str, Any]]]:
        """All (row id, row) pairs; corrupt files are skipped"""
        if not self.directory.exists():
            return []
        rows = []
        try:
            paths = sorted(self.directory.glob("*.json"))
        except OSError as e:
            raise StorageFailure(f"Failed to list table {self.name}: {e}") from e
        for path in paths:
            try:
                rows.append((unquote(path.stem), json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, ValueError) as e:
                log.warning("Skipping unreadable row %s: %s", path, e)
        return rows

    async def get(self, row_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self.read, row_id)

    async def put(self, row: Mapping[str, Any]) -> str:
        row_id = row.get("id") or generate_id(self.name)
        await asyncio.to_thread(self.write, row_id, {**row, "id": row_id})
        return row_id

    async def list(self) -> List[Dict[str, Any]]:
        return [row for _, row in await asyncio.to_thread(self.scan)]

    async def delete(self, row_id: str) -> bool:
        return await asyncio.to_thread(self.remove, row_id)


def _sort_time(record: DesignRecord) -> datetime:
    return record.updated_at or record.created_at or _EPOCH


class LocalStore:
    """
    On-device store for designs, settings and export history.

    Design writes for the same id are serialized so an ``update`` never
    interleaves with a ``put`` of the same record.
    """

    def __init__(self, data_dir, clock: Callable[[], datetime] = utc_now):
        self.root = Path(data_dir)
        self.templates = JsonTable(self.root, "templates")
        self.products = JsonTable(self.root, "products")
        self.history = JsonTable(self.root, "history")
        self.settings = JsonTable(self.root, "settings")
        self.designs = JsonTable(self.root, "savedLabels")
        self._clock = clock
        # Entries disappear once no coroutine holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def _next_timestamp(self, *previous: Optional[datetime]) -> datetime:
        """Current time, nudged past any previous stamp so updatedAt always grows"""
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        for stamp in previous:
            if stamp is not None and now <= stamp:
                now = stamp + timedelta(microseconds=1)
        return now

    # Designs

    async def put(self, record: DesignRecord) -> DesignRecord:
        """
        Save a design and return the stored copy.

        Stamps updatedAt; a record seen for the first time also gets an id and
        createdAt unless it already carries them.
        """
        if record.id:
            return await self._put_with_id(record)
        # Id-less designs with the same product name resolve to one id
        async with self._lock(f"name:{record.product.name}"):
            record = await asyncio.to_thread(self._adopt_identity, record)
            return await self._put_with_id(record)

    async def _put_with_id(self, record: DesignRecord) -> DesignRecord:
        async with self._lock(record.id):
            existing = await asyncio.to_thread(self._read_existing, record.id)
            return await asyncio.to_thread(self._write_design, record, existing)

    async def get(self, record_id: str) -> Optional[DesignRecord]:
        row = await self.designs.get(record_id)
        if row is None:
            return None
        return parse_design_payload(row)

    async def list(self) -> List[DesignRecord]:
        """All designs, most recently updated first. Best effort."""
        try:
            rows = await asyncio.to_thread(self.designs.scan)
        except StorageFailure as e:
            log.warning("Local design list unavailable: %s", e)
            return []
        records = []
        for row_id, row in rows:
            try:
                records.append(parse_design_payload(row))
            except ParseFailure as e:
                log.warning("Skipping local design %s: %s", row_id, e)
        records.sort(key=_sort_time, reverse=True)
        return records

    async def delete(self, record_id: str) -> bool:
        async with self._lock(record_id):
            return await self.designs.delete(record_id)

    async def update(self, record_id: str, partial: Mapping[str, Any]) -> DesignRecord:
        """Apply a partial change to a stored design"""
        async with self._lock(record_id):
            existing = await asyncio.to_thread(self._read_existing, record_id, True)
            if existing is None:
                raise RecordNotFound(record_id)
            changed = existing.apply_partial(partial)
            return await asyncio.to_thread(self._write_design, changed, existing)

    def _read_existing(self, record_id: str, strict: bool = False) -> Optional[DesignRecord]:
        try:
            row = self.designs.read(record_id)
            return parse_design_payload(row) if row is not None else None
        except ParseFailure as e:
            if strict:
                raise
            log.warning("Overwriting unreadable design %s: %s", record_id, e)
            return None

    def _adopt_identity(self, record: DesignRecord) -> DesignRecord:
        # Weak fallback key: an id-less design replaces the stored design with
        # the same product name.
        name = record.product.name
        if name:
            for row_id, row in self.designs.scan():
                try:
                    stored = parse_design_payload(row)
                except ParseFailure:
                    continue
                if stored.product.name == name:
                    log.debug("Design without id matched %s by product name", row_id)
                    return record.model_copy(update={"id": stored.id or row_id})
        return record.model_copy(update={"id": generate_id("label")})

    def _write_design(self, record: DesignRecord, existing: Optional[DesignRecord]) -> DesignRecord:
        updated_at = self._next_timestamp(record.updated_at, existing.updated_at if existing else None)
        stored = record.touch(updated_at, created_at=existing.created_at if existing else None)
        self.designs.write(stored.id, stored.to_payload())
        return stored

    # Settings

    async def get_settings(self) -> UserSettings:
        try:
            row = await self.settings.get(SETTINGS_ID)
        except (StorageFailure, ParseFailure) as e:
            log.warning("Failed to load user settings, using defaults: %s", e)
            return UserSettings()
        if row is None:
            return UserSettings()
        try:
            return UserSettings.model_validate(row)
        except ValidationError as e:
            log.warning("Invalid user settings, using defaults: %s", e)
            return UserSettings()

    async def save_settings(self, settings: UserSettings) -> None:
        row = settings.model_dump(mode="json", by_alias=True)
        await self.settings.put({**row, "id": SETTINGS_ID})

    # Export history

    async def add_history(self, record: HistoryRecord) -> str:
        return await self.history.put(record.model_dump(mode="json", by_alias=True))

    async def list_history(self, limit: int = 50) -> List[HistoryRecord]:
        """Newest history records first. Best effort."""
        try:
            records = await asyncio.to_thread(self._history_newest_first)
        except StorageFailure as e:
            log.warning("History unavailable: %s", e)
            return []
        return records[:limit]

    async def delete_history(self, history_id: str) -> bool:
        return await self.history.delete(history_id)

    async def cleanup_history(self, keep: int = HISTORY_LIMIT) -> int:
        """Delete all but the ``keep`` most recently created history records"""
        records = await asyncio.to_thread(self._history_newest_first)
        stale = records[keep:]
        for record in stale:
            await self.history.delete(record.id)
        if stale:
            log.info("Removed %d old history records", len(stale))
        return len(stale)

    def _history_newest_first(self) -> List[HistoryRecord]:
        records = []
        for row_id, row in self.history.scan():
            try:
                records.append(HistoryRecord.model_validate(row))
            except ValidationError as e:
                log.warning("Skipping history record %s: %s", row_id, e)
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records
