"""
Durable storage for history records, notes and web imports.

History is a single capped array in the key-value store. Notes and web
imports are stored one JSON file per record, so a corrupt or missing file
only ever costs that one record. Storage failures are logged and swallowed
here; nothing in this module raises to the caller on I/O errors.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Type, TypeVar

from pydantic import ValidationError

from .config import AppConfig
from .kvstore import API_KEY_KEY, HISTORY_KEY, LEGACY_NOTES_KEY, KeyValueStore, write_atomic
from .models import HistoryRecord, Note, TimestampedRecord, WebImport

logger = logging.getLogger(__name__)

DEDUP_WINDOW = timedelta(hours=24)
DEFAULT_MAX_RECORDS = 100

R = TypeVar("R", bound=TimestampedRecord)


class RecordStore:
    """Persistence for the three record kinds plus the API key."""

    def __init__(
        self,
        kv: KeyValueStore,
        notes_dir: Path,
        web_imports_dir: Path,
        max_records: int = DEFAULT_MAX_RECORDS,
    ):
        self.kv = kv
        self.notes_dir = Path(notes_dir)
        self.web_imports_dir = Path(web_imports_dir)
        self.max_records = max_records
        self._migrated = False
        self.notes_dir.mkdir(parents=True, exist_ok=True)
        self.web_imports_dir.mkdir(parents=True, exist_ok=True)
        self.migrate_legacy_notes()

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "RecordStore":
        return cls(
            KeyValueStore(cfg.preferences_path),
            cfg.notes_dir,
            cfg.web_imports_dir,
            max_records=cfg.max_history_records,
        )

    def list_history(self) -> List[HistoryRecord]:
        raw = self.kv.get(HISTORY_KEY, [])
        if not isinstance(raw, list):
            logger.error("Stored history is not a list; treating it as empty")
            return []

        records: List[HistoryRecord] = []
        for entry in raw:
            try:
                records.append(HistoryRecord.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping undecodable history entry: %s", exc)
        return records

    def append_history(self, record: HistoryRecord) -> bool:
        """
        Append `record` unless its keyword was already stored within the
        preceding 24 hours (case-insensitive). Returns True when stored.
        """
        records = self.list_history()
        keyword = record.keyword.lower()
        cutoff = record.timestamp - DEDUP_WINDOW
        if any(r.keyword.lower() == keyword and r.timestamp > cutoff for r in records):
            logger.debug("Suppressing duplicate history keyword %r", record.keyword)
            return False

        records.append(record)
        if len(records) > self.max_records:
            records = records[-self.max_records:]
        self._write_history(records)
        return True

    def delete_history_at(self, index: int) -> None:
        """Remove by position in storage order; out-of-range is a no-op."""
        records = self.list_history()
        if 0 <= index < len(records):
            del records[index]
            self._write_history(records)

    def delete_history(self, record_id: uuid.UUID) -> None:
        records = self.list_history()
        remaining = [r for r in records if r.id != record_id]
        if len(remaining) != len(records):
            self._write_history(remaining)

    def _write_history(self, records: Iterable[HistoryRecord]) -> None:
        try:
            self.kv.set(HISTORY_KEY, [r.model_dump(mode="json") for r in records])
        except OSError as exc:
            logger.error("Error saving history records: %s", exc)

    def save_note(self, note: Note) -> None:
        self._write_unit(self.notes_dir, note)

    def list_notes(self) -> List[Note]:
        return self._list_units(self.notes_dir, Note)

    def get_note(self, note_id: uuid.UUID) -> Optional[Note]:
        return self._read_unit(self._unit_path(self.notes_dir, note_id), Note)

    def delete_note(self, note_id: uuid.UUID) -> None:
        self._delete_unit(self._unit_path(self.notes_dir, note_id))

    def save_web_import(self, item: WebImport) -> None:
        self._write_unit(self.web_imports_dir, item)

    def list_web_imports(self) -> List[WebImport]:
        return self._list_units(self.web_imports_dir, WebImport)

    def get_web_import(self, item_id: uuid.UUID) -> Optional[WebImport]:
        return self._read_unit(self._unit_path(self.web_imports_dir, item_id), WebImport)

    def delete_web_import(self, item_id: uuid.UUID) -> None:
        self._delete_unit(self._unit_path(self.web_imports_dir, item_id))

    @staticmethod
    def _unit_path(directory: Path, record_id: uuid.UUID) -> Path:
        return directory / f"{str(record_id).upper()}.json"

    def _write_unit(self, directory: Path, record: TimestampedRecord) -> None:
        path = self._unit_path(directory, record.id)
        try:
            write_atomic(path, record.model_dump_json(indent=2))
        except OSError as exc:
            logger.error("Error saving %s: %s", path, exc)

    @staticmethod
    def _read_unit(path: Path, model: Type[R]) -> Optional[R]:
        """Decode one unit; None means unreadable and is meant to be dropped."""
        try:
            return model.model_validate_json(path.read_bytes())
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as exc:
            logger.warning("Skipping unreadable record file %s: %s", path, exc)
            return None

    def _list_units(self, directory: Path, model: Type[R]) -> List[R]:
        try:
            paths = sorted(p for p in directory.iterdir() if p.suffix == ".json")
        except OSError as exc:
            logger.error("Error listing %s: %s", directory, exc)
            return []

        units = [self._read_unit(p, model) for p in paths]
        records = [u for u in units if u is not None]
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records

    @staticmethod
    def _delete_unit(path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.error("Error deleting %s: %s", path, exc)
            return False
        return True

    def delete_all(self) -> None:
        """Clear history and remove every note and web import file."""
        try:
            self.kv.remove(HISTORY_KEY)
        except OSError as exc:
            logger.error("Error deleting history records: %s", exc)

        for directory in (self.notes_dir, self.web_imports_dir):
            try:
                paths = list(directory.iterdir())
            except OSError as exc:
                logger.error("Error listing %s: %s", directory, exc)
                continue
            for path in paths:
                self._delete_unit(path)

    def migrate_legacy_notes(self) -> int:
        """
        Move notes from the legacy bulk key-value entry into per-note files.

        Runs at most once per store instance. Returns the number of notes
        written. When the legacy entry cannot be decoded at all it is left
        in place.
        """
        if self._migrated:
            return 0
        self._migrated = True

        raw = self.kv.get(LEGACY_NOTES_KEY)
        if raw is None:
            return 0

        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                logger.error("Legacy notes entry is not valid JSON: %s", exc)
                return 0
        if not isinstance(raw, list):
            logger.error("Legacy notes entry is not a list; leaving it in place")
            return 0

        migrated = 0
        for entry in raw:
            try:
                note = Note.model_validate(entry)
            except ValidationError as exc:
                logger.warning("Skipping undecodable legacy note: %s", exc)
                continue
            self.save_note(note)
            migrated += 1

        try:
            self.kv.remove(LEGACY_NOTES_KEY)
        except OSError as exc:
            logger.error("Error removing legacy notes entry: %s", exc)
        logger.info("Migrated %d legacy notes to %s", migrated, self.notes_dir)
        return migrated

    def load_api_key(self) -> Optional[str]:
        key = self.kv.get(API_KEY_KEY)
        return key or None

    def save_api_key(self, key: str) -> None:
        try:
            self.kv.set(API_KEY_KEY, key)
        except OSError as exc:
            logger.error("Error saving API key: %s", exc)


__all__ = ["DEDUP_WINDOW", "DEFAULT_MAX_RECORDS", "RecordStore"]
