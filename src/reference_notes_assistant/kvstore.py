"""
Small JSON-file key-value store.

Holds the capped history array, the API key and the legacy notes blob
under fixed keys. The whole document is rewritten on every change.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

HISTORY_KEY = "historyRecords"
LEGACY_NOTES_KEY = "noteRecords"
API_KEY_KEY = "openAIAPIKey"


def write_atomic(path: Path, text: str) -> None:
    """Write `text` to `path` through a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class KeyValueStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def corrupt_path(self) -> Path:
        return self.path.with_name(self.path.name + ".corrupt")

    def _set_aside(self, reason: str) -> None:
        """Move an undecodable file out of the way so the next write cannot clobber it."""
        logger.error("Key-value store %s %s; moving it to %s", self.path, reason, self.corrupt_path)
        try:
            os.replace(self.path, self.corrupt_path)
        except OSError as exc:
            logger.error("Could not move %s aside: %s", self.path, exc)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("Could not read key-value store %s: %s", self.path, exc)
            return {}
        try:
            data = json.loads(text)
        except ValueError as exc:
            self._set_aside(f"is not valid JSON ({exc})")
            return {}
        if not isinstance(data, dict):
            self._set_aside("is not a JSON object")
            return {}
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        write_atomic(self.path, json.dumps(data, ensure_ascii=False, indent=2))

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def __contains__(self, key: str) -> bool:
        return key in self._load()


__all__ = ["API_KEY_KEY", "HISTORY_KEY", "KeyValueStore", "LEGACY_NOTES_KEY", "write_atomic"]
