"""Local backup stores.

The backup is written synchronously on every snapshot change, independent
of the remote save path. It is secondary: a failed write is logged and
reported as ``False`` but never raised, and an unreadable record reads as
``None``.
"""

import json
from pathlib import Path
from typing import Any, Optional, Union

import structlog

logger = structlog.get_logger()


class FileBackupStore:
    """
    Backup store keeping one JSON file per key inside a directory.

    Writes go to a temporary file first and are moved into place, so a crash
    mid-write leaves the previous copy intact.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe_key = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in key)
        return self.directory / f"{safe_key}.json"

    def read(self, key: str) -> Optional[dict[str, Any]]:
        path = self._path(key)
        try:
            if not path.exists():
                return None
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("backup_read_failed", key=key, path=str(path), error=str(e))
            return None
        if not isinstance(data, dict):
            logger.warning("backup_read_failed", key=key, path=str(path), error="not a JSON object")
            return None
        return data

    def write(self, key: str, data: dict[str, Any]) -> bool:
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
            tmp.replace(path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("backup_write_failed", key=key, path=str(path), error=str(e))
            return False
        return True

    def clear(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("backup_clear_failed", key=key, path=str(path), error=str(e))


class MemoryBackupStore:
    """Backup store held in a dictionary. Records are copied through JSON."""

    def __init__(self):
        self.records: dict[str, str] = {}

    def read(self, key: str) -> Optional[dict[str, Any]]:
        raw = self.records.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def write(self, key: str, data: dict[str, Any]) -> bool:
        try:
            self.records[key] = json.dumps(data, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("backup_write_failed", key=key, error=str(e))
            return False
        return True

    def clear(self, key: str) -> None:
        self.records.pop(key, None)


__all__ = ["FileBackupStore", "MemoryBackupStore"]
