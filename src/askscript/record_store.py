# /askscript/record_store.py
"""
Persistent registry of uploaded scripts.

The whole mapping (file name -> record) lives in memory and is rewritten to a
JSON side-file after every mutation. Lookups are linear scans.
"""
from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import StorageError
from .observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SheetRecord:
    file_name: str
    script_id: str
    redirect_url: str
    client_name: str

    def to_json(self) -> dict[str, str]:
        return {
            "scriptId": self.script_id,
            "redirectUrl": self.redirect_url,
            "clientName": self.client_name,
        }

    @classmethod
    def from_json(cls, file_name: str, payload: dict[str, Any]) -> "SheetRecord":
        return cls(
            file_name=str(file_name),
            script_id=str(payload.get("scriptId", "")),
            redirect_url=str(payload.get("redirectUrl", "")),
            client_name=str(payload.get("clientName", "")),
        )


class RecordStore:
    """JSON-backed mapping of uploaded file names to their script records."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._records: dict[str, SheetRecord] = {}

    def load(self) -> int:
        """Reads the mapping file if present; a missing file means an empty store."""
        with self._lock:
            self._records = {}
            if not self.path.exists():
                logger.info("record_store_empty", path=str(self.path))
                return 0
            try:
                with open(self.path, "r", encoding="utf-8") as handle:
                    raw = json.load(handle) or {}
            except (OSError, ValueError) as exc:
                raise StorageError(f"Could not read script mappings: {exc}") from exc
            if not isinstance(raw, dict):
                raise StorageError("Script mappings file must hold a JSON object.")

            for file_name, payload in raw.items():
                if not isinstance(payload, dict):
                    logger.warning("record_store_skipped_entry", file_name=str(file_name))
                    continue
                self._records[str(file_name)] = SheetRecord.from_json(file_name, payload)
            logger.info("record_store_loaded", path=str(self.path), records=len(self._records))
            return len(self._records)

    def _persist(self):
        payload = {name: record.to_json() for name, record in self._records.items()}
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.error("record_store_write_failed", path=str(self.path), error=str(exc))
            raise StorageError(f"Could not write script mappings: {exc}") from exc

    def upsert(self, record: SheetRecord) -> SheetRecord | None:
        """Inserts or replaces the entry for record.file_name; returns the displaced record."""
        with self._lock:
            previous = self._records.get(record.file_name)
            self._records[record.file_name] = record
            self._persist()
            return previous

    def remove(self, file_name: str) -> SheetRecord | None:
        with self._lock:
            removed = self._records.pop(str(file_name), None)
            if removed is not None:
                self._persist()
            return removed

    def get(self, file_name: str) -> SheetRecord | None:
        return self._records.get(str(file_name))

    def find_by_script_id(self, script_id: str) -> SheetRecord | None:
        script_id = str(script_id or "")
        for record in list(self._records.values()):
            if record.script_id == script_id:
                return record
        return None

    def find_by_client_name(self, client_name: str) -> SheetRecord | None:
        for record in list(self._records.values()):
            if record.client_name == client_name:
                return record
        return None

    def all(self) -> list[SheetRecord]:
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)
