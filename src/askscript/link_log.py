"""Append-only text log of the public URLs handed out for uploaded scripts."""
from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from pathlib import Path

from .errors import StorageError
from .record_store import SheetRecord

_LINE_RE = re.compile(r"Client: (.*?), Script ID: (.*?), File: (.*?), URL: (.*)")


@dataclass(frozen=True)
class LinkEntry:
    client: str
    script_id: str
    file_name: str
    url: str

    def to_json(self) -> dict[str, str]:
        return {
            "client": self.client,
            "scriptId": self.script_id,
            "fileName": self.file_name,
            "url": self.url,
        }


def parse_line(line: str) -> LinkEntry | None:
    match = _LINE_RE.match(line.strip())
    if not match:
        return None
    return LinkEntry(*match.groups())


class LinkLog:
    def __init__(self, path: Path, base_url: str = ""):
        self.path = Path(path)
        self.base_url = str(base_url or "").rstrip("/")
        self._lock = threading.Lock()

    def format_line(self, record: SheetRecord) -> str:
        return (
            f"Client: {record.client_name}, Script ID: {record.script_id}, "
            f"File: {record.file_name}, URL: {self.base_url}{record.redirect_url}"
        )

    def append(self, record: SheetRecord):
        """Raises OSError on failure; callers decide whether that matters."""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(self.format_line(record) + "\n")

    def _read_lines(self) -> list[str]:
        try:
            return self.path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise StorageError("Error reading script links.") from exc

    def entries(self) -> list[LinkEntry]:
        if not self.path.exists():
            return []
        with self._lock:
            lines = self._read_lines()
        parsed = (parse_line(line) for line in lines if line.strip())
        return [entry for entry in parsed if entry is not None]

    def remove(self, script_id: str) -> int:
        """Drops every line for script_id; returns how many lines went."""
        script_id = str(script_id)
        if not script_id or not self.path.exists():
            return 0
        with self._lock:
            lines = self._read_lines()
            kept = []
            for line in lines:
                entry = parse_line(line)
                if entry is not None and entry.script_id == script_id:
                    continue
                if entry is None and script_id in line:
                    continue
                kept.append(line)
            removed = len(lines) - len(kept)
            if removed:
                try:
                    self.path.write_text("".join(f"{line}\n" for line in kept), encoding="utf-8")
                except OSError as exc:
                    raise StorageError("Error rewriting script links.") from exc
            return removed
