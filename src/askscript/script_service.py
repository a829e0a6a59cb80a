# /askscript/script_service.py
"""
Lifecycle of uploaded question/answer scripts.

ScriptService owns the record store, the per-script question indexes, the
link log and the upload directory. Every HTTP operation maps onto exactly
one public method here; the API layer only translates errors.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from . import sheet_codec
from .errors import ConflictError, DecodeError, NotFoundError, StorageError, ValidationError
from .link_log import LinkEntry, LinkLog
from .observability import get_logger
from .question_index import DEFAULT_THRESHOLD, QuestionIndex
from .record_store import RecordStore, SheetRecord

logger = get_logger(__name__)

DEFAULT_NO_DATA_ANSWER = "No data found for this script."
DEFAULT_FALLBACK_ANSWER = "Sorry, please ask related questions."


@dataclass(frozen=True)
class AskResult:
    answer: str
    outcome: str  # "matched" | "fallback" | "no_data"


class ScriptIdGenerator:
    """Millisecond timestamps, bumped so ids stay strictly increasing in-process."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            candidate = int(self._clock() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return str(candidate)


def redirect_url_for(script_id: str) -> str:
    return f"/ask/{script_id}"


class ScriptService:
    def __init__(
        self,
        *,
        upload_dir: Path,
        record_store: RecordStore,
        link_log: LinkLog,
        threshold: float = DEFAULT_THRESHOLD,
        no_data_answer: str = DEFAULT_NO_DATA_ANSWER,
        fallback_answer: str = DEFAULT_FALLBACK_ANSWER,
        id_generator: ScriptIdGenerator | None = None,
    ):
        self.upload_dir = Path(upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.records = record_store
        self.link_log = link_log
        self.threshold = float(threshold)
        self.no_data_answer = no_data_answer
        self.fallback_answer = fallback_answer
        self._next_id = id_generator or ScriptIdGenerator()
        self._indexes: dict[str, QuestionIndex] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls) -> "ScriptService":
        from . import config

        store = RecordStore(config.MAPPINGS_PATH)
        store.load()
        return cls(
            upload_dir=config.UPLOAD_DIR,
            record_store=store,
            link_log=LinkLog(config.LINK_LOG_PATH, base_url=config.PUBLIC_BASE_URL),
            threshold=config.MATCH_THRESHOLD,
            no_data_answer=config.NO_DATA_ANSWER,
            fallback_answer=config.FALLBACK_ANSWER,
        )

    # ------------------------------------------------------------------ helpers
    def _file_path(self, record: SheetRecord) -> Path:
        return self.upload_dir / record.file_name

    def _require_record(self, script_id: str) -> SheetRecord:
        record = self.records.find_by_script_id(script_id)
        if record is None:
            raise NotFoundError("Script not found.")
        return record

    def _build_index(self, script_id: str, rows: list[dict[str, Any]]) -> QuestionIndex:
        index = QuestionIndex(rows, threshold=self.threshold)
        self._indexes[script_id] = index
        return index

    def has_index(self, script_id: str) -> bool:
        return str(script_id) in self._indexes

    # ------------------------------------------------------------------ lifecycle
    def upload(self, file_name: str | None, content: bytes | None, client_name: str | None) -> SheetRecord:
        safe_name = Path(str(file_name or "")).name.strip()
        client_name = str(client_name or "").strip()
        if not safe_name or content is None or not client_name:
            raise ValidationError("File and client name are required.")
        if not sheet_codec.is_supported(safe_name):
            supported = ", ".join(sorted(sheet_codec.SUPPORTED_EXTENSIONS))
            raise ValidationError(f"Unsupported file type. Upload one of: {supported}.")

        with self._lock:
            if self.records.find_by_client_name(client_name) is not None:
                raise ConflictError("Client name already exists. Please choose a different name.")

            script_id = self._next_id()
            record = SheetRecord(
                file_name=safe_name,
                script_id=script_id,
                redirect_url=redirect_url_for(script_id),
                client_name=client_name,
            )

            # Staged under a hidden name so a rejected upload never clobbers a live sheet.
            path = self._file_path(record)
            staged = path.with_name(f".{script_id}-{safe_name}")
            try:
                staged.write_bytes(content)
                rows = sheet_codec.decode(staged)
                sheet_codec.require_question_answer(rows)
                staged.replace(path)
            except OSError as exc:
                staged.unlink(missing_ok=True)
                raise StorageError(f"Could not store {safe_name}.") from exc
            except DecodeError as exc:
                # An unreadable or empty upload is the caller's to fix.
                staged.unlink(missing_ok=True)
                logger.warning("upload_rejected", file_name=safe_name, client=client_name, error=exc.message)
                raise ValidationError(exc.message) from exc
            except (ValidationError, StorageError):
                staged.unlink(missing_ok=True)
                logger.warning("upload_rejected", file_name=safe_name, client=client_name)
                raise

            displaced = self.records.upsert(record)
            if displaced is not None:
                self._indexes.pop(displaced.script_id, None)
                logger.warning(
                    "upload_replaced_same_file",
                    file_name=safe_name,
                    previous_script_id=displaced.script_id,
                    previous_client=displaced.client_name,
                )
            self._build_index(script_id, rows)

        if displaced is not None:
            try:
                self.link_log.remove(displaced.script_id)
            except StorageError as exc:
                logger.error("link_log_prune_failed", script_id=displaced.script_id, error=exc.message)

        try:
            self.link_log.append(record)
        except OSError as exc:
            logger.error("link_log_append_failed", script_id=script_id, error=str(exc))

        logger.info("script_uploaded", script_id=script_id, file_name=safe_name, client=client_name, rows=len(rows))
        return record

    def get_sheet(self, script_id: str) -> list[dict[str, Any]]:
        record = self._require_record(script_id)
        return sheet_codec.decode(self._file_path(record))

    def update_sheet(self, script_id: str, rows: Any) -> list[dict[str, Any]]:
        if not script_id or not isinstance(rows, list) or not all(isinstance(row, Mapping) for row in rows):
            raise ValidationError("Invalid data format.")
        sheet_codec.require_question_answer(rows)

        with self._lock:
            record = self._require_record(script_id)
            path = self._file_path(record)
            sheet_codec.encode(rows, path)
            reloaded = sheet_codec.decode(path)
            self._build_index(record.script_id, reloaded)

        logger.info("script_updated", script_id=record.script_id, rows=len(reloaded))
        return reloaded

    def delete(self, script_id: str) -> SheetRecord:
        with self._lock:
            record = self._require_record(script_id)
            path = self._file_path(record)
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f"Could not delete {record.file_name}.") from exc
            self.records.remove(record.file_name)
            self._indexes.pop(record.script_id, None)
            removed_links = self.link_log.remove(record.script_id)

        logger.info("script_deleted", script_id=record.script_id, file_name=record.file_name, links=removed_links)
        return record

    def script_links(self) -> list[LinkEntry]:
        return self.link_log.entries()

    def restore_indexes(self) -> int:
        """Rebuilds indexes for stored scripts whose sheet still decodes."""
        restored = 0
        for record in self.records.all():
            if self.has_index(record.script_id):
                continue
            try:
                rows = sheet_codec.decode(self._file_path(record))
                sheet_codec.require_question_answer(rows)
            except (ValidationError, StorageError) as exc:
                logger.warning("index_restore_skipped", script_id=record.script_id, error=str(exc))
                continue
            self._build_index(record.script_id, rows)
            restored += 1
        logger.info("indexes_restored", restored=restored, records=len(self.records))
        return restored

    # ------------------------------------------------------------------ queries
    def answer(self, script_id: str, question: str | None) -> AskResult:
        index = self._indexes.get(str(script_id))
        if index is None:
            return AskResult(self.no_data_answer, "no_data")
        answer = index.answer_for(question or "")
        if answer is None:
            return AskResult(self.fallback_answer, "fallback")
        return AskResult(answer, "matched")

    def ask(self, script_id: str, question: str | None) -> str:
        return self.answer(script_id, question).answer
