"""
Spreadsheet <-> row conversion.

A sheet is read as its first tab, with the header row naming the columns.
Each data row becomes a dict in column order; empty cells are left out of
the row. Only blank cells count as empty: text such as "N/A" or "null" is
kept as written. Excel cells keep their stored type; CSV cells are text.
"""
from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Any, Iterable, Mapping

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from .errors import DecodeError, StorageError, ValidationError
from .observability import get_logger

logger = get_logger(__name__)

EXCEL_EXTENSIONS = {".xlsx", ".xlsm"}
SUPPORTED_EXTENSIONS = EXCEL_EXTENSIONS | {".csv"}
REQUIRED_COLUMNS = ("Question", "Answer")
SHEET_NAME = "Sheet1"

Row = dict[str, Any]


def is_supported(file_name: str) -> bool:
    return Path(str(file_name)).suffix.lower() in SUPPORTED_EXTENSIONS


# pandas' default NA words ("N/A", "None", "null", ...) are data here.
_NA_OPTIONS = {"keep_default_na": False, "na_values": [""]}


def _read_frame(path: Path) -> pd.DataFrame:
    if path.suffix.lower() == ".csv":
        return pd.read_csv(path, dtype=str, **_NA_OPTIONS)
    return pd.read_excel(path, sheet_name=0, engine="openpyxl", dtype=object, **_NA_OPTIONS)


def _frame_to_rows(frame: pd.DataFrame) -> list[Row]:
    columns = [str(col) for col in frame.columns]
    frame = frame.astype(object).where(pd.notna(frame), None)
    rows: list[Row] = []
    for values in frame.itertuples(index=False, name=None):
        row = {col: value for col, value in zip(columns, values) if value is not None and value != ""}
        if row:
            rows.append(row)
    return rows


def decode(file_path: str | Path) -> list[Row]:
    """Reads the first tab of a spreadsheet into an ordered list of rows."""
    path = Path(file_path)
    if not is_supported(path.name):
        raise DecodeError(f"Unsupported spreadsheet type: {path.suffix or path.name}")
    if not path.is_file():
        raise DecodeError(f"Spreadsheet not found: {path.name}")

    try:
        frame = _read_frame(path)
    except (OSError, ValueError, KeyError, zipfile.BadZipFile, InvalidFileException) as exc:
        logger.error("sheet_decode_failed", file=str(path), error=str(exc))
        raise DecodeError(f"Error reading spreadsheet {path.name}.") from exc

    rows = _frame_to_rows(frame)
    if not rows:
        raise DecodeError(f"Spreadsheet {path.name} has no data rows.")
    return rows


def ordered_columns(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    """Union of row keys, ordered by first appearance."""
    columns: dict[str, None] = {}
    for row in rows:
        for key in row.keys():
            columns.setdefault(str(key), None)
    return list(columns)


def encode(rows: list[Mapping[str, Any]], file_path: str | Path):
    """Overwrites file_path with a single-tab sheet holding exactly `rows`."""
    path = Path(file_path)
    if not is_supported(path.name):
        raise StorageError(f"Unsupported spreadsheet type: {path.suffix or path.name}")

    records = [{str(key): value for key, value in row.items()} for row in rows]
    # object dtype so an int column with gaps is not widened to float
    frame = pd.DataFrame(records, columns=ordered_columns(records), dtype=object)
    try:
        if path.suffix.lower() == ".csv":
            frame.to_csv(path, index=False)
        else:
            frame.to_excel(path, index=False, sheet_name=SHEET_NAME, engine="openpyxl")
    except (OSError, ValueError) as exc:
        logger.error("sheet_encode_failed", file=str(path), error=str(exc))
        raise StorageError(f"Error writing spreadsheet {path.name}.") from exc


def require_question_answer(rows: list[Mapping[str, Any]]):
    """The first row must carry both a Question and an Answer."""
    if not rows:
        raise ValidationError("The uploaded file is empty or missing required columns.")
    first = rows[0]
    if any(not _has_value(first.get(col)) for col in REQUIRED_COLUMNS):
        raise ValidationError("The uploaded file is empty or missing required columns.")


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True
