"""I/O helpers — load workbooks, save them atomically, write JSON artifacts."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula
from openpyxl.worksheet.worksheet import Worksheet

from sheet_reconcile import HEADER_ROW
from sheet_reconcile.config import SheetNotFoundError
from sheet_reconcile.utils import local_stamp
from sheet_reconcile.values import FormulaValue

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")


def _check_workbook_path(path: Path) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found: {path}")
    if path.suffix.lower() not in EXCEL_SUFFIXES:
        raise ValueError(
            f"Unsupported file type: {path.suffix!r}. Use {', '.join(EXCEL_SUFFIXES)}"
        )
    return path


# ── Target workbook ──────────────────────────────────────────────


@dataclass
class TargetSheet:
    """Editable worksheet plus a read-only twin carrying cached formula results."""

    ws: Worksheet
    cached: Worksheet | None = None

    @property
    def title(self) -> str:
        return self.ws.title

    @property
    def row_count(self) -> int:
        return self.ws.max_row

    def value(self, row: int, column: int) -> Any:
        raw = self.ws.cell(row=row, column=column).value
        formula: str | None = None
        if isinstance(raw, (ArrayFormula, DataTableFormula)):
            formula = str(getattr(raw, "text", "") or "")
        elif isinstance(raw, str) and raw.startswith("="):
            formula = raw
        if formula is None:
            return raw
        result = None
        if self.cached is not None:
            result = self.cached.cell(row=row, column=column).value
        return FormulaValue(formula, result)

    def row_values(self, row: int) -> list[Any]:
        return [self.value(row, c) for c in range(1, self.ws.max_column + 1)]

    def header_values(self) -> list[Any]:
        return self.row_values(HEADER_ROW)


@dataclass
class TargetBook:
    path: Path
    workbook: Workbook
    cached: Workbook

    def sheet(self, name: str) -> TargetSheet:
        if name not in self.workbook.sheetnames:
            available = ", ".join(self.workbook.sheetnames)
            raise SheetNotFoundError(
                f"Sheet {name!r} not found in {self.path.name} (available: {available})"
            )
        return TargetSheet(self.workbook[name], self.cached[name])


def read_target_workbook(path: Path) -> TargetBook:
    """Open *path* for editing.

    The workbook is loaded twice: once with formulas (the copy that gets
    saved) and once ``data_only`` so formula cells can be compared by their
    cached results.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the extension is not an Excel OOXML workbook.
    """
    path = _check_workbook_path(path)
    keep_vba = path.suffix.lower() == ".xlsm"
    workbook = load_workbook(path, keep_vba=keep_vba)
    cached = load_workbook(path, data_only=True)
    return TargetBook(path=path, workbook=workbook, cached=cached)


# ── Source workbooks ─────────────────────────────────────────────


def read_first_sheet(path: Path) -> list[tuple[Any, ...]]:
    """Return every row of the first worksheet of *path* as value tuples.

    Formula cells carry their cached results. The workbook is closed before
    returning so only the row values stay in memory.
    """
    path = _check_workbook_path(path)
    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        return [tuple(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def row_at(rows: Sequence[Sequence[Any]], row: int) -> Sequence[Any]:
    """1-based row access; rows past the end are empty."""
    if 1 <= row <= len(rows):
        return rows[row - 1]
    return ()


def value_at(row: Sequence[Any], column: int) -> Any:
    """1-based column access; cells past the end are ``None``."""
    if 1 <= column <= len(row):
        return row[column - 1]
    return None


# ── Writing ──────────────────────────────────────────────────────


def timestamped_path(path: Path, now: datetime | None = None) -> Path:
    """``report.xlsx`` -> ``report20240131093000.xlsx`` (local time)."""
    path = Path(path)
    return path.with_name(f"{path.stem}{local_stamp(now)}{path.suffix}")


def save_workbook(workbook: Workbook, path: Path) -> Path:
    """Save *workbook* to *path* via a temp file so a failed save leaves the old file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.stem}.tmp{path.suffix}")
    workbook.save(tmp_path)
    tmp_path.replace(path)
    return path


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
