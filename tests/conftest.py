from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from openpyxl import Workbook


def write_book(
    path: Path,
    rows: Sequence[Sequence[Any]],
    *,
    sheet: str = "Sheet1",
    title: str = "Report",
) -> Path:
    """Save a workbook whose row 1 is a title, row 2 ``rows[0]`` (header), data after."""
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.title = sheet
    ws.append([title])
    for row in rows:
        ws.append(list(row))
    wb.save(path)
    return path


def write_config(path: Path, **overrides: Any) -> Path:
    data: dict[str, Any] = {
        "targetSheetName": "Sheet1",
        "targetColumnName": "Status",
        "targetIdentifierColumnName": "ID",
        "highlightColor": "FFFFFF00",
        "sourceFiles": [],
    }
    data.update(overrides)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path
