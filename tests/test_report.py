from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from sheet_reconcile.models import CellUpdate, ReconcileReport
from sheet_reconcile.report import (
    CHANGE_LOG_COLUMNS,
    changes_frame,
    write_change_log,
    write_reconcile_report,
)


def _report() -> ReconcileReport:
    return ReconcileReport(
        target_path="t.xlsx",
        output_path="t.xlsx",
        rows_scanned=3,
        rows_skipped=1,
        sources_loaded=1,
        updates=[
            CellUpdate(row=3, key="001", column=2, old_value="", new_value="Done", source="a.xlsx"),
            CellUpdate(row=4, key="002", column=2, old_value="1", new_value="2", source="a.xlsx"),
        ],
    )


def test_write_reconcile_report_contract(tmp_path: Path) -> None:
    out = write_reconcile_report(tmp_path, _report())

    assert out == tmp_path / "reconcile_report.json"
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["update_count"] == 2
    assert data["rows_updated"] == 2
    assert data["rows_skipped"] == 1
    assert data["updates"][0]["new_value"] == "Done"


def test_changes_frame_keeps_update_order() -> None:
    frame = changes_frame(_report())

    assert list(frame.columns) == CHANGE_LOG_COLUMNS
    assert frame["key"].tolist() == ["001", "002"]


def test_write_change_log_round_trips_through_csv(tmp_path: Path) -> None:
    path = write_change_log(tmp_path / "out", _report())

    frame = pd.read_csv(path, dtype=str)
    assert path.name == "changes.csv"
    assert frame["new_value"].tolist() == ["Done", "2"]
    assert frame["source"].unique().tolist() == ["a.xlsx"]


def test_write_change_log_without_updates_writes_header_only(tmp_path: Path) -> None:
    path = write_change_log(tmp_path, ReconcileReport())

    assert path.read_text(encoding="utf-8").strip() == ",".join(CHANGE_LOG_COLUMNS)
