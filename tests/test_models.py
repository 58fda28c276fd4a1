from __future__ import annotations

import pytest

from sheet_reconcile.models import CellUpdate, ReconcileReport, RunManifest


def _update(row: int, source: str = "a.xlsx") -> CellUpdate:
    return CellUpdate(row=row, key="001", column=2, old_value="", new_value="Done", source=source)


def test_report_counts_updates_and_distinct_rows() -> None:
    report = ReconcileReport(updates=[_update(3), _update(3, "b.xlsx"), _update(5)])

    assert report.update_count == 3
    assert report.rows_updated == 2


def test_report_to_dict_returns_list_copies() -> None:
    report = ReconcileReport(rows_scanned=2, sources_skipped=["x.xlsx"], warnings=["w"])

    payload = report.to_dict()
    payload["sources_skipped"].append("y.xlsx")
    payload["warnings"].append("another")

    assert report.sources_skipped == ["x.xlsx"]
    assert report.warnings == ["w"]
    assert payload["update_count"] == 0


def test_report_rejects_negative_and_inconsistent_counts() -> None:
    with pytest.raises(ValueError, match="rows_scanned"):
        ReconcileReport(rows_scanned=-1)

    with pytest.raises(ValueError, match="rows_skipped"):
        ReconcileReport(rows_scanned=1, rows_skipped=2)

    with pytest.raises(TypeError, match="sources_loaded"):
        ReconcileReport(sources_loaded=True)  # type: ignore[arg-type]


def test_run_manifest_rejects_non_integer_and_negative_counts() -> None:
    with pytest.raises(TypeError, match="rows_scanned"):
        RunManifest(rows_scanned="3")  # type: ignore[arg-type]

    with pytest.raises(ValueError, match="update_count"):
        RunManifest(update_count=-2)


def test_cell_update_to_dict() -> None:
    assert _update(4).to_dict() == {
        "row": 4,
        "key": "001",
        "column": 2,
        "old_value": "",
        "new_value": "Done",
        "source": "a.xlsx",
    }
