"""Run artifacts — JSON report and a CSV change log."""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from sheet_reconcile.io import write_json
from sheet_reconcile.models import ReconcileReport

CHANGE_LOG_COLUMNS = ["row", "key", "column", "old_value", "new_value", "source"]


def write_reconcile_report(out_dir: Path, report: ReconcileReport) -> Path:
    """Write ``reconcile_report.json`` into *out_dir* and return the path."""
    return write_json(Path(out_dir) / "reconcile_report.json", report.to_dict())


def changes_frame(report: ReconcileReport) -> pd.DataFrame:
    """One row per updated cell, in the order the updates were applied."""
    records = [u.to_dict() for u in report.updates]
    return pd.DataFrame.from_records(records, columns=CHANGE_LOG_COLUMNS)


def write_change_log(out_dir: Path, report: ReconcileReport) -> Path:
    """Write ``changes.csv`` into *out_dir*; a header-only file when nothing changed."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / "changes.csv"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    changes_frame(report).to_csv(tmp_path, index=False, encoding="utf-8")
    tmp_path.replace(path)
    return path
