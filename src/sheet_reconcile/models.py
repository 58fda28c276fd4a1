"""Data models used across the package."""

from __future__ import annotations

from dataclasses import dataclass, field
from numbers import Integral
from typing import Any


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


@dataclass(frozen=True)
class CellUpdate:
    """One target cell overwritten from a source."""

    row: int
    key: str
    column: int
    old_value: str
    new_value: str
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "key": self.key,
            "column": self.column,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "source": self.source,
        }


@dataclass
class ReconcileReport:
    """Outcome of a single reconciliation run.

    Contract invariant: ``rows_skipped <= rows_scanned``.
    """

    target_path: str = ""
    output_path: str = ""
    rows_scanned: int = 0
    rows_skipped: int = 0
    sources_loaded: int = 0
    sources_skipped: list[str] = field(default_factory=list)
    updates: list[CellUpdate] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_scanned = _to_non_negative_int(self.rows_scanned, "rows_scanned")
        self.rows_skipped = _to_non_negative_int(self.rows_skipped, "rows_skipped")
        self.sources_loaded = _to_non_negative_int(self.sources_loaded, "sources_loaded")
        if self.rows_skipped > self.rows_scanned:
            raise ValueError("rows_skipped must be <= rows_scanned")

    @property
    def update_count(self) -> int:
        return len(self.updates)

    @property
    def rows_updated(self) -> int:
        return len({u.row for u in self.updates})

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_path": self.target_path,
            "output_path": self.output_path,
            "rows_scanned": self.rows_scanned,
            "rows_skipped": self.rows_skipped,
            "rows_updated": self.rows_updated,
            "update_count": self.update_count,
            "sources_loaded": self.sources_loaded,
            "sources_skipped": list(self.sources_skipped),
            "updates": [u.to_dict() for u in self.updates],
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single run."""

    tool: str = "sheet-reconcile"
    version: str = ""
    target_path: str = ""
    output_path: str = ""
    created_at_utc: str = ""
    rows_scanned: int = 0
    update_count: int = 0
    sha256: str = ""
    status: str = "success"
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_scanned = _to_non_negative_int(self.rows_scanned, "rows_scanned")
        self.update_count = _to_non_negative_int(self.update_count, "update_count")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "target_path": self.target_path,
            "output_path": self.output_path,
            "created_at_utc": self.created_at_utc,
            "rows_scanned": self.rows_scanned,
            "update_count": self.update_count,
            "sha256": self.sha256,
            "status": self.status,
            "error_message": self.error_message,
        }
