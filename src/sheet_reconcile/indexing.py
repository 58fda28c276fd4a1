"""Header maps, criteria filters and per-source lookup tables."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sheet_reconcile import FIRST_DATA_ROW, HEADER_ROW
from sheet_reconcile.config import Criterion, LookupMode, ReconcileConfig, SourceSpec
from sheet_reconcile.io import read_first_sheet, row_at, value_at
from sheet_reconcile.values import CellValue, normalize

HeaderIndex = Mapping[str, int]


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


# ── Header row ───────────────────────────────────────────────────


def build_header_index(header_values: Iterable[Any]) -> dict[str, int]:
    """Map header text to 1-based column position.

    Blank headers are skipped. A repeated name keeps its rightmost column.
    """
    index: dict[str, int] = {}
    for position, value in enumerate(header_values, start=1):
        name = normalize(value).text.strip()
        if name:
            index[name] = position
    return index


# ── Criteria + keys ──────────────────────────────────────────────


def criterion_matches(criterion: Criterion, header: HeaderIndex, row: Sequence[Any]) -> bool:
    column = header.get(criterion.header_name)
    if column is None:
        return False
    text = normalize(value_at(row, column)).text.strip()
    return text in criterion.target_values


def row_matches(criteria: Iterable[Criterion], header: HeaderIndex, row: Sequence[Any]) -> bool:
    """True when *row* satisfies every criterion (an empty list always matches)."""
    return all(criterion_matches(c, header, row) for c in criteria)


def compute_key(
    row: Sequence[Any], identifier_column: int, extra_key_column: int | None = None
) -> tuple[str, list[CellValue]]:
    """Return ``(key, parts)`` for *row*.

    Composite keys are ``extra + identifier`` with no separator. The key is
    ``""`` whenever the identifier itself is blank.
    """
    identifier = normalize(value_at(row, identifier_column))
    parts = [identifier]
    if extra_key_column is not None:
        parts.insert(0, normalize(value_at(row, extra_key_column)))
    if not identifier.text.strip():
        return "", parts
    return "".join(p.text for p in parts), parts


def degraded_warning(where: str, parts: Iterable[CellValue]) -> str | None:
    bad = [p for p in parts if p.degraded]
    if not bad:
        return None
    shapes = ", ".join(f"{type(p.raw).__name__}={p.text!r}" for p in bad)
    return f"{where}: key cell has unexpected value type ({shapes})"


# ── Source lookup tables ─────────────────────────────────────────


@dataclass(frozen=True)
class SourceIndex:
    """Read-only key -> value (or key -> row) table for one source file."""

    spec: SourceSpec
    update_column: int
    lookup_mode: LookupMode
    entries: Mapping[str, Any]

    @property
    def name(self) -> str:
        return self.spec.display_name

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def lookup(self, key: str) -> Any:
        entry = self.entries.get(key)
        if entry is None:
            return None
        if self.lookup_mode is LookupMode.row:
            return value_at(entry, self.update_column)
        return entry


def build_source_index(
    spec: SourceSpec,
    config: ReconcileConfig,
    *,
    rows: Sequence[Sequence[Any]] | None = None,
    echo: Callable[..., None] = _noop,
    warnings: list[str] | None = None,
) -> SourceIndex | None:
    """Index the first worksheet of *spec*'s file.

    Returns ``None`` (and logs why) when a required column is missing from the
    source header row; the caller simply leaves that source out.
    """
    if warnings is None:
        warnings = []
    if rows is None:
        rows = read_first_sheet(Path(spec.file_name))
    header = build_header_index(row_at(rows, HEADER_ROW))

    required = {
        "targetIdentifierColumnName": config.identifier_column,
        "targetColumnName": config.update_column,
    }
    if config.extra_key_column is not None:
        required["extraKeyColumnName"] = config.extra_key_column

    resolved: dict[str, int] = {}
    for setting, name in required.items():
        column = header.get(name)
        if column is None:
            message = f"Skipping source {spec.display_name}: column {name!r} ({setting}) not found"
            echo(f"  [yellow]![/yellow] {message}")
            warnings.append(message)
            return None
        resolved[setting] = column

    id_col = resolved["targetIdentifierColumnName"]
    update_col = resolved["targetColumnName"]
    extra_col = resolved.get("extraKeyColumnName")
    echo(
        f"  {spec.display_name}: identifier -> column {id_col}, value -> column {update_col}"
        + (f", extra key -> column {extra_col}" if extra_col is not None else "")
    )

    check_criteria = config.criteria_scope.checks_source
    if check_criteria:
        for criterion in spec.criteria:
            if criterion.header_name not in header:
                message = (
                    f"{spec.display_name}: criterion column {criterion.header_name!r} "
                    "not in source header; no rows will be indexed"
                )
                echo(f"  [yellow]![/yellow] {message}")
                warnings.append(message)

    entries: dict[str, Any] = {}
    for row_num in range(FIRST_DATA_ROW, len(rows) + 1):
        row = rows[row_num - 1]
        if check_criteria and not row_matches(spec.criteria, header, row):
            continue
        key, parts = compute_key(row, id_col, extra_col)
        problem = degraded_warning(f"{spec.display_name} row {row_num}", parts)
        if problem:
            echo(f"  [yellow]![/yellow] {problem}")
            warnings.append(problem)
        if not key:
            echo(f"  {spec.display_name} row {row_num}: empty identifier, skipped")
            continue
        if config.lookup_mode is LookupMode.row:
            entries[key] = tuple(row)
        else:
            entries[key] = value_at(row, update_col)

    echo(f"  {spec.display_name}: {len(entries)} entries indexed")
    return SourceIndex(
        spec=spec,
        update_column=update_col,
        lookup_mode=config.lookup_mode,
        entries=entries,
    )
