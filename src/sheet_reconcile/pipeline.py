"""Reconciliation pipeline — index sources, update the target sheet, save."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from openpyxl.styles import PatternFill

from sheet_reconcile import FIRST_DATA_ROW, PROVENANCE_OFFSET
from sheet_reconcile.config import (
    ColumnNotFoundError,
    MatchPolicy,
    OutputMode,
    ReconcileConfig,
)
from sheet_reconcile.indexing import (
    HeaderIndex,
    SourceIndex,
    build_header_index,
    build_source_index,
    compute_key,
    degraded_warning,
    row_matches,
)
from sheet_reconcile.io import TargetSheet, read_target_workbook, save_workbook, timestamped_path
from sheet_reconcile.models import CellUpdate, ReconcileReport
from sheet_reconcile.values import CellKind, normalize, values_differ


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


@dataclass(frozen=True)
class TargetColumns:
    identifier: int
    update: int
    extra_key: int | None = None

    @property
    def provenance(self) -> int:
        return self.update + PROVENANCE_OFFSET


def resolve_target_columns(
    header: HeaderIndex, config: ReconcileConfig, *, echo: Callable[..., None] = _noop
) -> TargetColumns:
    """Look up the configured target columns.

    Raises
    ------
    ColumnNotFoundError
        If the identifier, update or extra-key column is not in *header*.
    """
    identifier = header.get(config.identifier_column)
    echo(f"  Identifier column {config.identifier_column!r} -> {identifier}")
    update = header.get(config.update_column)
    echo(f"  Update column {config.update_column!r} -> {update}")
    if identifier is None:
        raise ColumnNotFoundError("targetIdentifierColumnName", config.identifier_column)
    if update is None:
        raise ColumnNotFoundError("targetColumnName", config.update_column)

    extra_key: int | None = None
    if config.extra_key_column is not None:
        extra_key = header.get(config.extra_key_column)
        echo(f"  Extra key column {config.extra_key_column!r} -> {extra_key}")
        if extra_key is None:
            raise ColumnNotFoundError("extraKeyColumnName", config.extra_key_column)
    return TargetColumns(identifier=identifier, update=update, extra_key=extra_key)


def _highlight(color: str) -> PatternFill:
    return PatternFill(fill_type="solid", start_color=color, end_color=color)


# ── Reconciler ───────────────────────────────────────────────────


def reconcile_sheet(
    sheet: TargetSheet,
    config: ReconcileConfig,
    sources: Sequence[SourceIndex],
    *,
    header: HeaderIndex | None = None,
    columns: TargetColumns | None = None,
    echo: Callable[..., None] = _noop,
    report: ReconcileReport | None = None,
) -> ReconcileReport:
    """Copy source values into the target update column, in place.

    Sources are tried in configuration order. Under ``MatchPolicy.first`` a
    row stops at the first source offering a value for it, whether or not
    that value differs from the cell; under ``MatchPolicy.all``
    every matching source is applied, each comparing against the cell as the
    previous source left it.
    """
    if report is None:
        report = ReconcileReport()
    if header is None:
        header = build_header_index(sheet.header_values())
    if columns is None:
        columns = resolve_target_columns(header, config, echo=echo)

    fill = _highlight(config.highlight_color) if config.highlight_color else None
    check_criteria = config.criteria_scope.checks_target

    for row_num in range(FIRST_DATA_ROW, sheet.row_count + 1):
        report.rows_scanned += 1
        row = sheet.row_values(row_num)
        key, parts = compute_key(row, columns.identifier, columns.extra_key)
        problem = degraded_warning(f"Target row {row_num}", parts)
        if problem:
            echo(f"  [yellow]![/yellow] {problem}")
            report.warnings.append(problem)
        if not key:
            echo(f"  Row {row_num}: empty identifier, skipped")
            report.rows_skipped += 1
            continue

        for source in sources:
            if check_criteria and not row_matches(source.spec.criteria, header, row):
                continue

            incoming = source.lookup(key)
            if normalize(incoming).is_empty:
                continue

            first_only = config.match_policy is MatchPolicy.first
            current = sheet.value(row_num, columns.update)
            if not values_differ(current, incoming):
                if first_only:
                    break
                continue

            cell = sheet.ws.cell(row=row_num, column=columns.update)
            cell.value = incoming
            if config.number_format and normalize(incoming).kind is CellKind.number:
                cell.number_format = config.number_format
            if config.write_provenance:
                sheet.ws.cell(row=row_num, column=columns.provenance).value = source.name
            if fill is not None:
                cell.fill = fill

            update = CellUpdate(
                row=row_num,
                key=key,
                column=columns.update,
                old_value=normalize(current).text,
                new_value=normalize(incoming).text,
                source=source.name,
            )
            report.updates.append(update)
            echo(
                f"  [green]+[/green] Row {row_num} {config.identifier_column}={key}: "
                f"{config.update_column} {update.old_value!r} -> {update.new_value!r} "
                f"(source: {source.name})"
            )
            if first_only:
                break
            row = sheet.row_values(row_num)

    return report


# ── Orchestration ────────────────────────────────────────────────


def resolve_output_path(config: ReconcileConfig, now: datetime | None = None) -> Path:
    target = Path(config.target_file)
    if config.output_mode is OutputMode.timestamped:
        return timestamped_path(target, now)
    return target


def build_source_indices(
    config: ReconcileConfig,
    *,
    echo: Callable[..., None] = _noop,
    report: ReconcileReport | None = None,
) -> list[SourceIndex]:
    """Index every configured source, leaving out the ones that cannot be resolved."""
    if report is None:
        report = ReconcileReport()
    indices: list[SourceIndex] = []
    for spec in config.sources:
        echo(f"[blue]>[/blue] Indexing {spec.display_name} …")
        index = build_source_index(spec, config, echo=echo, warnings=report.warnings)
        if index is None:
            report.sources_skipped.append(spec.file_name)
            continue
        indices.append(index)
    report.sources_loaded = len(indices)
    return indices


def run_reconciliation(
    config: ReconcileConfig,
    *,
    echo: Callable[..., None] = _noop,
    dry_run: bool = False,
    now: datetime | None = None,
) -> ReconcileReport:
    """Load the target, reconcile it against every source and save the result.

    With *dry_run* the updated workbook is discarded instead of saved.

    Raises
    ------
    SheetNotFoundError
        If the configured target sheet does not exist.
    ColumnNotFoundError
        If a target column cannot be resolved from the header row.
    """
    report = ReconcileReport(target_path=str(config.target_file))

    echo(f"[blue]>[/blue] Loading {config.target_file} …")
    book = read_target_workbook(Path(config.target_file))
    sheet = book.sheet(config.target_sheet)
    header = build_header_index(sheet.header_values())
    columns = resolve_target_columns(header, config, echo=echo)

    sources = build_source_indices(config, echo=echo, report=report)

    echo("[blue]>[/blue] Reconciling …")
    reconcile_sheet(
        sheet, config, sources, header=header, columns=columns, echo=echo, report=report
    )

    if dry_run:
        return report

    output = resolve_output_path(config, now)
    echo(f"[blue]>[/blue] Writing {output} …")
    save_workbook(book.workbook, output)
    report.output_path = str(output)
    return report
