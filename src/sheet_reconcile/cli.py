"""CLI entry point for sheet-reconcile."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from zipfile import BadZipFile

import typer
from openpyxl.utils.exceptions import InvalidFileException
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from sheet_reconcile import __version__
from sheet_reconcile.config import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    ReconcileConfig,
    load_config,
)
from sheet_reconcile.io import write_json
from sheet_reconcile.models import ReconcileReport, RunManifest
from sheet_reconcile.pipeline import run_reconciliation
from sheet_reconcile.report import write_change_log, write_reconcile_report
from sheet_reconcile.utils import sha256_file, utcnow_iso

app = typer.Typer(
    name="srecon",
    help="sheet-reconcile — Copy matching values between spreadsheets by identifier.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

_INPUT_ERRORS = (FileNotFoundError, ValueError, OSError, InvalidFileException, BadZipFile)


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sheet-reconcile v{__version__}")
        raise typer.Exit()


def _prompt_existing_path(message: str, default: Path) -> Path:
    """Ask for a path until the answer names something that exists."""
    while True:
        answer = typer.prompt(message, default=str(default))
        candidate = Path(answer.strip())
        if candidate.exists():
            return candidate
        _err(f"File not found: {candidate} (check the path and try again)")


def _existing_path(path: Path, label: str, *, no_input: bool) -> Path:
    if path.exists():
        return path
    if no_input:
        raise FileNotFoundError(f"{label} not found: {path}")
    console.print(f"[yellow]![/yellow] {label} not found: {path}")
    return _prompt_existing_path(f"Path to {label.lower()}", path)


def _load_run_config(
    config_path: Path, target: Path | None, *, no_input: bool
) -> ReconcileConfig:
    config_path = _existing_path(config_path, "Config file", no_input=no_input)
    config = load_config(config_path)
    target_path = target if target is not None else Path(config.target_file)
    target_path = _existing_path(target_path, "Target workbook", no_input=no_input)
    return config.with_target(target_path)


def _input_sha256(path: str | Path) -> str:
    try:
        return sha256_file(Path(path))
    except OSError:
        return ""


def _write_artifacts(
    report_dir: Path,
    report: ReconcileReport,
    created_at: str,
    *,
    sha256: str = "",
    status: str = "success",
    error_message: str = "",
) -> list[Path]:
    manifest = RunManifest(
        version=__version__,
        target_path=report.target_path,
        output_path=report.output_path,
        created_at_utc=created_at,
        rows_scanned=report.rows_scanned,
        update_count=report.update_count,
        sha256=sha256,
        status=status,
        error_message=error_message,
    )
    return [
        write_reconcile_report(report_dir, report),
        write_change_log(report_dir, report),
        write_json(report_dir / "run_manifest.json", manifest.to_dict()),
    ]


def _execute(
    *,
    config_path: Path,
    target: Path | None,
    report_dir: Path | None,
    no_input: bool,
    quiet: bool,
    dry_run: bool,
) -> ReconcileReport:
    echo = _printer(quiet)
    created_at = utcnow_iso()

    try:
        config = _load_run_config(config_path, target, no_input=no_input)
    except (FileNotFoundError, ConfigError) as exc:
        _err(str(exc))
        if report_dir is not None:
            _write_artifacts(report_dir, ReconcileReport(), created_at,
                             status="failed", error_message=str(exc))
        raise typer.Exit(code=2)

    if not quiet:
        console.print(Panel(
            f"[bold]sheet-reconcile[/bold] v{__version__}"
            + ("  [dim]check mode[/dim]" if dry_run else "")
            + f"\nTarget:  {config.target_file} [{config.target_sheet}]"
            f"\nSources: {len(config.sources)}",
            title="Check" if dry_run else "Reconcile Start",
            border_style="cyan" if dry_run else "blue",
        ))
        console.print(
            f"  Policy: match={config.match_policy.value}, "
            f"lookup={config.lookup_mode.value}, "
            f"criteria={config.criteria_scope.value}, "
            f"output={config.output_mode.value}"
        )

    # Hash before the run: overwrite mode replaces the target file.
    sha256 = _input_sha256(config.target_file)
    report = ReconcileReport(target_path=config.target_file)
    try:
        report = run_reconciliation(config, echo=echo, dry_run=dry_run)
    except _INPUT_ERRORS as exc:
        _err(str(exc))
        if report_dir is not None:
            _write_artifacts(report_dir, report, created_at, sha256=sha256,
                             status="failed", error_message=str(exc))
        raise typer.Exit(code=2)
    except Exception as exc:
        message = f"Unexpected internal error: {exc}"
        _err(message)
        if report_dir is not None:
            _write_artifacts(report_dir, report, created_at, sha256=sha256,
                             status="failed", error_message=message)
        raise typer.Exit(code=1)

    if report_dir is not None:
        for path in _write_artifacts(report_dir, report, created_at, sha256=sha256):
            echo(f"  Artifact -> {path}")
    return report


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """sheet-reconcile CLI."""


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c",
        help="Path to config.json.",
    ),
    target: Path | None = typer.Option(
        None, "--target", "-t",
        help="Target workbook (overrides targetFileName).",
    ),
    report_dir: Path | None = typer.Option(
        None, "--report-dir", "-o",
        help="Write reconcile_report.json, changes.csv and run_manifest.json here.",
    ),
    no_input: bool = typer.Option(
        False, "--no-input",
        help="Fail instead of prompting when a path does not exist.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output.",
    ),
) -> None:
    """Update the target workbook from the configured source workbooks."""
    report = _execute(
        config_path=config_path,
        target=target,
        report_dir=report_dir,
        no_input=no_input,
        quiet=quiet,
        dry_run=False,
    )
    if quiet:
        return
    console.print(Panel(
        f"[green]Done[/green] — {report.update_count} updates "
        f"({report.rows_updated} rows) -> {report.output_path}",
        title="Reconcile Complete", border_style="green",
    ))


# ── check command ────────────────────────────────────────────────


@app.command()
def check(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c",
        help="Path to config.json.",
    ),
    target: Path | None = typer.Option(
        None, "--target", "-t",
        help="Target workbook (overrides targetFileName).",
    ),
    report_dir: Path | None = typer.Option(
        None, "--report-dir", "-o",
        help="Write reconcile_report.json, changes.csv and run_manifest.json here.",
    ),
    no_input: bool = typer.Option(
        False, "--no-input",
        help="Fail instead of prompting when a path does not exist.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output.",
    ),
) -> None:
    """Show what a run would change without saving the target workbook."""
    report = _execute(
        config_path=config_path,
        target=target,
        report_dir=report_dir,
        no_input=no_input,
        quiet=quiet,
        dry_run=True,
    )
    if quiet:
        return

    tbl = RichTable(title="Check Summary", show_lines=True)
    tbl.add_column("Check", style="bold")
    tbl.add_column("Result")
    tbl.add_row("Rows scanned", str(report.rows_scanned))
    tbl.add_row("Rows skipped", str(report.rows_skipped))
    tbl.add_row("Sources loaded", str(report.sources_loaded))
    if report.sources_skipped:
        tbl.add_row("Sources skipped", f"[yellow]{', '.join(report.sources_skipped)}[/yellow]")
    else:
        tbl.add_row("Sources skipped", "[green]none[/green]")
    tbl.add_row("Pending updates", str(report.update_count))
    tbl.add_row("Warnings", str(len(report.warnings)))
    console.print(tbl)
