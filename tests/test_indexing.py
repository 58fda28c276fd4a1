from __future__ import annotations

from pathlib import Path

from conftest import write_book

from sheet_reconcile.config import (
    Criterion,
    CriteriaScope,
    LookupMode,
    ReconcileConfig,
    SourceSpec,
)
from sheet_reconcile.indexing import (
    build_header_index,
    build_source_index,
    compute_key,
    degraded_warning,
    row_matches,
)
from sheet_reconcile.values import FormulaValue


def _config(**kwargs: object) -> ReconcileConfig:
    base: dict[str, object] = {"identifier_column": "ID", "update_column": "Status"}
    base.update(kwargs)
    return ReconcileConfig(**base)  # type: ignore[arg-type]


def _rows(*data: tuple[object, ...], header: tuple[object, ...] = ("ID", "Status")) -> list[tuple[object, ...]]:
    return [("title",), header, *data]


# ── Header index ─────────────────────────────────────────────────


def test_header_index_skips_blanks_and_is_one_based() -> None:
    index = build_header_index(["ID", None, "", "  Status "])

    assert index == {"ID": 1, "Status": 4}


def test_header_index_rightmost_duplicate_wins() -> None:
    assert build_header_index(["ID", "Status", "ID"])["ID"] == 3


def test_header_index_uses_formula_results() -> None:
    assert build_header_index([FormulaValue('="ID"', "ID")]) == {"ID": 1}


# ── Criteria + keys ──────────────────────────────────────────────


def test_empty_criteria_always_match() -> None:
    assert row_matches([], {}, ("x",))


def test_criteria_require_every_entry_and_trim_cell_text() -> None:
    header = {"Team": 1, "Phase": 2}
    criteria = [Criterion("Team", ("A", "B")), Criterion("Phase", ("1",))]

    assert row_matches(criteria, header, (" A ", 1))
    assert not row_matches(criteria, header, ("C", 1))
    assert not row_matches(criteria, header, ("A", 2))


def test_criterion_on_unknown_column_never_matches() -> None:
    assert not row_matches([Criterion("Missing", ("",))], {"Team": 1}, ("A",))


def test_criterion_can_match_blank_cells() -> None:
    assert row_matches([Criterion("Team", ("",))], {"Team": 1}, (None,))


def test_compute_key_plain_and_composite() -> None:
    row = ("001", "2024-03-01", "x")

    assert compute_key(row, 1)[0] == "001"
    assert compute_key(row, 1, 2)[0] == "2024-03-01001"


def test_compute_key_blank_identifier_gives_empty_key_even_when_composite() -> None:
    assert compute_key((None, "2024-03-01"), 1, 2)[0] == ""
    assert compute_key(("   ",), 1)[0] == ""


# ── Source index ─────────────────────────────────────────────────


def test_last_write_wins_for_duplicate_keys() -> None:
    rows = _rows(("001", "first"), ("002", "other"), ("001", "second"))

    index = build_source_index(SourceSpec("s.xlsx"), _config(), rows=rows)

    assert index is not None
    assert len(index) == 2
    assert index.lookup("001") == "second"


def test_composite_keys_do_not_collide() -> None:
    rows = _rows(
        ("001", "2024-01", "jan"),
        ("001", "2024-02", "feb"),
        header=("ID", "Planned", "Status"),
    )

    index = build_source_index(
        SourceSpec("s.xlsx"), _config(extra_key_column="Planned"), rows=rows
    )

    assert index is not None
    assert index.lookup("2024-01001") == "jan"
    assert index.lookup("2024-02001") == "feb"
    assert "001" not in index


def test_missing_required_column_skips_source_with_warning() -> None:
    rows = _rows(("001", "Done"), header=("Code", "Status"))
    warnings: list[str] = []
    lines: list[str] = []

    index = build_source_index(
        SourceSpec("s.xlsx"), _config(), rows=rows, echo=lines.append, warnings=warnings
    )

    assert index is None
    assert "targetIdentifierColumnName" in warnings[0]
    assert any("Skipping source s.xlsx" in line for line in lines)


def test_missing_extra_key_column_skips_source() -> None:
    rows = _rows(("001", "Done"))

    assert build_source_index(
        SourceSpec("s.xlsx"), _config(extra_key_column="Planned"), rows=rows
    ) is None


def test_source_side_criteria_filter_rows() -> None:
    rows = _rows(("001", "Done", "A"), ("002", "Done", "B"), header=("ID", "Status", "Team"))
    spec = SourceSpec("s.xlsx", (Criterion("Team", ("A",)),))

    both = build_source_index(spec, _config(), rows=rows)
    target_only = build_source_index(
        spec, _config(criteria_scope=CriteriaScope.target), rows=rows
    )

    assert both is not None and set(both.entries) == {"001"}
    assert target_only is not None and set(target_only.entries) == {"001", "002"}


def test_rows_with_blank_identifier_are_not_indexed() -> None:
    rows = _rows((None, "Done"), ("", "Done"), ("003", "Done"))
    lines: list[str] = []

    index = build_source_index(SourceSpec("s.xlsx"), _config(), rows=rows, echo=lines.append)

    assert index is not None
    assert set(index.entries) == {"003"}
    skipped = [line for line in lines if "empty identifier" in line]
    assert skipped == [
        "  s.xlsx row 3: empty identifier, skipped",
        "  s.xlsx row 4: empty identifier, skipped",
    ]


def test_row_lookup_mode_keeps_whole_rows() -> None:
    rows = _rows(("001", "Done", "extra"), header=("ID", "Status", "Note"))

    index = build_source_index(
        SourceSpec("s.xlsx"), _config(lookup_mode=LookupMode.row), rows=rows
    )

    assert index is not None
    assert index.entries["001"] == ("001", "Done", "extra")
    assert index.lookup("001") == "Done"
    assert index.lookup("999") is None


def test_source_index_reads_first_worksheet_from_disk(tmp_path: Path) -> None:
    path = write_book(tmp_path / "src.xlsx", [("ID", "Status"), ("001", "Done")], sheet="Whatever")

    index = build_source_index(SourceSpec(str(path)), _config())

    assert index is not None
    assert index.name == "src.xlsx"
    assert index.lookup("001") == "Done"


def test_degraded_key_cells_produce_warning() -> None:
    class Blob:
        def __str__(self) -> str:
            return "<blob>"

    _key, parts = compute_key((Blob(),), 1)

    message = degraded_warning("Target row 3", parts)

    assert message is not None
    assert message.startswith("Target row 3")
    assert "Blob" in message
    assert degraded_warning("row", compute_key(("001",), 1)[1]) is None
