"""Cell value normalisation — one canonical text form for every cell shape."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any


class CellKind(str, Enum):
    empty = "empty"
    text = "text"
    number = "number"
    boolean = "boolean"
    date = "date"
    formula = "formula"
    other = "other"


@dataclass(frozen=True)
class FormulaValue:
    """A formula cell paired with its last cached result (``None`` if never computed)."""

    formula: str
    result: Any = None


@dataclass(frozen=True)
class CellValue:
    kind: CellKind
    raw: Any
    text: str

    @property
    def is_empty(self) -> bool:
        return self.text == ""

    @property
    def degraded(self) -> bool:
        """True when *text* came from the generic ``str()`` fallback."""
        if self.kind is CellKind.formula:
            return normalize(self.raw.result).degraded
        return self.kind is CellKind.other


def _format_number(value: int | float | Decimal) -> str:
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return str(int(value))
        return str(value)
    return str(value)


def _format_temporal(value: date | time | datetime) -> str:
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    return value.isoformat()


def normalize(value: Any) -> CellValue:
    """Classify *value* and derive its comparable text.

    Formula cells take the text of their cached result, never the formula
    itself. Empty cells and empty strings both yield ``""``.
    """
    if value is None:
        return CellValue(CellKind.empty, value, "")
    if isinstance(value, FormulaValue):
        return CellValue(CellKind.formula, value, normalize(value.result).text)
    if isinstance(value, bool):
        return CellValue(CellKind.boolean, value, "TRUE" if value else "FALSE")
    if isinstance(value, str):
        if value == "":
            return CellValue(CellKind.empty, value, "")
        return CellValue(CellKind.text, value, value)
    if isinstance(value, (int, float, Decimal)):
        return CellValue(CellKind.number, value, _format_number(value))
    if isinstance(value, (datetime, date, time)):
        return CellValue(CellKind.date, value, _format_temporal(value))
    if isinstance(value, timedelta):
        return CellValue(CellKind.date, value, str(value))
    return CellValue(CellKind.other, value, str(value))


def cell_text(value: Any) -> str:
    return normalize(value).text


def values_differ(current: Any, incoming: Any) -> bool:
    """Loose inequality: ``1``, ``1.0`` and ``"1"`` are all the same value."""
    return normalize(current).text != normalize(incoming).text
