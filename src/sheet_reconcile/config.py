"""Run configuration — loaded once from JSON, immutable afterwards."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("config.json")
DEFAULT_HIGHLIGHT = "FFFFFF00"

_COLOR_RE = re.compile(r"^(?:[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$")


class ConfigError(ValueError):
    """Configuration is unusable; the run cannot start."""


class SheetNotFoundError(ConfigError):
    pass


class ColumnNotFoundError(ConfigError):
    def __init__(self, setting: str, header: str) -> None:
        super().__init__(f"Column {header!r} ({setting}) not found in header row")
        self.setting = setting
        self.header = header


class OutputMode(str, Enum):
    overwrite = "overwrite"
    timestamped = "timestamped"


class MatchPolicy(str, Enum):
    all = "all"
    first = "first"


class LookupMode(str, Enum):
    value = "value"
    row = "row"


class CriteriaScope(str, Enum):
    both = "both"
    target = "target"
    source = "source"

    @property
    def checks_source(self) -> bool:
        return self is not CriteriaScope.target

    @property
    def checks_target(self) -> bool:
        return self is not CriteriaScope.source


# ── Validation helpers ───────────────────────────────────────────


def _require_str(data: Mapping[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def _string_list(values: Any, field_name: str) -> tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str) or not isinstance(values, Sequence):
        raise ConfigError(f"{field_name} must be a list of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise ConfigError(f"{field_name} items must be strings")
        normalized.append(item)
    return tuple(normalized)


def _enum_value(enum_cls: type[Enum], data: Mapping[str, Any], key: str, default: Enum) -> Any:
    raw = data.get(key)
    if raw is None:
        return default
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = "/".join(m.value for m in enum_cls)
        raise ConfigError(f"Invalid {key}: {raw!r}. Use {allowed}.") from None


# ── Config values ────────────────────────────────────────────────


@dataclass(frozen=True)
class Criterion:
    """Row filter: the named column must equal one of *target_values*."""

    header_name: str
    target_values: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> Criterion:
        if not isinstance(data, Mapping):
            raise ConfigError("criteria entries must be objects")
        header = data.get("headerName")
        if not isinstance(header, str) or not header:
            raise ConfigError("criteria headerName must be a non-empty string")
        return cls(header, _string_list(data.get("targetValues"), "targetValues"))


@dataclass(frozen=True)
class SourceSpec:
    file_name: str
    criteria: tuple[Criterion, ...] = ()

    @property
    def path(self) -> Path:
        return Path(self.file_name)

    @property
    def display_name(self) -> str:
        return self.path.name

    @classmethod
    def from_dict(cls, data: Any) -> SourceSpec:
        if not isinstance(data, Mapping):
            raise ConfigError("sourceFiles entries must be objects")
        file_name = data.get("fileName")
        if not isinstance(file_name, str) or not file_name:
            raise ConfigError("sourceFiles fileName must be a non-empty string")
        raw_criteria = data.get("criteria") or []
        if not isinstance(raw_criteria, list):
            raise ConfigError(f"criteria for {file_name!r} must be a list")
        return cls(file_name, tuple(Criterion.from_dict(c) for c in raw_criteria))


@dataclass(frozen=True)
class ReconcileConfig:
    """Everything one reconciliation run needs, as read from ``config.json``."""

    target_file: str = "target.xlsx"
    target_sheet: str = "Sheet1"
    update_column: str = "A"
    identifier_column: str = "B"
    extra_key_column: str | None = None
    highlight_color: str | None = DEFAULT_HIGHLIGHT
    number_format: str | None = None
    write_provenance: bool = False
    output_mode: OutputMode = OutputMode.overwrite
    match_policy: MatchPolicy = MatchPolicy.all
    lookup_mode: LookupMode = LookupMode.value
    criteria_scope: CriteriaScope = CriteriaScope.both
    sources: tuple[SourceSpec, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.highlight_color is not None and not _COLOR_RE.match(self.highlight_color):
            raise ConfigError(
                f"highlightColor must be 6 or 8 hex digits (ARGB), got {self.highlight_color!r}"
            )

    @property
    def composite_key(self) -> bool:
        return self.extra_key_column is not None

    def with_target(self, path: str | Path) -> ReconcileConfig:
        return replace(self, target_file=str(path))

    @classmethod
    def from_dict(cls, data: Any) -> ReconcileConfig:
        if not isinstance(data, Mapping):
            raise ConfigError("Configuration root must be a JSON object")

        update_column = _require_str(data, "targetColumnName", "A")
        if data.get("targetUpdateColumnName") is not None:
            update_column = _require_str(data, "targetUpdateColumnName", update_column)

        highlight: str | None = DEFAULT_HIGHLIGHT
        if "highlightColor" in data:
            highlight = _optional_str(data, "highlightColor")

        write_provenance = data.get("writeProvenance", False)
        if not isinstance(write_provenance, bool):
            raise ConfigError("writeProvenance must be true or false")

        raw_sources = data.get("sourceFiles") or []
        if not isinstance(raw_sources, list):
            raise ConfigError("sourceFiles must be a list")

        return cls(
            target_file=_require_str(data, "targetFileName", "target.xlsx"),
            target_sheet=_require_str(data, "targetSheetName", "Sheet1"),
            update_column=update_column,
            identifier_column=_require_str(data, "targetIdentifierColumnName", "B"),
            extra_key_column=_optional_str(data, "extraKeyColumnName"),
            highlight_color=highlight,
            number_format=_optional_str(data, "numberFormat"),
            write_provenance=write_provenance,
            output_mode=_enum_value(OutputMode, data, "outputMode", OutputMode.overwrite),
            match_policy=_enum_value(MatchPolicy, data, "matchPolicy", MatchPolicy.all),
            lookup_mode=_enum_value(LookupMode, data, "lookupMode", LookupMode.value),
            criteria_scope=_enum_value(
                CriteriaScope, data, "criteriaScope", CriteriaScope.both
            ),
            sources=tuple(SourceSpec.from_dict(s) for s in raw_sources),
        )


def load_config(path: Path) -> ReconcileConfig:
    """Read and validate a JSON configuration file.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ConfigError
        If the file is not valid JSON or a field has the wrong shape.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    return ReconcileConfig.from_dict(data)
