"""
Parse inputs for the SceneScheduler — a JSON file, the workbook's PARAMETERS
sheet, or a plain mapping (HTTP body, CLI) all end up as a SchedulerConfig.
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import openpyxl

from .models import (
    ALL_RULES,
    ConfigurationError,
    DEFAULT_SCENES,
    MODE_SATISFY,
    ROLE_COUNT,
    SchedulerConfig,
)

PARAMETERS_SHEET = "PARAMETERS"

_ALIASES = {
    "persons": "n",
    "people": "n",
    "rounds": "r",
}


def _as_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}")


def _pick(values: Dict[str, Any], key: str, default: Any) -> Any:
    value = values.get(key)
    return default if value is None or value == "" else value


def _as_flag(value: Any) -> bool:
    """Y/N, yes/no, true/false, 1/0 → bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value or "N").strip().upper().startswith(("Y", "T", "1", "ON"))


def config_from_mapping(data: Mapping[str, Any]) -> SchedulerConfig:
    """
    Build a config from a flat or nested mapping.
    Rule flags may sit under "rule_flags" or at the top level by rule name.
    """
    values: Dict[str, Any] = {}
    for key, value in data.items():
        key = str(key).strip().lower()
        values[_ALIASES.get(key, key)] = value

    if "n" not in values or "r" not in values:
        raise ConfigurationError("parameters n (persons) and r (rounds) are required")

    flags: Dict[str, bool] = {}
    for rule, enabled in (values.get("rule_flags") or {}).items():
        flags[str(rule).strip().lower()] = _as_flag(enabled)
    for rule in ALL_RULES:
        if rule in values:
            flags[rule] = _as_flag(values[rule])

    mode = str(values.get("mode") or MODE_SATISFY).strip().lower()
    return SchedulerConfig(
        n=_as_int("n", values["n"]),
        r=_as_int("r", values["r"]),
        scenes=_as_int("scenes", _pick(values, "scenes", DEFAULT_SCENES)),
        roles=_as_int("roles", _pick(values, "roles", ROLE_COUNT)),
        rule_flags=flags,
        mode=mode,
    )


def parse_json(path: str) -> SchedulerConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    with p.open(encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: expected a JSON object")
    return config_from_mapping(data)


def read_parameters(wb) -> Dict[str, Any]:
    """PARAMETERS sheet: column A name, column B value, header on row 1."""
    if PARAMETERS_SHEET not in wb.sheetnames:
        raise ConfigurationError(f"Workbook has no {PARAMETERS_SHEET} sheet")
    ws = wb[PARAMETERS_SHEET]
    rows = {}
    for row in range(2, ws.max_row + 1):
        name = ws.cell(row, 1).value
        if name is None or not str(name).strip():
            continue
        rows[str(name).strip()] = ws.cell(row, 2).value
    return rows


def parse_workbook(wb_path: str) -> SchedulerConfig:
    p = Path(wb_path)
    if not p.exists():
        raise FileNotFoundError(f"Workbook not found: {wb_path}")
    wb = openpyxl.load_workbook(p, data_only=True)
    return config_from_mapping(read_parameters(wb))


def load_config(
    config_path: Optional[str] = None,
    workbook_path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> SchedulerConfig:
    """
    Resolve parameters from a JSON file or workbook, then apply overrides
    (None values are ignored).
    """
    data: Dict[str, Any] = {}
    if config_path:
        data.update(parse_json(config_path).to_dict())
    elif workbook_path:
        data.update(parse_workbook(workbook_path).to_dict())

    if overrides:
        for key, value in overrides.items():
            if value is None:
                continue
            if key == "rule_flags":
                merged = dict(data.get("rule_flags") or {})
                merged.update(value)
                data["rule_flags"] = merged
            else:
                data[key] = value
    return config_from_mapping(data)
