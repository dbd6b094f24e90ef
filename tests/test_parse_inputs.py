from __future__ import annotations

import json

import pytest

from scene_scheduler.models import ConfigurationError, MODE_MINIMIZE, SchedulerConfig
from scene_scheduler.parse_inputs import (
    config_from_mapping,
    load_config,
    parse_json,
    parse_workbook,
)
from scene_scheduler.workbook_sheets import parameter_rows, setup_parameters_sheet


def test_mapping_accepts_aliases_and_flat_rule_flags() -> None:
    config = config_from_mapping({"Persons": 16, "rounds": "4", "coverage": "N"})
    assert (config.n, config.r, config.scenes) == (16, 4, 4)
    assert not config.is_active("coverage")
    assert config.is_active("gender_balance")


def test_mapping_accepts_nested_rule_flags() -> None:
    config = config_from_mapping({"n": 24, "r": 4, "mode": "Minimize",
                                  "rule_flags": {"symmetry_breaking": "no"}})
    assert config.mode == MODE_MINIMIZE
    assert not config.is_active("symmetry_breaking")


def test_mapping_keeps_an_explicit_zero() -> None:
    assert config_from_mapping({"n": 4, "r": 1, "scenes": 0}).scenes == 0


@pytest.mark.parametrize("data", [{"n": 16}, {"r": 4}, {"n": "many", "r": 4}])
def test_mapping_rejects_missing_or_bad_values(data) -> None:
    with pytest.raises(ConfigurationError):
        config_from_mapping(data)


def test_json_file(tmp_path) -> None:
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"n": 12, "r": 3, "priority_ordering": False}))
    config = parse_json(str(path))
    assert (config.n, config.r) == (12, 3)
    assert not config.is_active("priority_ordering")

    with pytest.raises(FileNotFoundError):
        parse_json(str(tmp_path / "missing.json"))


def test_json_must_hold_an_object(tmp_path) -> None:
    path = tmp_path / "params.json"
    path.write_text("[1, 2]")
    with pytest.raises(ConfigurationError):
        parse_json(str(path))


def test_parameters_sheet_round_trip(tmp_path) -> None:
    wb_path = tmp_path / "params.xlsx"
    written = SchedulerConfig(n=24, r=4, rule_flags={"coverage": False}, mode=MODE_MINIMIZE)
    setup_parameters_sheet(str(wb_path), written)
    config = parse_workbook(str(wb_path))
    assert config.to_dict() == written.to_dict()


def test_setup_keeps_other_sheets(tmp_path) -> None:
    import openpyxl

    wb_path = tmp_path / "params.xlsx"
    wb = openpyxl.Workbook()
    wb.active.title = "NOTES"
    wb.save(wb_path)

    setup_parameters_sheet(str(wb_path))
    setup_parameters_sheet(str(wb_path), SchedulerConfig(n=12, r=3))
    sheets = openpyxl.load_workbook(wb_path).sheetnames
    assert sheets == ["PARAMETERS", "NOTES"]
    assert parse_workbook(str(wb_path)).n == 12


def test_default_parameter_rows() -> None:
    rows = dict((name, value) for name, value, _ in parameter_rows())
    assert rows["n"] == 16 and rows["r"] == 4
    assert rows["coverage"] == "Y"


def test_load_config_overrides_win(tmp_path) -> None:
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"n": 12, "r": 3, "rule_flags": {"coverage": False}}))
    config = load_config(
        config_path=str(path),
        overrides={"r": 2, "n": None, "rule_flags": {"symmetry_breaking": False}},
    )
    assert (config.n, config.r) == (12, 2)
    assert not config.is_active("coverage")
    assert not config.is_active("symmetry_breaking")


def test_load_config_from_overrides_alone() -> None:
    config = load_config(overrides={"n": 16, "r": 4, "scenes": None})
    assert config.scenes == 4
