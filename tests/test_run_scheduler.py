from __future__ import annotations

import json
import sys

import pytest

import run_scheduler


def _run(monkeypatch, *argv) -> None:
    monkeypatch.setattr(sys, "argv", ["run_scheduler.py", *argv])
    run_scheduler.main()


def test_check_prints_ok(monkeypatch, capsys) -> None:
    _run(monkeypatch, "check", "-n", "16", "-r", "4")
    assert "Configuration: OK" in capsys.readouterr().out


def test_check_rejects_too_few_persons(monkeypatch, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        _run(monkeypatch, "check", "-n", "5", "-r", "4")
    assert exc.value.code == 1
    assert "distinct leaders" in capsys.readouterr().out


def test_solve_then_validate(monkeypatch, capsys, tmp_path) -> None:
    out = tmp_path / "schedule.xlsx"
    _run(monkeypatch, "solve", "-n", "12", "-r", "3", "--out", str(out))
    printed = capsys.readouterr().out
    assert "Solution 1 found" in printed
    assert "Status: FEASIBLE" in printed
    assert "Validation: OK" in printed
    assert out.exists()

    _run(monkeypatch, "validate", "-n", "12", "-r", "3", "--schedule", str(out))
    assert "Validation: OK" in capsys.readouterr().out


def test_solve_infeasible_exits_nonzero(monkeypatch, capsys, tmp_path) -> None:
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"n": 4, "r": 3, "scenes": 1}))
    with pytest.raises(SystemExit) as exc:
        _run(monkeypatch, "solve", "--config", str(path))
    assert exc.value.code == 1
    assert "Status: INFEASIBLE" in capsys.readouterr().out


def test_solve_invalid_configuration_exits_two(monkeypatch, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        _run(monkeypatch, "solve", "-n", "5", "-r", "4")
    assert exc.value.code == 2


def test_setup_writes_parameters(monkeypatch, capsys, tmp_path) -> None:
    wb_path = tmp_path / "params.xlsx"
    _run(monkeypatch, "setup", "--workbook", str(wb_path), "-n", "24", "-r", "4")
    _run(monkeypatch, "check", "--workbook", str(wb_path), "--mode", "minimize")
    printed = capsys.readouterr().out
    assert "Persons: 24" in printed
    assert "Mode: minimize" in printed


def test_missing_parameters(monkeypatch, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        _run(monkeypatch, "check")
    assert exc.value.code == 2


def test_validate_flags_a_duplicated_person(monkeypatch, capsys, tmp_path) -> None:
    import openpyxl

    out = tmp_path / "schedule.xlsx"
    _run(monkeypatch, "solve", "-n", "12", "-r", "3", "--out", str(out))
    wb = openpyxl.load_workbook(out)
    ws = wb["SCHEDULE"]
    ws.cell(3, 4, f"{ws.cell(3, 4).value}, 1")  # person 1 also leads S1 in round 1
    wb.save(out)
    capsys.readouterr()

    with pytest.raises(SystemExit) as exc:
        _run(monkeypatch, "validate", "-n", "12", "-r", "3", "--schedule", str(out))
    assert exc.value.code == 1
    assert "listed twice" in capsys.readouterr().out
