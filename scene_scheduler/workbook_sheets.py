"""
Add or refresh the PARAMETERS data-entry sheet of a scheduling workbook.
Other sheets in the workbook are left untouched.
"""

from pathlib import Path
from typing import Optional

import openpyxl
from openpyxl.styles import Font, PatternFill

from .models import MODE_SATISFY, OPTIONAL_RULES, SchedulerConfig
from .parse_inputs import PARAMETERS_SHEET

_NOTES = {
    "n": "Number of persons (ids 1..n; odd = male, even = female)",
    "r": "Number of rounds (at most scenes x 3)",
    "scenes": "Scenes per round",
    "mode": "satisfy or minimize",
    "coverage": "Visit every scene and role often enough",
    "priority_ordering": "Slot sizes Prosecution <= Observer <= Public",
    "symmetry_breaking": "Canonical round-1 order (search speed only)",
    "gender_balance": "Hard |M-F| <= 1 per slot (satisfy mode)",
}


def parameter_rows(config: Optional[SchedulerConfig] = None):
    """(name, value, note) rows for the PARAMETERS sheet."""
    if config is None:
        config = SchedulerConfig(n=16, r=4, mode=MODE_SATISFY)
    rows = [
        ("n", config.n, _NOTES["n"]),
        ("r", config.r, _NOTES["r"]),
        ("scenes", config.scenes, _NOTES["scenes"]),
        ("mode", config.mode, _NOTES["mode"]),
    ]
    for rule in OPTIONAL_RULES:
        rows.append((rule, "Y" if config.is_active(rule) else "N", _NOTES[rule]))
    return rows


def setup_parameters_sheet(wb_path: str, config: Optional[SchedulerConfig] = None) -> str:
    """Create the workbook if needed, then (re)write its PARAMETERS sheet."""
    path = Path(wb_path)
    if path.exists():
        wb = openpyxl.load_workbook(path)
        if PARAMETERS_SHEET in wb.sheetnames:
            del wb[PARAMETERS_SHEET]
        ws = wb.create_sheet(PARAMETERS_SHEET, 0)
    else:
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = PARAMETERS_SHEET

    header_fill = PatternFill(start_color="F8FAFC", end_color="F8FAFC", fill_type="solid")
    for col, title in enumerate(("Parameter", "Value", "Notes"), 1):
        cell = ws.cell(1, col, title)
        cell.font = Font(bold=True)
        cell.fill = header_fill

    for row, (name, value, note) in enumerate(parameter_rows(config), 2):
        ws.cell(row, 1, name)
        ws.cell(row, 2, value)
        ws.cell(row, 3, note)

    ws.column_dimensions["A"].width = 20
    ws.column_dimensions["B"].width = 12
    ws.column_dimensions["C"].width = 50
    wb.save(path)
    return str(path)
