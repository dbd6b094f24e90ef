"""
Render a solved AssignmentMatrix: a text table for the terminal and an Excel
workbook (SCHEDULE, optional IMBALANCE, optional CONFLICTS sheets).
"""

from pathlib import Path
from typing import Dict, List, Optional

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill

from .models import (
    AssignmentMatrix,
    OBSERVER,
    PROSECUTION,
    PUBLIC,
    ROLES,
    SchedulerConfig,
    SolveResult,
    slot_number,
)
from .objective import imbalance_rows

SCHEDULE_SHEET = "SCHEDULE"
IMBALANCE_SHEET = "IMBALANCE"
CONFLICTS_SHEET = "CONFLICTS"
COLUMNS = ["Round", "Scene"] + ROLES
LEADER_MARK = "*"


def _names(persons, chief: Optional[int] = None) -> str:
    return ", ".join(f"{p}{LEADER_MARK}" if p == chief else str(p) for p in persons)


def schedule_rows(matrix: AssignmentMatrix, config: SchedulerConfig) -> List[Dict]:
    """One row per (round, scene); the scene leader is marked with '*'."""
    rows = []
    for round_no in range(1, matrix.round_count + 1):
        for scene in range(1, config.scenes + 1):
            by_role = matrix.scene_members(round_no, scene)
            rows.append({
                "Round": round_no,
                "Scene": f"S{scene}",
                "Prosecution": _names(by_role[PROSECUTION], config.leader(round_no, scene)),
                "Observer": _names(by_role[OBSERVER]),
                "Public": _names(by_role[PUBLIC]),
            })
    return rows


def schedule_frame(matrix: AssignmentMatrix, config: SchedulerConfig) -> pd.DataFrame:
    return pd.DataFrame(schedule_rows(matrix, config), columns=COLUMNS)


def format_table(result: SolveResult, config: SchedulerConfig) -> str:
    """Human-readable schedule plus the status line."""
    lines = [f"Status: {result.status}"]
    if result.objective is not None:
        lines.append(f"Gender imbalance penalty: {result.objective}")
    if result.matrix is None:
        lines.extend(result.conflicts)
        return "\n".join(lines)
    frame = schedule_frame(result.matrix, config)
    lines.append(frame.to_string(index=False))
    return "\n".join(lines)


def write_schedule(
    output_path: str,
    result: SolveResult,
    config: SchedulerConfig,
) -> str:
    """
    Write SCHEDULE (and IMBALANCE in minimize mode) to a fresh workbook.
    A result without a matrix gets a CONFLICTS sheet instead.
    """
    output = Path(output_path)
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = SCHEDULE_SHEET

    bold = Font(bold=True)
    header_fill = PatternFill(start_color="CBD5E1", end_color="CBD5E1", fill_type="solid")
    center = Alignment(horizontal="center", vertical="center")

    for col, title in enumerate(COLUMNS, 1):
        cell = ws.cell(1, col, title)
        cell.font = bold
        cell.fill = header_fill
        cell.alignment = center

    if result.matrix is not None:
        for row, values in enumerate(schedule_rows(result.matrix, config), 2):
            for col, key in enumerate(COLUMNS, 1):
                ws.cell(row, col, values[key])
        for letter, width in zip("ABCDE", (8, 8, 24, 24, 24)):
            ws.column_dimensions[letter].width = width

        if config.minimize:
            ws_imb = wb.create_sheet(IMBALANCE_SHEET)
            headers = ["Round", "Scene", "Role", "Male", "Female", "Penalty"]
            for col, title in enumerate(headers, 1):
                ws_imb.cell(1, col, title).font = bold
            for row, item in enumerate(imbalance_rows(result.matrix), 2):
                ws_imb.cell(row, 1, item["round"])
                ws_imb.cell(row, 2, f"S{item['scene']}")
                ws_imb.cell(row, 3, ROLES[item["role"] - 1])
                ws_imb.cell(row, 4, item["male"])
                ws_imb.cell(row, 5, item["female"])
                ws_imb.cell(row, 6, item["penalty"])
            total_row = len(result.matrix.slots) * result.matrix.slot_count + 2
            ws_imb.cell(total_row, 5, "Total").font = bold
            ws_imb.cell(total_row, 6, result.objective)

    wb.save(output)
    if result.matrix is None or result.conflicts:
        add_conflicts_sheet(str(output), result.conflicts or [f"Status: {result.status}"])
    return str(output)


def add_conflicts_sheet(
    wb_path: str,
    conflicts: List[str],
) -> None:
    """Add a CONFLICTS sheet listing infeasibility messages."""
    wb = openpyxl.load_workbook(wb_path)
    if CONFLICTS_SHEET in wb.sheetnames:
        del wb[CONFLICTS_SHEET]
    ws = wb.create_sheet(CONFLICTS_SHEET)
    ws.cell(1, 1, "Conflict / Issue")
    for i, msg in enumerate(conflicts, 2):
        ws.cell(i, 1, msg)
    wb.save(wb_path)


def _parse_names(text) -> List[int]:
    if text is None or str(text).strip() == "":
        return []
    return [int(part.strip().rstrip(LEADER_MARK)) for part in str(text).split(",") if part.strip()]


def read_schedule(wb_path: str, config: SchedulerConfig) -> AssignmentMatrix:
    """Read a SCHEDULE sheet written by write_schedule back into a matrix."""
    path = Path(wb_path)
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found: {wb_path}")
    wb = openpyxl.load_workbook(path, data_only=True)
    if SCHEDULE_SHEET not in wb.sheetnames:
        raise ValueError(f"Workbook has no {SCHEDULE_SHEET} sheet")
    ws = wb[SCHEDULE_SHEET]

    rows = [[0] * config.n for _ in range(config.r)]
    for row in range(2, ws.max_row + 1):
        round_no = ws.cell(row, 1).value
        scene_txt = ws.cell(row, 2).value
        if round_no is None or scene_txt is None:
            continue
        round_no = int(round_no)
        scene = int(str(scene_txt).strip().lstrip("Ss"))
        if not (1 <= round_no <= config.r and 1 <= scene <= config.scenes):
            raise ValueError(f"Row {row}: round {round_no} / scene {scene_txt} out of range")
        for role in range(1, config.roles + 1):
            for p in _parse_names(ws.cell(row, 2 + role).value):
                if not 1 <= p <= config.n:
                    raise ValueError(f"Row {row}: person {p} out of range")
                if rows[round_no - 1][p - 1]:
                    raise ValueError(f"Row {row}: person {p} listed twice in round {round_no}")
                rows[round_no - 1][p - 1] = slot_number(scene, role, config.roles)
    return AssignmentMatrix.from_rows(rows, config.scenes, config.roles)
