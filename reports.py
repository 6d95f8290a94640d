"""
Spreadsheet views of shift history, built with pandas.
"""
import logging
import re
from datetime import date
from pathlib import Path
from typing import Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)

LINE_COLUMNS = [
    "shift_id", "date", "type", "employee_id", "name", "position",
    "clock_in", "clock_out", "hours", "point_value", "points",
    "digital_tips", "cash_tips", "total_tips",
]


def history_frame(service, since: Optional[date] = None) -> pd.DataFrame:
    """One row per shift-employee line, newest shift first."""
    rows = []
    for summary in service.list_shifts(since=since):
        result = service.get_shift(summary.id)
        for line in result.lines:
            rows.append({
                "shift_id": summary.id,
                "date": summary.date,
                "type": summary.type,
                "employee_id": line.employee_id,
                "name": line.employee_name,
                "position": line.position,
                "clock_in": line.clock_in,
                "clock_out": line.clock_out,
                "hours": line.hours_worked,
                "point_value": line.point_value,
                "points": line.points,
                "digital_tips": line.digital_tips,
                "cash_tips": line.cash_tips,
                "total_tips": line.digital_tips + line.cash_tips,
            })
    return pd.DataFrame(rows, columns=LINE_COLUMNS)


def summary_frame(lines: pd.DataFrame) -> pd.DataFrame:
    """Per-shift totals of a `history_frame`."""
    if lines.empty:
        return pd.DataFrame(columns=["shift_id", "date", "type", "employees", "hours", "points",
                                     "digital_tips", "cash_tips", "total_tips"])
    return lines.groupby(["shift_id", "date", "type"], as_index=False, sort=False).agg(
        employees=("employee_id", "count"),
        hours=("hours", "sum"),
        points=("points", "sum"),
        digital_tips=("digital_tips", "sum"),
        cash_tips=("cash_tips", "sum"),
        total_tips=("total_tips", "sum"),
    )


def write_history_workbook(service, path: Union[str, Path], since: Optional[date] = None) -> Path:
    """Write a Summary sheet plus one sheet per shift to an .xlsx file."""
    path = Path(path)
    lines = history_frame(service, since=since)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        summary_frame(lines).round(2).to_excel(writer, sheet_name="Summary", index=False)
        for shift_id, group in lines.groupby("shift_id", sort=False):
            first = group.iloc[0]
            # Excel caps sheet names at 31 characters and forbids some punctuation.
            sheet = re.sub(r"[\[\]:*?/\\]", "-", f"{shift_id} {first['date']} {first['type']}")[:31]
            group.drop(columns=["shift_id", "date", "type"]).round(2).to_excel(writer, sheet_name=sheet, index=False)
    logger.info("Wrote %d shift lines to %s", len(lines), path)
    return path
