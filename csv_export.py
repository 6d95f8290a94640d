from typing import Iterable

import pandas as pd

from schemas import Shift, TipResult

HEADERS = [
    "Employee ID",
    "Name",
    "Position",
    "Hours Worked",
    "Points",
    "Digital Tips ($)",
    "Cash Tips ($)",
    "Total Tips ($)",
]


def results_frame(results: Iterable[TipResult]) -> pd.DataFrame:
    """One row per employee, every number already formatted to two decimals."""
    rows = [
        (
            r.employee_id,
            r.name,
            r.position,
            f"{r.hours:.2f}",
            f"{r.points:.2f}",
            f"{r.digital_tips:.2f}",
            f"{r.cash_tips:.2f}",
            f"{r.digital_tips + r.cash_tips:.2f}",
        )
        for r in results
    ]
    return pd.DataFrame(rows, columns=HEADERS)


def export_results_csv(results: Iterable[TipResult]) -> str:
    """
    Render allocation results as CSV text: a header row, then one row per
    employee. Fields holding commas, quotes or newlines are quoted.
    """
    return results_frame(results).to_csv(index=False, lineterminator="\n")


def export_filename(shift: Shift) -> str:
    return f"tip-distribution-{shift.date}-{shift.type}.csv"
