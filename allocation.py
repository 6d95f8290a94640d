import logging
import math
from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence

from errors import ValidationError
from schemas import Allocation, AllocationValidation, ShiftEmployeeLine, TipResult

logger = logging.getLogger(__name__)

# Allocated sums must land within this distance of the pool they came from.
# It only absorbs floating point summation error.
TOLERANCE = 0.02

# Clock times carry no date; both ends are placed on this day.
REFERENCE_DATE = date(2000, 1, 1)


def _parse_clock(value: str) -> datetime:
    try:
        return datetime.combine(REFERENCE_DATE, time.fromisoformat(value.strip()))
    except ValueError:
        raise ValidationError(f"Invalid clock time: {value!r}")


def compute_hours_worked(clock_in: Optional[str], clock_out: Optional[str], rounding_minutes: Optional[int] = 0) -> float:
    """
    Hours between two time-of-day strings ("HH:MM" or "HH:MM:SS").

    A clock-out earlier than the clock-in is read as the next day, so 22:00 to
    02:00 is 4 hours. With `rounding_minutes` > 0 the minutes past the whole
    hour are rounded half-up to the nearest multiple of it.
    Missing input gives 0.
    """
    if not clock_in or not clock_out:
        return 0.0

    start = _parse_clock(clock_in)
    end = _parse_clock(clock_out)
    if end < start:
        end += timedelta(days=1)

    seconds = int((end - start).total_seconds())
    if not rounding_minutes or rounding_minutes <= 0:
        return seconds / 3600

    whole_hours = seconds // 3600
    minutes = (seconds % 3600) / 60
    rounded = math.floor(minutes / rounding_minutes + 0.5) * rounding_minutes
    return whole_hours + rounded / 60


def compute_points(hours: float, point_value: float) -> float:
    return float(hours or 0) * float(point_value or 0)


def validate_allocation(results: Sequence[TipResult], digital_pool: float, cash_pool: float) -> AllocationValidation:
    """Compare distributed sums against the pools. Advisory only, never raises."""
    digital_distributed = sum(r.digital_tips for r in results)
    cash_distributed = sum(r.cash_tips for r in results)
    return AllocationValidation(
        digital_ok=abs(digital_pool - digital_distributed) < TOLERANCE,
        cash_ok=abs(cash_pool - cash_distributed) < TOLERANCE,
        digital_distributed=digital_distributed,
        cash_distributed=cash_distributed,
    )


def allocate_tips(lines: Sequence[ShiftEmployeeLine], digital_pool: float, cash_pool: float) -> Allocation:
    """
    Split the digital and cash pools across `lines` in proportion to points.

    Each line's share is points / total points; both pools use the same share.
    Amounts keep full float precision and come back in input order. When total
    points is zero nothing is divided: the result set is empty and both pools
    are flagged invalid with `zero_points` set.
    """
    digital_pool = float(digital_pool or 0)
    cash_pool = float(cash_pool or 0)
    total_points = sum(line.points for line in lines)

    if total_points <= 0:
        logger.warning("Refusing to allocate tips across %d lines with zero total points", len(lines))
        return Allocation(
            results=[],
            validation=AllocationValidation(digital_ok=False, cash_ok=False, zero_points=True),
        )

    results = []
    for line in lines:
        share = line.points / total_points
        digital_tips = digital_pool * share
        cash_tips = cash_pool * share
        results.append(TipResult(
            employee_id=line.employee_id,
            name=line.employee_name or f"Employee #{line.employee_id}",
            position=line.position,
            hours=line.hours_worked,
            points=line.points,
            digital_tips=digital_tips,
            cash_tips=cash_tips,
            total_tips=digital_tips + cash_tips,
        ))

    validation = validate_allocation(results, digital_pool, cash_pool)
    logger.debug(
        "Allocated digital=%.2f cash=%.2f over %.4f points (digital_ok=%s cash_ok=%s)",
        digital_pool, cash_pool, total_points, validation.digital_ok, validation.cash_ok,
    )
    if not (validation.digital_ok and validation.cash_ok):
        logger.warning(
            "Allocated sums drift from pools: digital %.4f vs %.4f, cash %.4f vs %.4f",
            validation.digital_distributed, digital_pool, validation.cash_distributed, cash_pool,
        )
    return Allocation(results=results, validation=validation)
