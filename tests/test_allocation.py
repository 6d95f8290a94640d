import random

import pytest

from allocation import TOLERANCE, allocate_tips, compute_hours_worked, compute_points
from errors import ValidationError
from schemas import ShiftEmployeeLine


def line(employee_id, points, **extra):
    return ShiftEmployeeLine(employee_id=employee_id, points=points, **extra)


def test_overnight_shift_wraps_past_midnight():
    assert compute_hours_worked("22:00", "02:00", 0) == pytest.approx(4.0)


def test_rounding_to_nearest_quarter_hour():
    # 7h07m: 7 minutes is closer to 0 than to 15
    assert compute_hours_worked("09:00", "16:07", 15) == pytest.approx(7.0)
    # 7h08m rounds up to 7h15m
    assert compute_hours_worked("09:00", "16:08", 15) == pytest.approx(7.25)


def test_rounding_half_up_and_into_next_hour():
    assert compute_hours_worked("09:00", "09:07:30", 15) == pytest.approx(0.25)
    assert compute_hours_worked("09:00", "17:53", 15) == pytest.approx(9.0)


def test_no_rounding_keeps_raw_hours():
    assert compute_hours_worked("09:00", "16:07", 0) == pytest.approx(7 + 7 / 60)
    assert compute_hours_worked("09:00", "16:07", None) == pytest.approx(7 + 7 / 60)


def test_missing_times_give_zero_hours():
    assert compute_hours_worked("", "17:00", 15) == 0.0
    assert compute_hours_worked("09:00", None, 15) == 0.0


def test_equal_times_give_zero_hours():
    assert compute_hours_worked("12:00", "12:00", 0) == 0.0


def test_invalid_time_rejected():
    with pytest.raises(ValidationError):
        compute_hours_worked("9pm", "23:00", 0)


def test_points_are_hours_times_point_value():
    assert compute_points(6.5, 0.55) == pytest.approx(3.575)
    assert compute_points(0, 1.0) == 0.0


def test_proportional_split_of_both_pools():
    allocation = allocate_tips([line(1, 3), line(2, 1)], 100, 20)

    a, b = allocation.results
    assert (a.employee_id, b.employee_id) == (1, 2)
    assert a.digital_tips == pytest.approx(75.0)
    assert a.cash_tips == pytest.approx(15.0)
    assert b.digital_tips == pytest.approx(25.0)
    assert b.cash_tips == pytest.approx(5.0)
    assert a.total_tips == pytest.approx(90.0)
    assert allocation.validation.digital_ok
    assert allocation.validation.cash_ok


def test_zero_total_points_refuses_to_divide():
    allocation = allocate_tips([line(1, 0), line(2, 0)], 100, 20)

    assert allocation.results == []
    assert allocation.validation.zero_points
    assert not allocation.validation.digital_ok
    assert not allocation.validation.cash_ok


def test_allocations_keep_full_precision():
    allocation = allocate_tips([line(1, 1), line(2, 1), line(3, 1)], 100, 0)
    assert allocation.results[0].digital_tips == pytest.approx(100 / 3, abs=1e-12)


def test_allocated_sums_match_pools_for_many_lines():
    rng = random.Random(42)
    for _ in range(50):
        lines = [line(i, rng.uniform(0.1, 12) * rng.choice([0.55, 0.65, 0.75, 1.0])) for i in range(rng.randint(1, 40))]
        digital = round(rng.uniform(0, 5000), 2)
        cash = round(rng.uniform(0, 800), 2)

        allocation = allocate_tips(lines, digital, cash)

        assert abs(sum(r.digital_tips for r in allocation.results) - digital) < TOLERANCE
        assert abs(sum(r.cash_tips for r in allocation.results) - cash) < TOLERANCE
        assert allocation.validation.digital_ok and allocation.validation.cash_ok
