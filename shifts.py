"""
Shift record lifecycle.

A shift moves draft -> calculated -> saved, may be reopened for editing
(saved -> edited -> calculated -> saved) and ends when deleted. Every save
recalculates hours, points and tip amounts from the submitted clock times
and point values; amounts sent by a client are never stored.
"""
import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Tuple

from allocation import allocate_tips, compute_hours_worked, compute_points, validate_allocation
from errors import InvalidTransitionError, NotFoundError, ValidationError, ZeroPointsError
from schemas import (
    Calculation,
    EditableLine,
    EditableShift,
    Shift,
    ShiftEmployeeLine,
    ShiftInput,
    ShiftResult,
    ShiftState,
    ShiftSummary,
    TipResult,
)

logger = logging.getLogger(__name__)

TRANSITIONS = {
    ShiftState.DRAFT: {ShiftState.CALCULATED},
    ShiftState.CALCULATED: {ShiftState.SAVED},
    ShiftState.SAVED: {ShiftState.EDITED, ShiftState.DELETED},
    ShiftState.EDITED: {ShiftState.CALCULATED, ShiftState.SAVED, ShiftState.DELETED},
    ShiftState.DELETED: set(),
}


def advance(current: ShiftState, target: ShiftState) -> ShiftState:
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)
    return target


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid shift date: {value!r}")


def validate_shift_input(shift_input: ShiftInput) -> None:
    """Reject drafts that cannot be calculated. Raises ValidationError."""
    if not shift_input.date or not shift_input.type:
        raise ValidationError("Shift date and type are required")
    _parse_date(shift_input.date)

    pools = (shift_input.credit_card_tips, shift_input.house_tips, shift_input.cash_tips)
    if not any(pools):
        raise ValidationError("Please enter at least one tip amount")

    if not shift_input.employees:
        raise ValidationError("Please add at least one employee to the shift")

    for index, emp in enumerate(shift_input.employees, start=1):
        if not emp.employee_id or not emp.position or not emp.clock_in or not emp.clock_out:
            raise ValidationError(
                f"Employee line {index} is incomplete: employee, position, clock-in and clock-out are required"
            )


class ShiftService:
    def __init__(self, storage, reference, rounding_minutes: int = 15):
        self.storage = storage
        self.reference = reference
        self.rounding_minutes = rounding_minutes

    def _employee_name(self, employee_id: int, known_names: Dict[int, str]) -> str:
        employee = self.reference.employee_by_number(employee_id)
        if employee:
            return employee.full_name
        # A deleted employee keeps the name already stored on their line.
        return known_names.get(employee_id) or f"Employee #{employee_id}"

    def _point_value(self, emp) -> float:
        # Copied onto the line once; later edits to the position do not reach it.
        if emp.point_value is not None:
            return emp.point_value
        position = self.reference.position_by_name(emp.position)
        if position is None:
            raise NotFoundError("Position", emp.position)
        return position.point_value

    def _build_lines(self, shift_input: ShiftInput, known_names: Optional[Dict[int, str]] = None) -> List[ShiftEmployeeLine]:
        known_names = known_names or {}
        rounding = shift_input.rounding_minutes
        if rounding is None:
            rounding = self.rounding_minutes

        lines = []
        for emp in shift_input.employees:
            point_value = self._point_value(emp)
            hours = compute_hours_worked(emp.clock_in, emp.clock_out, rounding)
            lines.append(ShiftEmployeeLine(
                employee_id=emp.employee_id,
                employee_name=self._employee_name(emp.employee_id, known_names),
                position=emp.position,
                point_value=point_value,
                clock_in=emp.clock_in,
                clock_out=emp.clock_out,
                hours_worked=hours,
                points=compute_points(hours, point_value),
            ))
        return lines

    def calculate(
        self,
        shift_input: ShiftInput,
        state: ShiftState = ShiftState.DRAFT,
        known_names: Optional[Dict[int, str]] = None,
    ) -> Calculation:
        """Validate a draft and split its tips. Nothing is persisted."""
        state = advance(state, ShiftState.CALCULATED)
        validate_shift_input(shift_input)

        shift = Shift(
            date=shift_input.date,
            type=shift_input.type,
            credit_card_tips=shift_input.credit_card_tips or 0.0,
            house_tips=shift_input.house_tips or 0.0,
            cash_tips=shift_input.cash_tips or 0.0,
        )
        lines = self._build_lines(shift_input, known_names)
        allocation = allocate_tips(lines, shift.digital_pool, shift.cash_tips)
        if allocation.validation.zero_points:
            raise ZeroPointsError()

        lines = [
            line.model_copy(update={"digital_tips": r.digital_tips, "cash_tips": r.cash_tips})
            for line, r in zip(lines, allocation.results)
        ]
        return Calculation(
            state=state,
            shift=shift,
            lines=lines,
            results=allocation.results,
            validation=allocation.validation,
        )

    def _result(self, shift: Shift, lines: List[ShiftEmployeeLine], state: ShiftState = ShiftState.SAVED) -> ShiftResult:
        results = [TipResult.from_line(line) for line in lines]
        return ShiftResult(
            state=state,
            shift=shift,
            lines=lines,
            results=results,
            validation=validate_allocation(results, shift.digital_pool, shift.cash_tips),
        )

    def _load(self, shift_id: int) -> Tuple[Shift, List[ShiftEmployeeLine]]:
        shift = self.storage.shifts.get(shift_id)
        if shift is None:
            raise NotFoundError("Shift", shift_id)
        return shift, self.storage.shifts.lines(shift_id)

    def create_shift(self, shift_input: ShiftInput) -> ShiftResult:
        calculation = self.calculate(shift_input)
        state = advance(calculation.state, ShiftState.SAVED)

        shift = calculation.shift.model_copy(update={"created_at": datetime.now(timezone.utc)})
        shift, lines = self.storage.shifts.add(shift, calculation.lines)
        logger.info("Created shift %d (%s %s) with %d employees", shift.id, shift.date, shift.type, len(lines))
        return self._result(shift, lines, state)

    def get_shift(self, shift_id: int) -> ShiftResult:
        shift, lines = self._load(shift_id)
        return self._result(shift, lines)

    def list_shifts(self, since: Optional[date] = None) -> List[ShiftSummary]:
        shifts = self.storage.shifts.list()
        if since is None:
            return shifts
        return [s for s in shifts if _parse_date(s.date) >= since]

    def load_for_edit(self, shift_id: int) -> EditableShift:
        """Rebuild the draft of a saved shift, with each employee's current position choices."""
        shift, lines = self._load(shift_id)
        state = advance(ShiftState.SAVED, ShiftState.EDITED)

        employees = []
        for line in lines:
            employee = self.reference.employee_by_number(line.employee_id)
            employees.append(EditableLine(
                employee_id=line.employee_id,
                employee_name=line.employee_name,
                position=line.position,
                point_value=line.point_value,
                clock_in=line.clock_in,
                clock_out=line.clock_out,
                hours_worked=line.hours_worked,
                points=line.points,
                available_positions=employee.positions if employee else [],
            ))
        return EditableShift(state=state, shift=shift, employees=employees)

    def update_shift(self, shift_id: int, shift_input: ShiftInput) -> ShiftResult:
        existing, prior_lines = self._load(shift_id)
        known_names = {line.employee_id: line.employee_name for line in prior_lines}

        calculation = self.calculate(shift_input, state=ShiftState.EDITED, known_names=known_names)
        state = advance(calculation.state, ShiftState.SAVED)

        shift = calculation.shift.model_copy(update={"id": shift_id, "created_at": existing.created_at})
        shift, lines = self.storage.shifts.replace(shift_id, shift, calculation.lines)
        logger.info("Updated shift %d, now %d employees", shift_id, len(lines))
        return self._result(shift, lines, state)

    def delete_shift(self, shift_id: int) -> None:
        self._load(shift_id)
        advance(ShiftState.SAVED, ShiftState.DELETED)
        self.storage.shifts.delete(shift_id)
        logger.info("Deleted shift %d", shift_id)
