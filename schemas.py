from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    # The browser client speaks camelCase; Python code uses snake_case names.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShiftState(str, Enum):
    DRAFT = "draft"
    CALCULATED = "calculated"
    SAVED = "saved"
    EDITED = "edited"
    DELETED = "deleted"


# Reference data

class RestaurantConfig(ApiModel):
    id: Optional[int] = None
    name: str = Field(min_length=1)


class ShiftType(ApiModel):
    id: Optional[int] = None
    name: str = Field(min_length=1)


class Position(ApiModel):
    id: Optional[int] = None
    name: str = Field(min_length=1)
    point_value: float = Field(default=1.0, ge=0)


class Employee(ApiModel):
    id: Optional[int] = None
    employee_id: int = Field(gt=0)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    positions: List[str] = Field(min_length=1)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class SetupPayload(ApiModel):
    restaurant: Optional[RestaurantConfig] = None
    shift_types: List[ShiftType] = []
    positions: List[Position] = []


# Shift input. Every field is optional so that incomplete drafts reach the
# lifecycle validation and come back as readable errors instead of schema errors.
# Client-computed hours, points and tip amounts are not part of the model and
# are dropped on parse.

class ShiftEmployeeInput(ApiModel):
    employee_id: Optional[int] = None
    position: Optional[str] = None
    point_value: Optional[float] = Field(default=None, ge=0)
    clock_in: Optional[str] = None
    clock_out: Optional[str] = None


class ShiftInput(ApiModel):
    date: Optional[str] = None
    type: Optional[str] = None
    credit_card_tips: Optional[float] = Field(default=None, ge=0)
    house_tips: Optional[float] = Field(default=None, ge=0)
    cash_tips: Optional[float] = Field(default=None, ge=0)
    rounding_minutes: Optional[int] = Field(default=None, ge=0)
    employees: List[ShiftEmployeeInput] = []


# Persisted shift records

class Shift(ApiModel):
    id: Optional[int] = None
    date: str
    type: str
    credit_card_tips: float = 0.0
    house_tips: float = 0.0
    cash_tips: float = 0.0
    created_at: Optional[datetime] = None

    @property
    def digital_pool(self) -> float:
        return self.credit_card_tips + self.house_tips


class ShiftSummary(Shift):
    employee_count: int = 0


class ShiftEmployeeLine(ApiModel):
    id: Optional[int] = None
    shift_id: Optional[int] = None
    employee_id: int
    employee_name: str = ""
    position: str = ""
    point_value: float = 1.0
    clock_in: str = ""
    clock_out: str = ""
    hours_worked: float = 0.0
    points: float = 0.0
    digital_tips: float = 0.0
    cash_tips: float = 0.0


# Allocation output

class TipResult(ApiModel):
    employee_id: int
    name: str
    position: str
    hours: float
    points: float
    digital_tips: float
    cash_tips: float
    total_tips: float

    @classmethod
    def from_line(cls, line: ShiftEmployeeLine) -> "TipResult":
        return cls(
            employee_id=line.employee_id,
            name=line.employee_name,
            position=line.position,
            hours=line.hours_worked,
            points=line.points,
            digital_tips=line.digital_tips,
            cash_tips=line.cash_tips,
            total_tips=line.digital_tips + line.cash_tips,
        )


class AllocationValidation(ApiModel):
    digital_ok: bool
    cash_ok: bool
    zero_points: bool = False
    digital_distributed: float = 0.0
    cash_distributed: float = 0.0


class Allocation(ApiModel):
    results: List[TipResult]
    validation: AllocationValidation


class Calculation(ApiModel):
    state: ShiftState = ShiftState.CALCULATED
    shift: Shift
    lines: List[ShiftEmployeeLine]
    results: List[TipResult]
    validation: AllocationValidation


class ShiftResult(ApiModel):
    state: ShiftState = ShiftState.SAVED
    shift: Shift
    lines: List[ShiftEmployeeLine]
    results: List[TipResult]
    validation: AllocationValidation


class EditableLine(ShiftEmployeeInput):
    employee_name: str = ""
    hours_worked: float = 0.0
    points: float = 0.0
    available_positions: List[str] = []


class EditableShift(ApiModel):
    state: ShiftState = ShiftState.EDITED
    shift: Shift
    employees: List[EditableLine]
