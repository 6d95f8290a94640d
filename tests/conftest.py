import os
import sys
import pathlib

import pytest

# Ensure repo root is on sys.path so tests can import the top-level modules
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

# backend.py builds an app at import time; keep it off the disk.
os.environ.setdefault("TIPSPLIT_STORAGE", "memory")

from reference import ReferenceData
from schemas import Employee, ShiftEmployeeInput, ShiftInput
from shifts import ShiftService
from storage import MemoryStorage, SqliteStorage


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        store = MemoryStorage()
    else:
        store = SqliteStorage(str(tmp_path / "tips.db"))
    yield store
    store.close()


@pytest.fixture
def reference(storage):
    ref = ReferenceData(storage)
    ref.seed_defaults()
    ref.add_employee(Employee(employee_id=3, first_name="Johnny", last_name="M", positions=["Bartender"]))
    ref.add_employee(Employee(employee_id=15, first_name="Harold", last_name="Z", positions=["Server", "Expo"]))
    ref.add_employee(Employee(employee_id=29, first_name="Deblyn", last_name="N", positions=["Busser"]))
    return ref


@pytest.fixture
def service(storage, reference):
    return ShiftService(storage, reference, rounding_minutes=15)


def make_shift(employees, date="2024-03-01", type="Dinner", credit_card_tips=80.0, house_tips=20.0, cash_tips=20.0):
    return ShiftInput(
        date=date,
        type=type,
        credit_card_tips=credit_card_tips,
        house_tips=house_tips,
        cash_tips=cash_tips,
        employees=[ShiftEmployeeInput(**e) for e in employees],
    )


@pytest.fixture
def shift_factory():
    return make_shift
