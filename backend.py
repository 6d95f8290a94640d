import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from csv_export import export_filename, export_results_csv
from errors import DuplicateKeyError, NotFoundError, TipSplitError, ValidationError
from reference import ReferenceData
from schemas import (
    Calculation,
    EditableShift,
    Employee,
    Position,
    SetupPayload,
    ShiftInput,
    ShiftResult,
    ShiftSummary,
    ShiftType,
)
from settings import Settings
from shifts import ShiftService
from storage import build_storage

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (NotFoundError, 404),
    (DuplicateKeyError, 409),
    (ValidationError, 400),
]

router = APIRouter()


def get_reference(request: Request) -> ReferenceData:
    return request.app.state.reference


def get_shifts(request: Request) -> ShiftService:
    return request.app.state.shifts


@router.get("/")
def read_root():
    return {"message": "Tip Splitter API"}


# ---------- setup ----------

@router.get("/api/setup", response_model=SetupPayload)
def get_setup(reference: ReferenceData = Depends(get_reference)):
    """
    Restaurant name, shift types and positions in one payload
    """
    return reference.get_setup()


@router.post("/api/setup", response_model=SetupPayload)
def save_setup(payload: SetupPayload, reference: ReferenceData = Depends(get_reference)):
    """
    Sync setup: items with an id are updated, new items added, missing items deleted
    """
    return reference.save_setup(payload)


# ---------- positions ----------

@router.get("/api/positions", response_model=List[Position])
def list_positions(reference: ReferenceData = Depends(get_reference)):
    return reference.list_positions()


@router.get("/api/positions/{position_id}", response_model=Position)
def get_position(position_id: int, reference: ReferenceData = Depends(get_reference)):
    return reference.get_position(position_id)


@router.post("/api/positions", response_model=Position, status_code=201)
def add_position(position: Position, reference: ReferenceData = Depends(get_reference)):
    return reference.add_position(position)


@router.put("/api/positions/{position_id}", response_model=Position)
def update_position(position_id: int, position: Position, reference: ReferenceData = Depends(get_reference)):
    return reference.update_position(position_id, position)


@router.delete("/api/positions/{position_id}", status_code=204)
def delete_position(position_id: int, reference: ReferenceData = Depends(get_reference)):
    reference.delete_position(position_id)
    return Response(status_code=204)


# ---------- shift types ----------

@router.get("/api/shift-types", response_model=List[ShiftType])
def list_shift_types(reference: ReferenceData = Depends(get_reference)):
    return reference.list_shift_types()


@router.post("/api/shift-types", response_model=ShiftType, status_code=201)
def add_shift_type(shift_type: ShiftType, reference: ReferenceData = Depends(get_reference)):
    return reference.add_shift_type(shift_type)


@router.put("/api/shift-types/{type_id}", response_model=ShiftType)
def update_shift_type(type_id: int, shift_type: ShiftType, reference: ReferenceData = Depends(get_reference)):
    return reference.update_shift_type(type_id, shift_type)


@router.delete("/api/shift-types/{type_id}", status_code=204)
def delete_shift_type(type_id: int, reference: ReferenceData = Depends(get_reference)):
    reference.delete_shift_type(type_id)
    return Response(status_code=204)


# ---------- employees ----------

@router.get("/api/employees", response_model=List[Employee])
def list_employees(reference: ReferenceData = Depends(get_reference)):
    return reference.list_employees()


@router.get("/api/employees/{record_id}", response_model=Employee)
def get_employee(record_id: int, reference: ReferenceData = Depends(get_reference)):
    return reference.get_employee(record_id)


@router.post("/api/employees", response_model=Employee, status_code=201)
def add_employee(employee: Employee, reference: ReferenceData = Depends(get_reference)):
    """
    Add an employee; the employee ID must not already be in use
    """
    return reference.add_employee(employee)


@router.put("/api/employees/{record_id}", response_model=Employee)
def update_employee(record_id: int, employee: Employee, reference: ReferenceData = Depends(get_reference)):
    return reference.update_employee(record_id, employee)


@router.delete("/api/employees/{record_id}", status_code=204)
def delete_employee(record_id: int, reference: ReferenceData = Depends(get_reference)):
    """
    Delete an employee. Saved shifts keep their lines for this employee.
    """
    reference.delete_employee(record_id)
    return Response(status_code=204)


# ---------- shifts ----------

@router.post("/api/calculate-tips", response_model=Calculation)
def calculate_tips(shift_input: ShiftInput, shifts: ShiftService = Depends(get_shifts)):
    """
    Calculate tip distribution by points (hours worked x point value) without saving
    """
    return shifts.calculate(shift_input)


@router.get("/api/shifts", response_model=List[ShiftSummary])
def list_shifts(since: Optional[date] = None, shifts: ShiftService = Depends(get_shifts)):
    """
    Saved shifts, newest first, each with its employee count
    """
    return shifts.list_shifts(since=since)


@router.post("/api/shifts", response_model=ShiftResult, status_code=201)
def create_shift(shift_input: ShiftInput, shifts: ShiftService = Depends(get_shifts)):
    """
    Recalculate and save a shift with its employee lines
    """
    return shifts.create_shift(shift_input)


@router.get("/api/shifts/{shift_id}", response_model=ShiftResult)
def get_shift(shift_id: int, shifts: ShiftService = Depends(get_shifts)):
    return shifts.get_shift(shift_id)


@router.get("/api/shifts/{shift_id}/edit", response_model=EditableShift)
def edit_shift(shift_id: int, shifts: ShiftService = Depends(get_shifts)):
    """
    A saved shift reopened as an editable draft
    """
    return shifts.load_for_edit(shift_id)


@router.put("/api/shifts/{shift_id}", response_model=ShiftResult)
def update_shift(shift_id: int, shift_input: ShiftInput, shifts: ShiftService = Depends(get_shifts)):
    """
    Replace a shift's details and all of its employee lines, recalculating every amount
    """
    return shifts.update_shift(shift_id, shift_input)


@router.delete("/api/shifts/{shift_id}", status_code=204)
def delete_shift(shift_id: int, shifts: ShiftService = Depends(get_shifts)):
    """
    Delete a shift and all of its employee lines
    """
    shifts.delete_shift(shift_id)
    return Response(status_code=204)


@router.get("/api/shifts/{shift_id}/export")
def export_shift(shift_id: int, shifts: ShiftService = Depends(get_shifts)):
    """
    Download a shift's tip distribution as CSV
    """
    result = shifts.get_shift(shift_id)
    return Response(
        content=export_results_csv(result.results),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(result.shift)}"'},
    )


def _error_handler(status_code: int):
    def handler(request: Request, exc: TipSplitError):
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s rejected (%d): %s", request.method, request.url.path, status_code, exc.message)
        return JSONResponse(status_code=status_code, content={"detail": exc.message})
    return handler


def create_app(settings: Optional[Settings] = None, storage=None) -> FastAPI:
    settings = settings or Settings.from_env()
    storage = storage if storage is not None else build_storage(settings)

    reference = ReferenceData(storage)
    if settings.seed_defaults:
        reference.seed_defaults()

    app = FastAPI(title="Tip Splitter API")
    app.state.settings = settings
    app.state.storage = storage
    app.state.reference = reference
    app.state.shifts = ShiftService(storage, reference, rounding_minutes=settings.rounding_minutes)

    # Enable CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for exc_class, status_code in ERROR_STATUS:
        app.add_exception_handler(exc_class, _error_handler(status_code))
    app.add_exception_handler(TipSplitError, _error_handler(500))

    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=app.state.settings.log_level)
    uvicorn.run(app, host="0.0.0.0", port=8000)
