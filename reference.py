import logging
from typing import List, Optional

from errors import DuplicateKeyError, NotFoundError
from schemas import Employee, Position, RestaurantConfig, SetupPayload, ShiftType

logger = logging.getLogger(__name__)

DEFAULT_RESTAURANT = "My Restaurant"
DEFAULT_SHIFT_TYPES = ["Lunch", "Dinner", "Brunch"]
DEFAULT_POSITIONS = [
    ("Server", 1.0),
    ("Bartender", 1.0),
    ("Busser", 0.55),
    ("Runner", 0.65),
    ("Expo", 0.75),
]


class ReferenceData:
    """
    Positions, employees, shift types and the restaurant name.

    Nothing here owns shift history: deleting a position or an employee leaves
    the shift lines that mention them untouched.
    """

    def __init__(self, storage):
        self.storage = storage

    def _require(self, repo, item_id: int):
        item = repo.get(item_id)
        if item is None:
            raise NotFoundError(repo.kind, item_id)
        return item

    def _check_unique_name(self, repo, name: str, exclude_id: Optional[int] = None):
        for existing in repo.list():
            if existing.name == name and existing.id != exclude_id:
                raise DuplicateKeyError(f"{repo.kind} name already exists: {name}")

    # ---------- restaurant ----------
    def get_restaurant(self) -> Optional[RestaurantConfig]:
        configs = self.storage.restaurant.list()
        return configs[0] if configs else None

    def save_restaurant(self, config: RestaurantConfig) -> RestaurantConfig:
        current = self.get_restaurant()
        if current:
            return self.storage.restaurant.update(current.id, config)
        return self.storage.restaurant.add(config)

    # ---------- shift types ----------
    def list_shift_types(self) -> List[ShiftType]:
        return self.storage.shift_types.list()

    def add_shift_type(self, shift_type: ShiftType) -> ShiftType:
        self._check_unique_name(self.storage.shift_types, shift_type.name)
        return self.storage.shift_types.add(shift_type)

    def update_shift_type(self, type_id: int, shift_type: ShiftType) -> ShiftType:
        self._require(self.storage.shift_types, type_id)
        self._check_unique_name(self.storage.shift_types, shift_type.name, exclude_id=type_id)
        return self.storage.shift_types.update(type_id, shift_type)

    def delete_shift_type(self, type_id: int) -> None:
        self.storage.shift_types.delete(type_id)

    # ---------- positions ----------
    def list_positions(self) -> List[Position]:
        return self.storage.positions.list()

    def get_position(self, position_id: int) -> Position:
        return self._require(self.storage.positions, position_id)

    def position_by_name(self, name: str) -> Optional[Position]:
        return next((p for p in self.storage.positions.list() if p.name == name), None)

    def add_position(self, position: Position) -> Position:
        self._check_unique_name(self.storage.positions, position.name)
        return self.storage.positions.add(position)

    def update_position(self, position_id: int, position: Position) -> Position:
        self._require(self.storage.positions, position_id)
        self._check_unique_name(self.storage.positions, position.name, exclude_id=position_id)
        return self.storage.positions.update(position_id, position)

    def delete_position(self, position_id: int) -> None:
        self.storage.positions.delete(position_id)

    # ---------- employees ----------
    def list_employees(self) -> List[Employee]:
        return self.storage.employees.list()

    def get_employee(self, record_id: int) -> Employee:
        return self._require(self.storage.employees, record_id)

    def employee_by_number(self, employee_id: int) -> Optional[Employee]:
        return next((e for e in self.storage.employees.list() if e.employee_id == employee_id), None)

    def add_employee(self, employee: Employee) -> Employee:
        if self.employee_by_number(employee.employee_id):
            raise DuplicateKeyError("Employee ID already exists")
        created = self.storage.employees.add(employee)
        logger.info("Added employee #%d (%s)", created.employee_id, created.full_name)
        return created

    def update_employee(self, record_id: int, employee: Employee) -> Employee:
        existing = self._require(self.storage.employees, record_id)
        if employee.employee_id != existing.employee_id and self.employee_by_number(employee.employee_id):
            raise DuplicateKeyError("Employee ID already exists")
        return self.storage.employees.update(record_id, employee)

    def delete_employee(self, record_id: int) -> None:
        self.storage.employees.delete(record_id)

    # ---------- setup ----------
    def get_setup(self) -> SetupPayload:
        return SetupPayload(
            restaurant=self.get_restaurant(),
            shift_types=self.list_shift_types(),
            positions=self.list_positions(),
        )

    def _plan_sync(self, repo, items):
        """
        Check a setup collection against what is stored and order its writes.

        Returns (ids to delete, items to update, items to add). Raises
        DuplicateKeyError or NotFoundError before anything is written.
        """
        stored = {item.id: item for item in repo.list()}
        names = [item.name for item in items]
        repeated = sorted({name for name in names if names.count(name) > 1})
        if repeated:
            raise DuplicateKeyError(f"{repo.kind} name already exists: {', '.join(repeated)}")
        for item in items:
            if item.id is not None and item.id not in stored:
                raise NotFoundError(repo.kind, item.id)

        sent = {item.id for item in items if item.id is not None}
        deletes = [item_id for item_id in stored if item_id not in sent]

        # A rename waits until no other kept row still holds the new name.
        holders = {stored[item_id].name: item_id for item_id in sent}
        pending = [item for item in items if item.id is not None]
        updates = []
        while pending:
            ready = [item for item in pending if holders.get(item.name, item.id) == item.id]
            if not ready:
                blocked = ", ".join(sorted(item.name for item in pending))
                raise DuplicateKeyError(f"{repo.kind} names cannot be swapped in one save: {blocked}")
            for item in ready:
                holders.pop(stored[item.id].name, None)
                holders[item.name] = item.id
            updates.extend(ready)
            ready_ids = {item.id for item in ready}
            pending = [item for item in pending if item.id not in ready_ids]

        adds = [item for item in items if item.id is None]
        return deletes, updates, adds

    def _apply_sync(self, repo, plan):
        deletes, updates, adds = plan
        for item_id in deletes:
            repo.delete(item_id)
        for item in updates:
            repo.update(item.id, item)
        for item in adds:
            repo.add(item)

    def save_setup(self, payload: SetupPayload) -> SetupPayload:
        shift_type_plan = self._plan_sync(self.storage.shift_types, payload.shift_types)
        position_plan = self._plan_sync(self.storage.positions, payload.positions)

        if payload.restaurant is not None:
            self.save_restaurant(payload.restaurant)
        self._apply_sync(self.storage.shift_types, shift_type_plan)
        self._apply_sync(self.storage.positions, position_plan)
        logger.info(
            "Saved setup: %d shift types, %d positions",
            len(payload.shift_types), len(payload.positions),
        )
        return self.get_setup()

    def seed_defaults(self) -> bool:
        """Fill an empty store with the stock restaurant, shift types and positions."""
        if self.get_restaurant() or self.list_shift_types() or self.list_positions():
            return False
        self.save_restaurant(RestaurantConfig(name=DEFAULT_RESTAURANT))
        for name in DEFAULT_SHIFT_TYPES:
            self.add_shift_type(ShiftType(name=name))
        for name, point_value in DEFAULT_POSITIONS:
            self.add_position(Position(name=name, point_value=point_value))
        logger.info("Seeded default reference data")
        return True
