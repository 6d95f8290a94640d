"""
Persistence for reference data and shift records.

Every entity sits behind a small repository (get / list / add / update /
delete). Two backends implement them: `MemoryStorage` keeps dicts with
auto-incrementing ids, `SqliteStorage` keeps one sqlite3 connection. Both
serialise writes with a lock, and both replace a shift's lines as one step so
a reader never sees a half-written line set.
"""
import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from errors import DuplicateKeyError, NotFoundError
from schemas import (
    Employee,
    Position,
    RestaurantConfig,
    Shift,
    ShiftEmployeeLine,
    ShiftSummary,
    ShiftType,
)

logger = logging.getLogger(__name__)


class Repository(ABC):
    """CRUD capability for one kind of record keyed by an integer id."""

    kind = "Record"

    @abstractmethod
    def get(self, item_id: int) -> Optional[BaseModel]: ...

    @abstractmethod
    def list(self) -> List[BaseModel]: ...

    @abstractmethod
    def add(self, item: BaseModel) -> BaseModel: ...

    @abstractmethod
    def update(self, item_id: int, item: BaseModel) -> BaseModel: ...

    @abstractmethod
    def delete(self, item_id: int) -> None: ...


class ShiftRepository(ABC):
    """Shifts together with the employee lines they own."""

    @abstractmethod
    def get(self, shift_id: int) -> Optional[Shift]: ...

    @abstractmethod
    def list(self) -> List[ShiftSummary]:
        """Newest first, each with its line count."""

    @abstractmethod
    def lines(self, shift_id: int) -> List[ShiftEmployeeLine]: ...

    @abstractmethod
    def add(self, shift: Shift, lines: Sequence[ShiftEmployeeLine]) -> Tuple[Shift, List[ShiftEmployeeLine]]: ...

    @abstractmethod
    def replace(self, shift_id: int, shift: Shift, lines: Sequence[ShiftEmployeeLine]) -> Tuple[Shift, List[ShiftEmployeeLine]]:
        """Overwrite the shift row and swap its entire line set in one step."""

    @abstractmethod
    def delete(self, shift_id: int) -> None: ...


# ---------- in-memory backend ----------

class MemoryRepository(Repository):
    def __init__(self, kind: str, lock: threading.RLock):
        self.kind = kind
        self._lock = lock
        self._items: Dict[int, BaseModel] = {}
        self._next_id = 1

    def get(self, item_id):
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    def list(self):
        return [item.model_copy(deep=True) for item in self._items.values()]

    def add(self, item):
        with self._lock:
            item_id = self._next_id
            self._next_id += 1
            stored = item.model_copy(update={"id": item_id}, deep=True)
            self._items[item_id] = stored
        return stored.model_copy(deep=True)

    def update(self, item_id, item):
        with self._lock:
            if item_id not in self._items:
                raise NotFoundError(self.kind, item_id)
            stored = item.model_copy(update={"id": item_id}, deep=True)
            self._items[item_id] = stored
        return stored.model_copy(deep=True)

    def delete(self, item_id):
        with self._lock:
            if self._items.pop(item_id, None) is None:
                raise NotFoundError(self.kind, item_id)


class MemoryShiftRepository(ShiftRepository):
    def __init__(self, lock: threading.RLock):
        self._lock = lock
        self._shifts: Dict[int, Shift] = {}
        self._lines: Dict[int, List[ShiftEmployeeLine]] = {}
        self._next_shift_id = 1
        self._next_line_id = 1

    def _stamp_lines(self, shift_id: int, lines: Iterable[ShiftEmployeeLine]) -> List[ShiftEmployeeLine]:
        stamped = []
        for line in lines:
            stamped.append(line.model_copy(update={"id": self._next_line_id, "shift_id": shift_id}))
            self._next_line_id += 1
        return stamped

    def get(self, shift_id):
        shift = self._shifts.get(shift_id)
        return shift.model_copy() if shift else None

    def list(self):
        with self._lock:
            summaries = [
                ShiftSummary(**shift.model_dump(), employee_count=len(self._lines.get(shift_id, [])))
                for shift_id, shift in self._shifts.items()
            ]
        summaries.sort(key=lambda s: (s.created_at, s.id), reverse=True)
        return summaries

    def lines(self, shift_id):
        return [line.model_copy() for line in self._lines.get(shift_id, [])]

    def add(self, shift, lines):
        with self._lock:
            shift_id = self._next_shift_id
            self._next_shift_id += 1
            stored = shift.model_copy(update={"id": shift_id})
            stored_lines = self._stamp_lines(shift_id, lines)
            self._shifts[shift_id] = stored
            self._lines[shift_id] = stored_lines
        return stored.model_copy(), [line.model_copy() for line in stored_lines]

    def replace(self, shift_id, shift, lines):
        with self._lock:
            if shift_id not in self._shifts:
                raise NotFoundError("Shift", shift_id)
            stored = shift.model_copy(update={"id": shift_id})
            # Build the new set first, then swap both references together.
            stored_lines = self._stamp_lines(shift_id, lines)
            self._shifts[shift_id] = stored
            self._lines[shift_id] = stored_lines
        return stored.model_copy(), [line.model_copy() for line in stored_lines]

    def delete(self, shift_id):
        with self._lock:
            if self._shifts.pop(shift_id, None) is None:
                raise NotFoundError("Shift", shift_id)
            self._lines.pop(shift_id, None)


class MemoryStorage:
    def __init__(self):
        lock = threading.RLock()
        self.restaurant = MemoryRepository("Restaurant config", lock)
        self.shift_types = MemoryRepository("Shift type", lock)
        self.positions = MemoryRepository("Position", lock)
        self.employees = MemoryRepository("Employee", lock)
        self.shifts = MemoryShiftRepository(lock)

    def close(self):
        pass


# ---------- sqlite backend ----------

SCHEMA = '''
    CREATE TABLE IF NOT EXISTS restaurant_config (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS shift_types (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT UNIQUE NOT NULL
    );
    CREATE TABLE IF NOT EXISTS positions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT UNIQUE NOT NULL,
        point_value REAL NOT NULL DEFAULT 1.0
    );
    CREATE TABLE IF NOT EXISTS employees (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        employee_id INTEGER UNIQUE NOT NULL,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        positions TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS shifts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT NOT NULL,
        type TEXT NOT NULL,
        credit_card_tips REAL NOT NULL,
        house_tips REAL NOT NULL,
        cash_tips REAL NOT NULL,
        created_at TIMESTAMP NOT NULL
    );
    CREATE TABLE IF NOT EXISTS shift_employees (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        shift_id INTEGER NOT NULL REFERENCES shifts(id) ON DELETE CASCADE,
        employee_id INTEGER NOT NULL,
        employee_name TEXT NOT NULL,
        position TEXT NOT NULL,
        point_value REAL NOT NULL,
        clock_in TEXT NOT NULL,
        clock_out TEXT NOT NULL,
        hours_worked REAL NOT NULL,
        points REAL NOT NULL,
        digital_tips REAL NOT NULL,
        cash_tips REAL NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_shift_employees_shift ON shift_employees(shift_id);
'''


def _columns(model) -> List[str]:
    return [name for name in model.model_fields if name != "id"]


class SqliteRepository(Repository):
    """Maps one pydantic model onto one table; list fields are stored as JSON text."""

    def __init__(self, conn: sqlite3.Connection, lock: threading.RLock, table: str, model, kind: str,
                 json_fields: Sequence[str] = ()):
        self.kind = kind
        self._conn = conn
        self._lock = lock
        self._table = table
        self._model = model
        self._json_fields = set(json_fields)
        self._columns = _columns(model)

    def _to_model(self, row: sqlite3.Row):
        data = dict(row)
        for field in self._json_fields:
            data[field] = json.loads(data[field])
        return self._model(**data)

    def _values(self, item) -> list:
        dumped = item.model_dump(mode="json")
        return [json.dumps(dumped[c]) if c in self._json_fields else dumped[c] for c in self._columns]

    def get(self, item_id):
        with self._lock:
            row = self._conn.execute(f"SELECT * FROM {self._table} WHERE id = ?", (item_id,)).fetchone()
        return self._to_model(row) if row else None

    def list(self):
        with self._lock:
            rows = self._conn.execute(f"SELECT * FROM {self._table} ORDER BY id").fetchall()
        return [self._to_model(r) for r in rows]

    def add(self, item):
        placeholders = ", ".join("?" for _ in self._columns)
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(
                    f"INSERT INTO {self._table} ({', '.join(self._columns)}) VALUES ({placeholders})",
                    self._values(item),
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(f"{self.kind} already exists: {e}")
        return item.model_copy(update={"id": cursor.lastrowid})

    def update(self, item_id, item):
        assignments = ", ".join(f"{c} = ?" for c in self._columns)
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(
                    f"UPDATE {self._table} SET {assignments} WHERE id = ?",
                    [*self._values(item), item_id],
                )
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(f"{self.kind} already exists: {e}")
        if cursor.rowcount == 0:
            raise NotFoundError(self.kind, item_id)
        return item.model_copy(update={"id": item_id})

    def delete(self, item_id):
        with self._lock, self._conn:
            cursor = self._conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (item_id,))
        if cursor.rowcount == 0:
            raise NotFoundError(self.kind, item_id)


class SqliteShiftRepository(ShiftRepository):
    SHIFT_COLUMNS = _columns(Shift)
    LINE_COLUMNS = [c for c in _columns(ShiftEmployeeLine) if c != "shift_id"]

    def __init__(self, conn: sqlite3.Connection, lock: threading.RLock):
        self._conn = conn
        self._lock = lock

    def _shift_values(self, shift: Shift) -> list:
        dumped = shift.model_dump(mode="json")
        if shift.created_at is not None:
            # Fixed width so ORDER BY created_at sorts chronologically as text.
            dumped["created_at"] = shift.created_at.isoformat(timespec="microseconds")
        return [dumped[c] for c in self.SHIFT_COLUMNS]

    def _insert_lines(self, shift_id: int, lines: Sequence[ShiftEmployeeLine]) -> None:
        columns = ["shift_id", *self.LINE_COLUMNS]
        placeholders = ", ".join("?" for _ in columns)
        rows = []
        for line in lines:
            dumped = line.model_dump(mode="json")
            rows.append([shift_id, *(dumped[c] for c in self.LINE_COLUMNS)])
        self._conn.executemany(
            f"INSERT INTO shift_employees ({', '.join(columns)}) VALUES ({placeholders})", rows
        )

    # Reads take the lock too: the connection is shared, so an unlocked read
    # could see a replace() that has not committed yet.
    def get(self, shift_id):
        with self._lock:
            row = self._conn.execute("SELECT * FROM shifts WHERE id = ?", (shift_id,)).fetchone()
        return Shift(**dict(row)) if row else None

    def list(self):
        with self._lock:
            rows = self._conn.execute('''
                SELECT s.*, COUNT(se.id) AS employee_count
                FROM shifts s
                LEFT JOIN shift_employees se ON se.shift_id = s.id
                GROUP BY s.id
                ORDER BY s.created_at DESC, s.id DESC
            ''').fetchall()
        return [ShiftSummary(**dict(r)) for r in rows]

    def lines(self, shift_id):
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM shift_employees WHERE shift_id = ? ORDER BY id", (shift_id,)
            ).fetchall()
        return [ShiftEmployeeLine(**dict(r)) for r in rows]

    def add(self, shift, lines):
        placeholders = ", ".join("?" for _ in self.SHIFT_COLUMNS)
        with self._lock:
            with self._conn:
                cursor = self._conn.execute(
                    f"INSERT INTO shifts ({', '.join(self.SHIFT_COLUMNS)}) VALUES ({placeholders})",
                    self._shift_values(shift),
                )
                shift_id = cursor.lastrowid
                self._insert_lines(shift_id, lines)
            return self.get(shift_id), self.lines(shift_id)

    def replace(self, shift_id, shift, lines):
        assignments = ", ".join(f"{c} = ?" for c in self.SHIFT_COLUMNS)
        with self._lock:
            # One transaction: the old lines vanish and the new ones appear at commit.
            with self._conn:
                cursor = self._conn.execute(
                    f"UPDATE shifts SET {assignments} WHERE id = ?",
                    [*self._shift_values(shift), shift_id],
                )
                if cursor.rowcount == 0:
                    raise NotFoundError("Shift", shift_id)
                self._conn.execute("DELETE FROM shift_employees WHERE shift_id = ?", (shift_id,))
                self._insert_lines(shift_id, lines)
            return self.get(shift_id), self.lines(shift_id)

    def delete(self, shift_id):
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM shift_employees WHERE shift_id = ?", (shift_id,))
            cursor = self._conn.execute("DELETE FROM shifts WHERE id = ?", (shift_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("Shift", shift_id)


class SqliteStorage:
    def __init__(self, db_path: str = "tips.db"):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.executescript(SCHEMA)
        self.conn.commit()
        logger.info("Opened sqlite storage at %s", db_path)

        lock = threading.RLock()
        self.restaurant = SqliteRepository(self.conn, lock, "restaurant_config", RestaurantConfig, "Restaurant config")
        self.shift_types = SqliteRepository(self.conn, lock, "shift_types", ShiftType, "Shift type")
        self.positions = SqliteRepository(self.conn, lock, "positions", Position, "Position")
        self.employees = SqliteRepository(self.conn, lock, "employees", Employee, "Employee", json_fields=("positions",))
        self.shifts = SqliteShiftRepository(self.conn, lock)

    def close(self):
        self.conn.close()


def build_storage(settings):
    """Pick a backend from settings; `storage` is "memory" or "sqlite"."""
    if settings.storage == "memory":
        return MemoryStorage()
    if settings.storage == "sqlite":
        return SqliteStorage(settings.db_path)
    raise ValueError(f"Unknown storage backend: {settings.storage}")
