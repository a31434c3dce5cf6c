"""Async Data Access Layer for the STAFF_ROTA table.

Provides RotaDAL with the operations the rota endpoints and the image
renderer need, on top of `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from models.rota_record import ShiftRecord
from utils.database_init import AsyncDatabaseInitializer


class RotaDAL:
    """Data access layer for STAFF_ROTA records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "id",
        "employee_name",
        "position",
        "shift_date",
        "start_time",
        "end_time",
        "location",
        "status",
    )
    _COLUMN_LIST, _INSERT_COLUMNS = ", ".join(_COLUMNS), ", ".join(_COLUMNS[1:])

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create_shift(self, record: ShiftRecord) -> int:
        """Insert a new STAFF_ROTA row and return the new id."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT INTO STAFF_ROTA ({self._INSERT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.employee_name,
                    record.position,
                    record.shift_date,
                    record.start_time,
                    record.end_time,
                    record.location,
                    record.status,
                ),
            )
            await conn.commit()
            return cur.lastrowid

    async def get_shift(self, shift_id: int) -> Optional[ShiftRecord]:
        """Return ShiftRecord for `shift_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM STAFF_ROTA WHERE id = ?",
                (shift_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def list_shifts(self) -> List[ShiftRecord]:
        """List every shift ordered by date, then start time."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM STAFF_ROTA ORDER BY shift_date, start_time, id"
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def delete_shift(self, shift_id: int) -> bool:
        """Delete STAFF_ROTA row by id. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM STAFF_ROTA WHERE id = ?", (shift_id,))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> ShiftRecord:
        return ShiftRecord(
            id=row[0],
            employee_name=row[1],
            position=row[2],
            shift_date=row[3],
            start_time=row[4],
            end_time=row[5],
            location=row[6],
            status=row[7],
        )
