import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS STAFF_ROTA (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        employee_name TEXT NOT NULL,
        position TEXT NOT NULL,
        shift_date TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        location TEXT,
        status TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_staff_rota_shift ON STAFF_ROTA(shift_date, start_time)",
)


class AsyncDatabaseInitializer:
    """
    Owns the rota database file at <DATABASE_DIR>/app.db.

    DATABASE_DIR must name a directory (created if absent); anything else
    raises RuntimeError. Rows persist across restarts.
    """

    def __init__(self) -> None:
        env_dir = os.getenv("DATABASE_DIR")
        if env_dir is None or not env_dir.strip():
            raise RuntimeError("DATABASE_DIR must be set to the directory that holds app.db.")

        db_dir = Path(env_dir).expanduser()
        if db_dir.exists() and not db_dir.is_dir():
            raise RuntimeError(f"DATABASE_DIR={env_dir!r} is a file, not a directory.")

        try:
            db_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RuntimeError(f"Cannot create database directory {db_dir}") from exc

        self.db_dir = db_dir
        self.db_path = db_dir / "app.db"
        self._initialized = False

    async def ensure_database(self) -> None:
        """Create the STAFF_ROTA schema once per instance."""
        if self._initialized:
            return
        async with aiosqlite.connect(self.db_path) as db:
            for statement in SCHEMA:
                await db.execute(statement)
            await db.commit()
        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
