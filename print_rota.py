"""Print the staff rota stored in the project's SQLite database.

It reuses the same `DATABASE_DIR` behavior as the application via
`utils.database_init.AsyncDatabaseInitializer`.

Run: set the `DATABASE_DIR` environment variable and run `python print_rota.py`.
"""
import asyncio

from dotenv import load_dotenv

from dal.rota_dal import RotaDAL
from utils.database_init import AsyncDatabaseInitializer


async def main() -> None:
    """Print one line per stored shift."""
    shifts = await RotaDAL(AsyncDatabaseInitializer()).list_shifts()
    if not shifts:
        print("No shifts scheduled.")
        return
    for shift in shifts:
        print(
            f"{shift.shift_date} {shift.start_time}-{shift.end_time}  "
            f"{shift.employee_name} ({shift.position}) @ {shift.location or '-'} [{shift.status}]"
        )


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(main())
