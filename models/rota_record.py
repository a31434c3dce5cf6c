from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class ShiftRecord:
    """In-memory representation of a row in the STAFF_ROTA table.

    Attributes:
        id: Primary key (None for new records).
        employee_name: Name of the scheduled employee.
        position: Role worked during the shift (e.g. "Chef").
        shift_date: ISO date of the shift (YYYY-MM-DD).
        start_time: Shift start as HH:MM.
        end_time: Shift end as HH:MM.
        location: Optional site or section.
        status: Scheduling status (Scheduled, Confirmed, Pending, Cancelled).
    """

    id: Optional[int]
    employee_name: str
    position: str
    shift_date: str
    start_time: str
    end_time: str
    location: Optional[str] = None
    status: str = "Scheduled"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_name": self.employee_name,
            "position": self.position,
            "shift_date": self.shift_date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "location": self.location,
            "status": self.status,
        }
