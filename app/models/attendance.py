from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from utils.date_utils import utc_now


class AttendanceRecord(BaseModel):
    employee_id: str
    date: datetime  # UTC midnight, unique together with employee_id
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    break_start: Optional[datetime] = None
    break_end: Optional[datetime] = None
    total_work_hours: float = 0
    status: str = "present"
    notes: Optional[str] = None
    is_late: bool = False
    is_early_leave: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
