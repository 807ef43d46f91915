from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List

from utils.date_utils import as_naive_utc


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    HALF_DAY = "half-day"
    ON_LEAVE = "on-leave"
    HOLIDAY = "holiday"
    WEEKEND = "weekend"


class ClockRequest(BaseModel):
    employee_id: Optional[str] = Field(None, description="HR/admin acting on another employee's record")


class CreateAttendance(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    employee_id: str
    date: date
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    status: AttendanceStatus = AttendanceStatus.PRESENT
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_clock_order(self):
        if self.clock_in and self.clock_out and as_naive_utc(self.clock_out) < as_naive_utc(self.clock_in):
            raise ValueError("Clock-out cannot be before clock-in")
        return self


class WeeklyStat(BaseModel):
    day: int
    count: int


class AttendanceStats(BaseModel):
    present_today: int
    absent_today: int
    total_employees: int
    attendance_rate: int
    weekly_stats: List[WeeklyStat]
