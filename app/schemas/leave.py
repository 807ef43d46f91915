from datetime import date
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, Dict


class LeaveType(str, Enum):
    ANNUAL = "annual"
    SICK = "sick"
    PERSONAL = "personal"
    UNPAID = "unpaid"
    MATERNITY = "maternity"
    PATERNITY = "paternity"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class CreateLeave(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    employee_id: Optional[str] = Field(None, description="Target employee, defaults to the caller's own profile")
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(..., min_length=1)

    @field_validator("reason")
    def strip_reason(cls, reason):
        reason = reason.strip()
        if not reason:
            raise ValueError("Reason is required")
        return reason


class EditLeave(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    leave_type: Optional[LeaveType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = None


class LeaveDecision(BaseModel):
    comments: Optional[str] = None
    reason: Optional[str] = None


class LeavesCount(BaseModel):
    pending: int
    approved: int
    rejected: int
    total: int
    by_type: Dict[str, int]
