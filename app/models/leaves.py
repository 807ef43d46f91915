from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional, List
from utils.date_utils import utc_now


class Leave(BaseModel):
    employee_id: str
    leave_type: str
    start_date: datetime
    end_date: datetime
    total_days: int # inclusive, always derived from start_date and end_date
    reason: str
    status: str = "pending" # or approved/rejected/cancelled
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approver_comments: Optional[str] = None
    rejection_reason: Optional[str] = None
    attachments: List[dict] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
