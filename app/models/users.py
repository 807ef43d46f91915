from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from utils.date_utils import utc_now


class User(BaseModel):
    email: str
    password: bytes
    role: str = "employee" # or hr/admin
    employee_id: Optional[str] = None
    is_active: bool = True
    refresh_token: Optional[str] = None
    last_login: Optional[datetime] = None
    password_reset_token: Optional[str] = None
    password_reset_expires: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
