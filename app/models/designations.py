from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from utils.date_utils import utc_now


class Designation(BaseModel):
    title: str
    code: str
    description: Optional[str] = None
    department_id: Optional[str] = None
    level: int = 1
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
