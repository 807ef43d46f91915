from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from utils.date_utils import utc_now


class Department(BaseModel):
    name: str
    code: str
    description: Optional[str] = None
    head_id: Optional[str] = None
    parent_department_id: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
