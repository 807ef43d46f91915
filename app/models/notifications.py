from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from utils.date_utils import utc_now


class Notification(BaseModel):
    user_id: str
    title: str
    message: str
    type: str = "system"
    is_read: bool = False
    link: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
