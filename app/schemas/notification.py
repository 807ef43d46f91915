from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime
from enum import Enum

class NotificationType(str, Enum):
    LEAVE = "leave"
    ATTENDANCE = "attendance"
    ANNOUNCEMENT = "announcement"
    SYSTEM = "system"
    EMPLOYEE = "employee"

class NotificationCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    user_id: str
    title: str
    message: str
    type: NotificationType = NotificationType.SYSTEM
    link: Optional[str] = None

class NotificationResponse(NotificationCreate):
    id: str
    is_read: bool
    created_at: datetime

class NotificationList(BaseModel):
    data: List[NotificationResponse]
    unread_count: int
    pagination: dict
