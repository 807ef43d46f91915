import logging
from typing import Optional
from pymongo.errors import PyMongoError
from db import notifications_collection, users_collection
from models.notifications import Notification
from schemas.notification import NotificationCreate, NotificationType

logger = logging.getLogger(__name__)


async def create_notification(notification: NotificationCreate) -> Optional[dict]:
    """
    Stores a notification for one user account. Notifications are a side effect of
    other operations, so a storage failure is logged and None returned instead of raising.
    """
    try:
        document = Notification(**notification.model_dump()).model_dump()
        result = await notifications_collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document
    except PyMongoError:
        logger.exception("Failed to create notification for user %s", notification.user_id)
        return None


async def notify_employee(employee_id: str, title: str, message: str,
                          type: NotificationType = NotificationType.LEAVE, link: Optional[str] = None):
    """Notifies the user account linked to an employee, if there is one."""
    user = await users_collection.find_one({"employee_id": str(employee_id)}, {"_id": 1})
    if not user:
        return None

    return await create_notification(NotificationCreate(
        user_id=str(user["_id"]), title=title, message=message, type=type, link=link
    ))


async def notify_staff(title: str, message: str,
                       type: NotificationType = NotificationType.LEAVE, link: Optional[str] = None):
    """Fans a notification out to every active admin and HR account."""
    staff = await users_collection.find({"role": {"$in": ["admin", "hr"]}, "is_active": True}, {"_id": 1}).to_list(length=None)
    for user in staff:
        await create_notification(NotificationCreate(
            user_id=str(user["_id"]), title=title, message=message, type=type, link=link
        ))
