from fastapi import APIRouter, Depends, Query
from pymongo import DESCENDING
from pymongo.errors import PyMongoError
from db import notifications_collection
from exceptions import get_server_exception, NotFoundError
from schemas.notification import NotificationList
from utils.app_utils import get_current_user, to_object_id, pagination

router = APIRouter()

NOTIFICATION_NOT_FOUND = "Notification not found"


def _to_response(notification: dict) -> dict:
    notification["id"] = str(notification.pop("_id"))
    return notification


@router.get("/", response_model=NotificationList)
async def get_notifications(
    unread_only: bool = Query(False, description="Only unread notifications"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_and_type: tuple = Depends(get_current_user)
):
    """
    Retrieves the caller's notifications, newest first.
    Args:
        unread_only (bool): skip notifications already marked as read
        page (int): page number, starting at 1
        limit (int): page size
    Returns:
        dict:
            - data (list): notifications, with the MongoDB _id exposed as id
            - unread_count (int): unread notifications of the caller, regardless of paging
            - pagination (dict): page, limit, total, total_pages
    """
    user, _ = user_and_type
    user_id = str(user["_id"])

    query = {"user_id": user_id}
    if unread_only:
        query["is_read"] = False

    try:
        notifications = await notifications_collection.find(
            query, sort=[("created_at", DESCENDING)], skip=(page - 1) * limit, limit=limit
        ).to_list(length=limit)
        total = await notifications_collection.count_documents(query)
        unread_count = await notifications_collection.count_documents({"user_id": user_id, "is_read": False})
    except PyMongoError as e:
        raise get_server_exception(e, "List notifications")

    return {
        "data": [_to_response(notification) for notification in notifications],
        "unread_count": unread_count,
        "pagination": pagination(page, limit, total),
    }


@router.get("/unread-count")
async def get_unread_count(user_and_type: tuple = Depends(get_current_user)):
    user, _ = user_and_type
    count = await notifications_collection.count_documents({"user_id": str(user["_id"]), "is_read": False})
    return {"count": count}


@router.patch("/mark-all-read")
async def mark_all_read(user_and_type: tuple = Depends(get_current_user)):
    user, _ = user_and_type
    await notifications_collection.update_many(
        {"user_id": str(user["_id"]), "is_read": False},
        {"$set": {"is_read": True}}
    )
    return {"message": "All notifications marked as read"}


@router.delete("/clear-all")
async def clear_all(user_and_type: tuple = Depends(get_current_user)):
    user, _ = user_and_type
    await notifications_collection.delete_many({"user_id": str(user["_id"])})
    return {"message": "All notifications cleared"}


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    user_and_type: tuple = Depends(get_current_user)
):
    """
    Mark one of the caller's notifications as read.
    Raises:
        HTTPException: 404 if no notification with that id belongs to the caller
    """
    user, _ = user_and_type

    result = await notifications_collection.update_one(
        {"_id": to_object_id(notification_id), "user_id": str(user["_id"])},
        {"$set": {"is_read": True}}
    )

    if result.matched_count == 0:
        raise NotFoundError(NOTIFICATION_NOT_FOUND)

    return {"message": "Notification marked as read"}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, user_and_type: tuple = Depends(get_current_user)):
    user, _ = user_and_type

    result = await notifications_collection.delete_one(
        {"_id": to_object_id(notification_id), "user_id": str(user["_id"])}
    )
    if result.deleted_count == 0:
        raise NotFoundError(NOTIFICATION_NOT_FOUND)

    return {"message": "Notification deleted"}
