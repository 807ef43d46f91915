import logging
import math
from datetime import date, datetime
from typing import Optional, Tuple, List, Union
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from db import leaves_collection, employees_collection
from models.leaves import Leave
from exceptions import NotFoundError, AlreadyProcessedError, SelfApprovalError, SelfRejectionError, MissingEmployeeError
from utils.app_utils import to_object_id
from utils.date_utils import utc_now, start_of_day, day_window
from utils.employee_utils import resolve_employee_id, lookup_employee_id, get_employee_summary, full_name
from utils.notification_utils import notify_employee, notify_staff

logger = logging.getLogger(__name__)

LEAVE_NOT_FOUND = "Leave request not found"


def calculate_total_days(start_date: Union[date, datetime], end_date: Union[date, datetime]) -> int:
    """
    Inclusive number of days covered by a leave, e.g. 2024-01-15 to 2024-01-17 is 3.
    Partial days round up and the order of the two dates does not matter.
    """
    start = start_date if isinstance(start_date, datetime) else start_of_day(start_date)
    end = end_date if isinstance(end_date, datetime) else start_of_day(end_date)
    span_days = abs((end - start).total_seconds()) / 86400
    return math.ceil(span_days) + 1


def balance_key(leave_type: str) -> str:
    return leave_type.lower().replace("-", "")


async def get_leave_or_404(leave_id: str) -> dict:
    leave = await leaves_collection.find_one({"_id": to_object_id(leave_id)})
    if not leave:
        raise NotFoundError(LEAVE_NOT_FOUND)
    return leave


async def create_leave(user: dict, leave_type: str, start_date: date, end_date: date, reason: str,
                       employee_id: Optional[str] = None) -> dict:
    """
    Submits a pending leave request for the resolved employee.
    The day count is always derived from the dates, never taken from the caller.
    """
    employee_id = await resolve_employee_id(user, employee_id, missing_error=MissingEmployeeError)

    leave_instance = Leave(
        employee_id=employee_id,
        leave_type=leave_type,
        start_date=start_of_day(start_date),
        end_date=start_of_day(end_date),
        total_days=calculate_total_days(start_date, end_date),
        reason=reason,
    )
    document = leave_instance.model_dump()
    result = await leaves_collection.insert_one(document)
    document["_id"] = result.inserted_id

    employee = await get_employee_summary(employee_id)
    await notify_staff(
        title="New leave request",
        message=f"New {leave_type} leave request from {full_name(employee)} ({document['total_days']} days)",
        link=f"/leaves/{result.inserted_id}",
    )

    logger.info("Leave %s created for employee %s", result.inserted_id, employee_id)
    return document


async def update_leave(leave_id: str, patch: dict) -> dict:
    leave = await get_leave_or_404(leave_id)
    if leave["status"] != "pending":
        raise AlreadyProcessedError("Cannot update leave request that has been processed")

    updates = {key: value for key, value in patch.items() if value is not None}
    for field in ("start_date", "end_date"):
        if field in updates:
            updates[field] = start_of_day(updates[field])
    if "reason" in updates:
        updates["reason"] = updates["reason"].strip()

    start = updates.get("start_date", leave["start_date"])
    end = updates.get("end_date", leave["end_date"])
    updates["total_days"] = calculate_total_days(start, end)
    updates["updated_at"] = utc_now()

    updated = await leaves_collection.find_one_and_update(
        {"_id": leave["_id"], "status": "pending"},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise AlreadyProcessedError("Cannot update leave request that has been processed")
    return updated


async def _decide_leave(leave_id: str, approver: dict, new_status: str, comments: Optional[str],
                        self_error) -> dict:
    leave = await get_leave_or_404(leave_id)
    if leave["status"] != "pending":
        raise AlreadyProcessedError()

    approver_employee_id = await lookup_employee_id(approver)
    if approver_employee_id and approver_employee_id == str(leave["employee_id"]):
        raise self_error()

    now = utc_now()
    updates = {
        "status": new_status,
        "approved_by": approver_employee_id,
        "approved_at": now,
        "approver_comments": comments,
        "updated_at": now,
    }
    if new_status == "rejected":
        updates["rejection_reason"] = comments

    # Conditional on pending so that only one of two concurrent decisions lands
    updated = await leaves_collection.find_one_and_update(
        {"_id": leave["_id"], "status": "pending"},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise AlreadyProcessedError()
    return updated


async def approve_leave(leave_id: str, approver: dict, comments: Optional[str] = None) -> dict:
    """
    Approves a pending leave and deducts total_days from the requester's balance for that type.
    The deduction is skipped when the employee or the balance counter does not exist.
    """
    updated = await _decide_leave(leave_id, approver, "approved", comments, SelfApprovalError)

    key = balance_key(updated["leave_type"])
    if ObjectId.is_valid(str(updated["employee_id"])):
        result = await employees_collection.update_one(
            {"_id": ObjectId(str(updated["employee_id"])), f"leave_balance.{key}": {"$exists": True}},
            {"$inc": {f"leave_balance.{key}": -updated["total_days"]}},
        )
        if result.matched_count == 0:
            logger.info("No %s balance to deduct for employee %s", key, updated["employee_id"])

    await notify_employee(
        employee_id=updated["employee_id"],
        title="Leave approved",
        message=f"Your {updated['leave_type']} leave request has been approved",
        link=f"/leaves/{updated['_id']}",
    )
    logger.info("Leave %s approved by %s", updated["_id"], approver.get("email"))
    return updated


async def reject_leave(leave_id: str, approver: dict, reason: Optional[str] = None) -> dict:
    updated = await _decide_leave(leave_id, approver, "rejected", reason, SelfRejectionError)

    await notify_employee(
        employee_id=updated["employee_id"],
        title="Leave rejected",
        message=f"Your {updated['leave_type']} leave request has been rejected",
        link=f"/leaves/{updated['_id']}",
    )
    logger.info("Leave %s rejected by %s", updated["_id"], approver.get("email"))
    return updated


async def delete_leave(leave_id: str):
    leave = await get_leave_or_404(leave_id)
    if leave["status"] != "pending":
        raise AlreadyProcessedError("Cannot delete leave request that has been processed")

    result = await leaves_collection.delete_one({"_id": leave["_id"], "status": "pending"})
    if result.deleted_count == 0:
        raise AlreadyProcessedError("Cannot delete leave request that has been processed")
    logger.info("Leave %s deleted", leave["_id"])


async def query_leaves(employee_id: Optional[str] = None, status: Optional[str] = None,
                       leave_type: Optional[str] = None, page: int = 1, limit: int = 10) -> Tuple[List[dict], int]:
    query = {}
    if employee_id:
        query["employee_id"] = employee_id
    if status:
        query["status"] = status
    if leave_type:
        query["leave_type"] = leave_type

    leaves = await leaves_collection.find(
        query, sort=[("created_at", DESCENDING)], skip=(page - 1) * limit, limit=limit
    ).to_list(length=limit)
    total = await leaves_collection.count_documents(query)

    for leave in leaves:
        leave["employee"] = await get_employee_summary(leave.get("employee_id"))
        leave["approver"] = await get_employee_summary(leave.get("approved_by"))

    return leaves, total


async def leave_stats() -> dict:
    pending = await leaves_collection.count_documents({"status": "pending"})
    approved = await leaves_collection.count_documents({"status": "approved"})
    rejected = await leaves_collection.count_documents({"status": "rejected"})

    pipeline = [{"$group": {"_id": "$leave_type", "count": {"$sum": 1}}}]
    results = await leaves_collection.aggregate(pipeline).to_list(length=None)

    return {
        "pending": pending,
        "approved": approved,
        "rejected": rejected,
        "total": pending + approved + rejected,
        "by_type": {item["_id"]: item["count"] for item in results},
    }


async def get_upcoming_approved_leaves(limit: int = 5) -> List[dict]:
    today, _ = day_window()
    leaves = await leaves_collection.find({
        "status": "approved",
        "start_date": {"$gte": today},
    }, sort=[("start_date", ASCENDING)], limit=limit).to_list(length=limit)
    return leaves


async def count_on_leave(day: Optional[datetime] = None) -> int:
    today, _ = day_window(day)
    return await leaves_collection.count_documents({
        "status": "approved",
        "start_date": {"$lte": today},
        "end_date": {"$gte": today},
    })

