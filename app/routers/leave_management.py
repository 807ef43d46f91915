from fastapi import APIRouter, Body, Depends, Query, status
from typing import Optional
from pymongo.errors import PyMongoError

from exceptions import get_server_exception, ForbiddenError
from schemas.leave import CreateLeave, EditLeave, LeaveDecision, LeavesCount, LeaveStatus, LeaveType
from utils import leave_utils
from utils.app_utils import get_current_user, ensure_role, serialize_document, pagination, STAFF_ROLES
from utils.employee_utils import scoped_employee_id, lookup_employee_id, get_employee_summary

router = APIRouter()


async def _ensure_owner_or_staff(user: dict, user_type: str, leave: dict):
    if user_type in STAFF_ROLES:
        return
    own_employee_id = await lookup_employee_id(user)
    if own_employee_id is None or own_employee_id != str(leave["employee_id"]):
        raise ForbiddenError()


async def _with_people(leave: dict) -> dict:
    leave["employee"] = await get_employee_summary(leave.get("employee_id"))
    leave["approver"] = await get_employee_summary(leave.get("approved_by"))
    return serialize_document(leave)


@router.get("/")
async def list_leaves(
    status: Optional[LeaveStatus] = Query(None, description="Search by pending, approved, rejected or cancelled"),
    leave_type: Optional[LeaveType] = Query(None, description="Only leaves of this type"),
    employee_id: Optional[str] = Query(None, description="HR/admin: only leaves of this employee"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_and_type: tuple = Depends(get_current_user)
):
    """
    List leave requests, newest first, with the requester and approver attached.
    Employees only see their own requests.
    Returns:
        dict:
            - data (list): leave requests
            - pagination (dict): page, limit, total, total_pages
    Raises:
        HTTPException:
            - 400 if an employee account has no linked employee profile
            - 500 on storage failure
    """
    user, user_type = user_and_type
    scoped_id = await scoped_employee_id(user, user_type, employee_id)

    try:
        leaves, total = await leave_utils.query_leaves(
            employee_id=scoped_id,
            status=status.value if status else None,
            leave_type=leave_type.value if leave_type else None,
            page=page,
            limit=limit,
        )
    except PyMongoError as e:
        raise get_server_exception(e, "List leaves")

    return {"data": serialize_document(leaves), "pagination": pagination(page, limit, total)}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_leave(leave_request: CreateLeave, user_and_type: tuple = Depends(get_current_user)):
    """
    Submit a leave request. Employees always apply for themselves; HR and admins may
    pass employee_id to apply on somebody's behalf. The request starts as pending and
    every active HR/admin account is notified.
    Raises:
        HTTPException:
            - 400 if no employee profile can be resolved for the request
            - 422 on an unknown leave type or missing reason
    """
    user, user_type = user_and_type
    explicit_employee_id = leave_request.employee_id if user_type in STAFF_ROLES else None

    try:
        leave = await leave_utils.create_leave(
            user=user,
            leave_type=leave_request.leave_type,
            start_date=leave_request.start_date,
            end_date=leave_request.end_date,
            reason=leave_request.reason,
            employee_id=explicit_employee_id,
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Create leave")

    return {"message": "Leave request submitted successfully", "data": await _with_people(leave)}


@router.get("/stats", response_model=LeavesCount)
async def get_leave_stats(user_and_type: tuple = Depends(get_current_user)):
    """Counts of pending, approved and rejected requests plus a count per leave type."""
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    try:
        return await leave_utils.leave_stats()
    except PyMongoError as e:
        raise get_server_exception(e, "Leave stats")


@router.get("/{leave_id}")
async def get_leave(leave_id: str, user_and_type: tuple = Depends(get_current_user)):
    user, user_type = user_and_type

    try:
        leave = await leave_utils.get_leave_or_404(leave_id)
    except PyMongoError as e:
        raise get_server_exception(e, "Get leave")

    await _ensure_owner_or_staff(user, user_type, leave)
    return {"data": await _with_people(leave)}


@router.patch("/{leave_id}")
async def update_leave(leave_id: str, leave_request: EditLeave, user_and_type: tuple = Depends(get_current_user)):
    """
    Edit a pending leave request. The day count is recomputed from the resulting dates.
    Raises:
        HTTPException:
            - 403 if an employee edits somebody else's request
            - 404 if the request does not exist
            - 400 if the request has already been processed
    """
    user, user_type = user_and_type

    try:
        leave = await leave_utils.get_leave_or_404(leave_id)
        await _ensure_owner_or_staff(user, user_type, leave)
        updated = await leave_utils.update_leave(leave_id, leave_request.model_dump(exclude_unset=True))
    except PyMongoError as e:
        raise get_server_exception(e, "Update leave")

    return {"message": "Leave request updated successfully", "data": await _with_people(updated)}


@router.delete("/{leave_id}")
async def delete_leave(leave_id: str, user_and_type: tuple = Depends(get_current_user)):
    """Withdraw a pending leave request. Processed requests are kept."""
    user, user_type = user_and_type

    try:
        leave = await leave_utils.get_leave_or_404(leave_id)
        await _ensure_owner_or_staff(user, user_type, leave)
        await leave_utils.delete_leave(leave_id)
    except PyMongoError as e:
        raise get_server_exception(e, "Delete leave")

    return {"message": "Leave request deleted successfully"}


@router.patch("/{leave_id}/approve")
async def approve_leave(leave_id: str, decision: Optional[LeaveDecision] = Body(None),
                        user_and_type: tuple = Depends(get_current_user)):
    """
    Approve a pending leave request (HR/admin only) and deduct its days from the
    employee's balance for that leave type.
    Raises:
        HTTPException:
            - 403 if the caller is not HR or admin
            - 404 if the request does not exist
            - 400 if the request is no longer pending
            - 400 if the approver is the requester
    """
    user, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)
    comments = decision.comments if decision else None

    try:
        leave = await leave_utils.approve_leave(leave_id, approver=user, comments=comments)
    except PyMongoError as e:
        raise get_server_exception(e, "Approve leave")

    return {"message": "Leave request approved successfully", "data": await _with_people(leave)}


@router.patch("/{leave_id}/reject")
async def reject_leave(leave_id: str, decision: Optional[LeaveDecision] = Body(None),
                       user_and_type: tuple = Depends(get_current_user)):
    """Reject a pending leave request (HR/admin only). Balances are untouched."""
    user, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)
    reason = None
    if decision:
        reason = decision.reason or decision.comments

    try:
        leave = await leave_utils.reject_leave(leave_id, approver=user, reason=reason)
    except PyMongoError as e:
        raise get_server_exception(e, "Reject leave")

    return {"message": "Leave request rejected", "data": await _with_people(leave)}
