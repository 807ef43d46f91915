from fastapi import APIRouter, Depends, Query
from pymongo.errors import PyMongoError
from exceptions import get_server_exception
from utils.app_utils import get_current_user, serialize_document
from utils.dashboard_utils import get_dashboard_stats, get_recent_activities, get_upcoming_leaves

router = APIRouter()


@router.get("/stats")
async def get_stats(user_and_type: tuple = Depends(get_current_user)):
    """
    Get the organisation overview shown on the dashboard.
    Returns:
        dict: data with
            - total_employees (int): non-terminated employees
            - active_employees (int): employees with status "active"
            - present_today (int): attendance records marked present today
            - on_leave_today (int): approved leaves covering today
            - pending_leaves (int): leave requests awaiting a decision
            - total_departments (int): active departments
            - department_stats (list): headcount and percentage per department
    """
    try:
        stats = await get_dashboard_stats()
    except PyMongoError as e:
        raise get_server_exception(e, "Dashboard stats")

    return {"data": serialize_document(stats)}


@router.get("/activities")
async def get_activities(
    limit: int = Query(10, ge=1, le=50),
    user_and_type: tuple = Depends(get_current_user)
):
    """Recent leave requests and clock events merged into one feed, newest first."""
    try:
        activities = await get_recent_activities(limit=limit)
    except PyMongoError as e:
        raise get_server_exception(e, "Recent activities")

    return {"data": activities}


@router.get("/upcoming-leaves")
async def get_upcoming(
    limit: int = Query(5, ge=1, le=50),
    user_and_type: tuple = Depends(get_current_user)
):
    try:
        leaves = await get_upcoming_leaves(limit=limit)
    except PyMongoError as e:
        raise get_server_exception(e, "Upcoming leaves")

    return {"data": leaves}
