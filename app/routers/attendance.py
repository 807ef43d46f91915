from datetime import date
from typing import Optional
from fastapi import APIRouter, Body, Depends, Query, status
from pymongo.errors import PyMongoError

from exceptions import get_server_exception
from schemas.attendance import AttendanceStats, AttendanceStatus, ClockRequest, CreateAttendance
from utils import attendance_utils
from utils.app_utils import get_current_user, ensure_role, serialize_document, pagination, STAFF_ROLES
from utils.employee_utils import resolve_employee_id, scoped_employee_id, get_employee_summary

router = APIRouter()


async def _acting_employee_id(user: dict, user_type: str, clock_request: Optional[ClockRequest]) -> str:
    # only HR and admins may act on somebody else's record
    explicit_employee_id = clock_request.employee_id if clock_request and user_type in STAFF_ROLES else None
    return await resolve_employee_id(user, explicit_employee_id)


async def _with_employee(record: Optional[dict]) -> Optional[dict]:
    if record is None:
        return None
    record["employee"] = await get_employee_summary(record.get("employee_id"))
    return serialize_document(record)


@router.get("/")
async def list_attendance(
    date: Optional[date] = Query(None, description="Only records of this day (UTC)"),
    employee_id: Optional[str] = Query(None, description="Only records of this employee"),
    status: Optional[AttendanceStatus] = Query(None, description="present, absent, half-day, on-leave, holiday or weekend"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_and_type: tuple = Depends(get_current_user)
):
    """
    List attendance records, newest day first and latest clock-in first within a day.
    Employees only ever see their own records; HR and admins see all of them unless
    employee_id narrows the list.
    Returns:
        dict:
            - data (list): attendance records, each with an "employee" summary
            - pagination (dict): page, limit, total, total_pages
    Raises:
        HTTPException:
            - 400 if an employee account has no linked employee profile
            - 500 on storage failure
    """
    user, user_type = user_and_type
    scoped_id = await scoped_employee_id(user, user_type, employee_id)

    try:
        records, total = await attendance_utils.query_attendance(
            date=date, employee_id=scoped_id, status=status.value if status else None, page=page, limit=limit
        )
    except PyMongoError as e:
        raise get_server_exception(e, "List attendance")

    return {"data": serialize_document(records), "pagination": pagination(page, limit, total)}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_attendance(attendance_request: CreateAttendance, user_and_type: tuple = Depends(get_current_user)):
    """
    Manually record attendance for an employee and day (HR/admin only), e.g. to backfill
    a missed clock-in. Work hours are computed when both clock times are given.
    Raises:
        HTTPException:
            - 403 if the caller is not HR or admin
            - 404 if the employee does not exist
            - 400 if the employee already has a record for that day
    """
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    try:
        record = await attendance_utils.create_manual_attendance(
            employee_id=attendance_request.employee_id,
            date=attendance_request.date,
            clock_in=attendance_request.clock_in,
            clock_out=attendance_request.clock_out,
            status=attendance_request.status,
            notes=attendance_request.notes,
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Create attendance")

    return {"message": "Attendance recorded", "data": await _with_employee(record)}


@router.get("/stats", response_model=AttendanceStats)
async def get_attendance_stats(user_and_type: tuple = Depends(get_current_user)):
    """
    Today's present/absent counts, the attendance rate (percentage of non-terminated
    employees present today) and per-weekday record counts for the current week
    (1 = Sunday ... 7 = Saturday).
    """
    try:
        return await attendance_utils.attendance_stats()
    except PyMongoError as e:
        raise get_server_exception(e, "Attendance stats")


@router.get("/today")
async def get_today_attendance(
    employee_id: Optional[str] = Query(None, description="HR/admin: look up another employee"),
    user_and_type: tuple = Depends(get_current_user)
):
    """Today's attendance record for the caller (or the requested employee), or null."""
    user, user_type = user_and_type
    explicit_employee_id = employee_id if user_type in STAFF_ROLES else None
    resolved_id = await resolve_employee_id(user, explicit_employee_id)

    try:
        record = await attendance_utils.find_today_record(resolved_id)
    except PyMongoError as e:
        raise get_server_exception(e, "Today's attendance")

    return {"data": await _with_employee(record)}


@router.post("/clock-in", status_code=status.HTTP_201_CREATED)
async def clock_in(clock_request: Optional[ClockRequest] = Body(None), user_and_type: tuple = Depends(get_current_user)):
    """
    Clock in for the current UTC day.
    Raises:
        HTTPException:
            - 400 if already clocked in today
            - 400 if the account has no linked employee profile
    """
    user, user_type = user_and_type
    employee_id = await _acting_employee_id(user, user_type, clock_request)

    try:
        record = await attendance_utils.clock_in(employee_id)
    except PyMongoError as e:
        raise get_server_exception(e, "Clock in")

    return {"message": "Clocked in successfully", "data": await _with_employee(record)}


@router.post("/clock-out")
async def clock_out(clock_request: Optional[ClockRequest] = Body(None), user_and_type: tuple = Depends(get_current_user)):
    """
    Clock out of today's record and compute the hours worked.
    Raises:
        HTTPException:
            - 400 if there is no clock-in today
            - 400 if already clocked out today
            - 400 if the account has no linked employee profile
    """
    user, user_type = user_and_type
    employee_id = await _acting_employee_id(user, user_type, clock_request)

    try:
        record = await attendance_utils.clock_out(employee_id)
    except PyMongoError as e:
        raise get_server_exception(e, "Clock out")

    return {"message": "Clocked out successfully", "data": await _with_employee(record)}


@router.post("/break/start")
async def start_break(clock_request: Optional[ClockRequest] = Body(None), user_and_type: tuple = Depends(get_current_user)):
    """Start today's break. The break is subtracted from the hours worked at clock-out."""
    user, user_type = user_and_type
    employee_id = await _acting_employee_id(user, user_type, clock_request)

    try:
        record = await attendance_utils.start_break(employee_id)
    except PyMongoError as e:
        raise get_server_exception(e, "Start break")

    return {"message": "Break started", "data": await _with_employee(record)}


@router.post("/break/end")
async def end_break(clock_request: Optional[ClockRequest] = Body(None), user_and_type: tuple = Depends(get_current_user)):
    user, user_type = user_and_type
    employee_id = await _acting_employee_id(user, user_type, clock_request)

    try:
        record = await attendance_utils.end_break(employee_id)
    except PyMongoError as e:
        raise get_server_exception(e, "End break")

    return {"message": "Break ended", "data": await _with_employee(record)}
