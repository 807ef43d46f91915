import logging
from collections import Counter
from datetime import datetime
from typing import Optional, Tuple, List
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from db import attendance_collection, employees_collection
from models.attendance import AttendanceRecord
from exceptions import (AlreadyClockedInError, AlreadyClockedOutError, NoClockInRecordError,
                        BreakStateError, DuplicateAttendanceError, NotFoundError)
from utils.date_utils import utc_now, as_naive_utc, day_window, start_of_day, start_of_week, mongo_day_of_week
from utils.employee_utils import get_employee_summary
from utils.app_utils import to_object_id

logger = logging.getLogger(__name__)


def calculate_work_hours(clock_in: Optional[datetime], clock_out: Optional[datetime],
                         break_start: Optional[datetime] = None, break_end: Optional[datetime] = None) -> float:
    """
    Hours between clock-in and clock-out minus the break interval, rounded to 2 places.
    Returns 0 while either timestamp is missing.
    """
    if not clock_in or not clock_out:
        return 0

    worked = clock_out - clock_in
    if break_start and break_end:
        worked -= break_end - break_start

    return round(worked.total_seconds() / 3600, 2)


def calculate_attendance_rate(present: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(present / total * 100)


async def find_today_record(employee_id: str) -> Optional[dict]:
    today, tomorrow = day_window()
    return await attendance_collection.find_one({
        "employee_id": employee_id,
        "date": {"$gte": today, "$lt": tomorrow},
    })


async def clock_in(employee_id: str) -> dict:
    """
    Opens today's attendance record for the employee.
    A second clock-in on the same UTC day raises AlreadyClockedInError, including when
    two requests race past the lookup and the unique (employee_id, date) index rejects one.
    """
    existing = await find_today_record(employee_id)
    if existing:
        raise AlreadyClockedInError()

    now = utc_now()
    today, _ = day_window(now)
    record = AttendanceRecord(employee_id=employee_id, date=today, clock_in=now, status="present")
    document = record.model_dump()

    try:
        result = await attendance_collection.insert_one(document)
    except DuplicateKeyError:
        logger.info("Concurrent clock-in rejected for employee %s", employee_id)
        raise AlreadyClockedInError()

    document["_id"] = result.inserted_id
    logger.info("Employee %s clocked in at %s", employee_id, now.isoformat())
    return document


async def clock_out(employee_id: str) -> dict:
    record = await find_today_record(employee_id)
    if not record:
        raise NoClockInRecordError()

    if record.get("clock_out"):
        raise AlreadyClockedOutError()

    now = utc_now()
    break_end = record.get("break_end")
    updates = {"clock_out": now, "updated_at": now}
    if record.get("break_start") and not break_end:
        # an open break ends with the working day
        break_end = now
        updates["break_end"] = now

    updates["total_work_hours"] = calculate_work_hours(record.get("clock_in"), now,
                                                       record.get("break_start"), break_end)

    updated = await attendance_collection.find_one_and_update(
        {"_id": record["_id"], "clock_out": None},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise AlreadyClockedOutError()

    logger.info("Employee %s clocked out after %s hours", employee_id, updates["total_work_hours"])
    return updated


async def start_break(employee_id: str) -> dict:
    record = await find_today_record(employee_id)
    if not record:
        raise NoClockInRecordError()
    if record.get("clock_out"):
        raise AlreadyClockedOutError()
    if record.get("break_start"):
        raise BreakStateError("Break has already been taken today")

    now = utc_now()
    return await attendance_collection.find_one_and_update(
        {"_id": record["_id"]},
        {"$set": {"break_start": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )


async def end_break(employee_id: str) -> dict:
    record = await find_today_record(employee_id)
    if not record:
        raise NoClockInRecordError()
    if record.get("clock_out"):
        raise AlreadyClockedOutError()
    if not record.get("break_start"):
        raise BreakStateError("No break in progress")
    if record.get("break_end"):
        raise BreakStateError("Break has already ended")

    now = utc_now()
    return await attendance_collection.find_one_and_update(
        {"_id": record["_id"]},
        {"$set": {"break_end": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER,
    )


async def create_manual_attendance(employee_id: str, date, clock_in: Optional[datetime] = None,
                                   clock_out: Optional[datetime] = None, status: str = "present",
                                   notes: Optional[str] = None) -> dict:
    """
    Backfills a record for any day, bypassing the clock-in/clock-out sequence.
    """
    employee = await employees_collection.find_one({"_id": to_object_id(employee_id)}, {"_id": 1})
    if not employee:
        raise NotFoundError("Employee not found")

    record = AttendanceRecord(
        employee_id=str(employee["_id"]),
        date=start_of_day(date),
        clock_in=as_naive_utc(clock_in) if clock_in else None,
        clock_out=as_naive_utc(clock_out) if clock_out else None,
        status=status,
        notes=notes.strip() if notes else None,
    )
    record.total_work_hours = calculate_work_hours(record.clock_in, record.clock_out)
    document = record.model_dump()

    try:
        result = await attendance_collection.insert_one(document)
    except DuplicateKeyError:
        raise DuplicateAttendanceError()

    document["_id"] = result.inserted_id
    logger.info("Manual attendance recorded for employee %s on %s", employee_id, record.date.date())
    return document


async def query_attendance(date=None, employee_id: Optional[str] = None, status: Optional[str] = None,
                           page: int = 1, limit: int = 10) -> Tuple[List[dict], int]:
    query = {}
    if employee_id:
        query["employee_id"] = employee_id
    if date:
        start, end = day_window(date)
        query["date"] = {"$gte": start, "$lt": end}
    if status:
        query["status"] = status

    records = await attendance_collection.find(
        query,
        sort=[("date", DESCENDING), ("clock_in", DESCENDING)],
        skip=(page - 1) * limit,
        limit=limit,
    ).to_list(length=limit)
    total = await attendance_collection.count_documents(query)

    for record in records:
        record["employee"] = await get_employee_summary(record.get("employee_id"))

    return records, total


async def attendance_stats() -> dict:
    today, tomorrow = day_window()

    present_today = await attendance_collection.count_documents({
        "date": {"$gte": today, "$lt": tomorrow},
        "status": "present",
    })
    total_employees = await employees_collection.count_documents({"status": {"$ne": "terminated"}})

    week_start = start_of_week(today)
    week_records = await attendance_collection.find(
        {"date": {"$gte": week_start, "$lt": tomorrow}}, {"date": 1}
    ).to_list(length=None)
    per_day = Counter(mongo_day_of_week(record["date"]) for record in week_records)

    return {
        "present_today": present_today,
        "absent_today": total_employees - present_today,
        "total_employees": total_employees,
        "attendance_rate": calculate_attendance_rate(present_today, total_employees),
        "weekly_stats": [{"day": day, "count": per_day[day]} for day in sorted(per_day)],
    }


async def recent_clock_events(limit: int = 5) -> List[dict]:
    records = await attendance_collection.find(
        {"clock_in": {"$ne": None}}, sort=[("clock_in", DESCENDING)], limit=limit
    ).to_list(length=limit)
    return records
