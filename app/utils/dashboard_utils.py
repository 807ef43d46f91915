from typing import List, Dict
from pymongo import DESCENDING
from db import employees_collection, departments_collection, attendance_collection, leaves_collection
from utils.app_utils import find_by_id
from utils.date_utils import day_window
from utils.employee_utils import get_employee_summary, full_name
from utils.attendance_utils import recent_clock_events
from utils.leave_utils import count_on_leave, get_upcoming_approved_leaves


async def get_department_distribution(total_employees: int) -> List[Dict]:
    """
    Non-terminated employees grouped by department, largest first.
    Employees without a department are reported as "Unassigned".
    """
    pipeline = [
        {"$match": {"status": {"$ne": "terminated"}}},
        {"$group": {"_id": "$department_id", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
    ]
    groups = await employees_collection.aggregate(pipeline).to_list(length=None)

    distribution = []
    for group in groups:
        department_id = group["_id"]
        department = await find_by_id(departments_collection, department_id, {"name": 1})
        name = department["name"] if department else "Unassigned"
        distribution.append({
            "department_id": department_id,
            "name": name,
            "count": group["count"],
            "percentage": round(group["count"] / total_employees * 100) if total_employees > 0 else 0,
        })
    return distribution


async def get_dashboard_stats() -> Dict:
    today, tomorrow = day_window()

    total_employees = await employees_collection.count_documents({"status": {"$ne": "terminated"}})
    active_employees = await employees_collection.count_documents({"status": "active"})
    present_today = await attendance_collection.count_documents({
        "date": {"$gte": today, "$lt": tomorrow},
        "status": "present",
    })
    on_leave_today = await count_on_leave(today)
    pending_leaves = await leaves_collection.count_documents({"status": "pending"})
    total_departments = await departments_collection.count_documents({"is_active": True})

    return {
        "total_employees": total_employees,
        "active_employees": active_employees,
        "present_today": present_today,
        "on_leave_today": on_leave_today,
        "pending_leaves": pending_leaves,
        "total_departments": total_departments,
        "department_stats": await get_department_distribution(total_employees),
    }


async def get_recent_activities(limit: int = 10) -> List[Dict]:
    activities = []

    recent_leaves = await leaves_collection.find({}, sort=[("created_at", DESCENDING)], limit=5).to_list(length=5)
    for leave in recent_leaves:
        employee = await get_employee_summary(leave.get("employee_id"))
        if not employee:
            continue
        activities.append({
            "id": str(leave["_id"]),
            "user": full_name(employee),
            "action": "requested leave" if leave["status"] == "pending" else f"leave was {leave['status']}",
            "time": leave.get("updated_at") or leave.get("created_at"),
            "type": "leave",
        })

    for record in await recent_clock_events(limit=5):
        employee = await get_employee_summary(record.get("employee_id"))
        if not employee:
            continue
        activities.append({
            "id": str(record["_id"]),
            "user": full_name(employee),
            "action": "clocked out" if record.get("clock_out") else "clocked in",
            "time": record.get("clock_out") or record.get("clock_in"),
            "type": "attendance",
        })

    activities.sort(key=lambda activity: activity["time"], reverse=True)
    return activities[:limit]


async def get_upcoming_leaves(limit: int = 5) -> List[Dict]:
    upcoming = []
    for leave in await get_upcoming_approved_leaves(limit=limit):
        employee = await get_employee_summary(leave.get("employee_id"))
        department = await find_by_id(departments_collection, (employee or {}).get("department_id"), {"name": 1})
        department_name = department["name"] if department else "N/A"

        upcoming.append({
            "id": str(leave["_id"]),
            "name": full_name(employee),
            "department": department_name,
            "start_date": leave["start_date"],
            "end_date": leave["end_date"],
            "days": leave["total_days"],
            "type": leave["leave_type"],
        })
    return upcoming
