from datetime import date, datetime

import db
from conftest import insert_employee, auth_headers
from utils import attendance_utils, leave_utils


async def test_dashboard_stats(client, employee_user, hr_user, freeze_time):
    freeze_time(datetime(2024, 2, 6, 9, 0))
    department = await db.departments_collection.insert_one({"name": "Research", "code": "RES", "is_active": True})
    await insert_employee(department_id=str(department.inserted_id))
    await insert_employee(status="terminated")

    await attendance_utils.clock_in(employee_user["employee_id"])
    leave = await leave_utils.create_leave(employee_user, "annual", date(2024, 2, 6), date(2024, 2, 8), "Trip")
    await leave_utils.approve_leave(str(leave["_id"]), hr_user)
    await leave_utils.create_leave(employee_user, "sick", date(2024, 3, 1), date(2024, 3, 1), "Dentist")

    response = await client.get("/dashboard/stats", headers=auth_headers(employee_user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_employees"] == 3
    assert data["active_employees"] == 3
    assert data["present_today"] == 1
    assert data["on_leave_today"] == 1
    assert data["pending_leaves"] == 1
    assert data["total_departments"] == 1

    by_name = {item["name"]: item for item in data["department_stats"]}
    assert by_name["Research"]["count"] == 1
    assert by_name["Research"]["percentage"] == 33
    assert by_name["Unassigned"]["count"] == 2


async def test_recent_activities_newest_first(client, employee_user, freeze_time):
    freeze_time(datetime(2024, 2, 6, 9, 0))
    await attendance_utils.clock_in(employee_user["employee_id"])
    freeze_time(datetime(2024, 2, 6, 17, 0))
    await attendance_utils.clock_out(employee_user["employee_id"])

    response = await client.get("/dashboard/activities", headers=auth_headers(employee_user))

    activities = response.json()["data"]
    assert activities[0]["user"] == "Grace Hopper"
    assert activities[0]["action"] == "clocked out"
    assert activities[0]["type"] == "attendance"


async def test_upcoming_leaves(client, employee_user, hr_user, freeze_time):
    freeze_time(datetime(2024, 2, 6, 9, 0))
    later = await leave_utils.create_leave(employee_user, "annual", date(2024, 4, 1), date(2024, 4, 5), "Holiday")
    sooner = await leave_utils.create_leave(employee_user, "personal", date(2024, 3, 1), date(2024, 3, 1), "Move")
    await leave_utils.create_leave(employee_user, "sick", date(2024, 2, 20), date(2024, 2, 20), "Pending only")
    await leave_utils.approve_leave(str(later["_id"]), hr_user)
    await leave_utils.approve_leave(str(sooner["_id"]), hr_user)

    response = await client.get("/dashboard/upcoming-leaves", headers=auth_headers(employee_user))

    upcoming = response.json()["data"]
    assert [item["id"] for item in upcoming] == [str(sooner["_id"]), str(later["_id"])]
    assert upcoming[0]["name"] == "Grace Hopper"
    assert upcoming[0]["department"] == "N/A"
    assert upcoming[1]["days"] == 5
