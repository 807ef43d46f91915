from datetime import date, datetime

import pytest

import db
from conftest import insert_employee, insert_user, auth_headers
from exceptions import AlreadyProcessedError, SelfApprovalError, SelfRejectionError, MissingEmployeeError
from utils import leave_utils
from utils.leave_utils import calculate_total_days


def test_total_days_is_inclusive():
    assert calculate_total_days(date(2024, 1, 15), date(2024, 1, 17)) == 3


def test_single_day_leave():
    assert calculate_total_days(date(2024, 1, 15), date(2024, 1, 15)) == 1


def test_reversed_dates_count_the_same_span():
    assert calculate_total_days(date(2024, 1, 17), date(2024, 1, 15)) == 3


def test_partial_days_round_up():
    assert calculate_total_days(datetime(2024, 1, 15), datetime(2024, 1, 16, 6)) == 3


async def _submit(user, leave_type="annual", start=date(2024, 2, 5), end=date(2024, 2, 7)):
    return await leave_utils.create_leave(user, leave_type, start, end, "Family trip")


async def test_create_leave_derives_days_and_notifies_staff(employee_user, hr_user):
    leave = await _submit(employee_user)

    assert leave["status"] == "pending"
    assert leave["total_days"] == 3
    assert leave["employee_id"] == employee_user["employee_id"]
    assert leave["start_date"] == datetime(2024, 2, 5)

    notification = await db.notifications_collection.find_one({"user_id": str(hr_user["_id"])})
    assert notification["title"] == "New leave request"
    assert "Grace Hopper" in notification["message"]


async def test_create_leave_without_profile(unlinked_user):
    with pytest.raises(MissingEmployeeError):
        await _submit(unlinked_user)


async def test_approval_deducts_balance_once(employee, employee_user, hr_user, hr_employee):
    leave = await _submit(employee_user)

    approved = await leave_utils.approve_leave(str(leave["_id"]), hr_user, comments="Enjoy")

    assert approved["status"] == "approved"
    assert approved["approved_by"] == str(hr_employee["_id"])
    assert approved["approver_comments"] == "Enjoy"
    assert approved["approved_at"] is not None

    with pytest.raises(AlreadyProcessedError):
        await leave_utils.approve_leave(str(leave["_id"]), hr_user)

    refreshed = await db.employees_collection.find_one({"_id": employee["_id"]})
    assert refreshed["leave_balance"]["annual"] == 17

    notification = await db.notifications_collection.find_one({"user_id": str(employee_user["_id"])})
    assert notification["title"] == "Leave approved"


async def test_rejecting_an_approved_leave_fails(employee_user, hr_user):
    leave = await _submit(employee_user)
    await leave_utils.approve_leave(str(leave["_id"]), hr_user)

    with pytest.raises(AlreadyProcessedError):
        await leave_utils.reject_leave(str(leave["_id"]), hr_user, reason="Too late")


async def test_approval_without_balance_counter_deducts_nothing(employee, employee_user, admin_user):
    leave = await _submit(employee_user, leave_type="maternity")

    approved = await leave_utils.approve_leave(str(leave["_id"]), admin_user)

    assert approved["status"] == "approved"
    assert approved["approved_by"] is None
    refreshed = await db.employees_collection.find_one({"_id": employee["_id"]})
    assert refreshed["leave_balance"] == {"annual": 20, "sick": 10, "personal": 5, "unpaid": 0}
    assert "maternity" not in refreshed["leave_balance"]


async def test_cannot_approve_own_leave(hr_user):
    leave = await _submit(hr_user)

    with pytest.raises(SelfApprovalError):
        await leave_utils.approve_leave(str(leave["_id"]), hr_user)

    stored = await db.leaves_collection.find_one({"_id": leave["_id"]})
    assert stored["status"] == "pending"


async def test_cannot_reject_own_leave(hr_user):
    leave = await _submit(hr_user)

    with pytest.raises(SelfRejectionError):
        await leave_utils.reject_leave(str(leave["_id"]), hr_user)


async def test_self_check_uses_email_fallback():
    employee = await insert_employee(email="boss@example.com")
    boss = await insert_user("boss@example.com", role="admin")
    leave = await leave_utils.create_leave(boss, "sick", date(2024, 3, 1), date(2024, 3, 1), "Flu",
                                           employee_id=str(employee["_id"]))

    with pytest.raises(SelfApprovalError):
        await leave_utils.approve_leave(str(leave["_id"]), boss)


async def test_rejection_keeps_balance(employee, employee_user, hr_user):
    leave = await _submit(employee_user)

    rejected = await leave_utils.reject_leave(str(leave["_id"]), hr_user, reason="Busy season")

    assert rejected["status"] == "rejected"
    assert rejected["rejection_reason"] == "Busy season"
    refreshed = await db.employees_collection.find_one({"_id": employee["_id"]})
    assert refreshed["leave_balance"]["annual"] == 20


async def test_update_recomputes_days(employee_user):
    leave = await _submit(employee_user)

    updated = await leave_utils.update_leave(str(leave["_id"]), {"end_date": date(2024, 2, 9), "reason": " Longer trip "})

    assert updated["total_days"] == 5
    assert updated["reason"] == "Longer trip"


async def test_processed_leave_cannot_change(employee_user, hr_user):
    leave = await _submit(employee_user)
    await leave_utils.reject_leave(str(leave["_id"]), hr_user)

    with pytest.raises(AlreadyProcessedError):
        await leave_utils.update_leave(str(leave["_id"]), {"reason": "Please"})
    with pytest.raises(AlreadyProcessedError):
        await leave_utils.delete_leave(str(leave["_id"]))


async def test_concurrent_decisions_on_a_stale_read_only_land_once(employee, employee_user, hr_user, admin_user,
                                                                   monkeypatch):
    leave = await _submit(employee_user)
    leave_id = str(leave["_id"])
    stale_leave = await db.leaves_collection.find_one({"_id": leave["_id"]})

    await leave_utils.approve_leave(leave_id, hr_user)

    async def pending_leave(leave_id):
        return dict(stale_leave)

    # later requests read the leave while it was still pending
    monkeypatch.setattr(leave_utils, "get_leave_or_404", pending_leave)

    with pytest.raises(AlreadyProcessedError):
        await leave_utils.approve_leave(leave_id, admin_user)
    with pytest.raises(AlreadyProcessedError):
        await leave_utils.reject_leave(leave_id, admin_user, reason="Busy season")
    with pytest.raises(AlreadyProcessedError):
        await leave_utils.update_leave(leave_id, {"reason": "Longer trip"})
    with pytest.raises(AlreadyProcessedError):
        await leave_utils.delete_leave(leave_id)

    stored = await db.leaves_collection.find_one({"_id": leave["_id"]})
    assert stored["status"] == "approved"
    assert stored["reason"] == "Family trip"

    refreshed = await db.employees_collection.find_one({"_id": employee["_id"]})
    assert refreshed["leave_balance"]["annual"] == 17


async def test_delete_pending_leave(employee_user):
    leave = await _submit(employee_user)

    await leave_utils.delete_leave(str(leave["_id"]))

    assert await db.leaves_collection.count_documents({}) == 0


async def test_stats_by_type(employee_user, hr_user):
    first = await _submit(employee_user)
    await _submit(employee_user, leave_type="sick")
    await _submit(employee_user, leave_type="sick")
    await leave_utils.approve_leave(str(first["_id"]), hr_user)

    stats = await leave_utils.leave_stats()

    assert stats["pending"] == 2
    assert stats["approved"] == 1
    assert stats["rejected"] == 0
    assert stats["total"] == 3
    assert stats["by_type"] == {"annual": 1, "sick": 2}


async def test_on_leave_and_upcoming(employee_user, hr_user, freeze_time):
    freeze_time(datetime(2024, 2, 6, 10, 0))
    current = await _submit(employee_user)
    upcoming = await _submit(employee_user, start=date(2024, 3, 1), end=date(2024, 3, 2))
    await leave_utils.approve_leave(str(current["_id"]), hr_user)
    await leave_utils.approve_leave(str(upcoming["_id"]), hr_user)

    assert await leave_utils.count_on_leave() == 1
    assert [leave["_id"] for leave in await leave_utils.get_upcoming_approved_leaves()] == [upcoming["_id"]]


async def test_leave_api_flow(client, employee_user, hr_user):
    payload = {"leave_type": "annual", "start_date": "2024-02-05", "end_date": "2024-02-07", "reason": "Trip"}

    response = await client.post("/leaves/", json=payload, headers=auth_headers(employee_user))
    assert response.status_code == 201
    leave = response.json()["data"]
    assert leave["total_days"] == 3
    assert leave["employee"]["first_name"] == "Grace"

    response = await client.patch(f"/leaves/{leave['_id']}/approve", headers=auth_headers(employee_user))
    assert response.status_code == 403

    response = await client.patch(f"/leaves/{leave['_id']}/approve", json={"comments": "ok"},
                                  headers=auth_headers(hr_user))
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "approved"
    assert response.json()["data"]["approver"]["first_name"] == "Hedy"

    response = await client.patch(f"/leaves/{leave['_id']}/reject", headers=auth_headers(hr_user))
    assert response.status_code == 400


async def test_leave_requires_reason(client, employee_user):
    payload = {"leave_type": "annual", "start_date": "2024-02-05", "end_date": "2024-02-07", "reason": "   "}

    response = await client.post("/leaves/", json=payload, headers=auth_headers(employee_user))

    assert response.status_code == 422


async def test_unknown_leave_type_rejected(client, employee_user):
    payload = {"leave_type": "sabbatical", "start_date": "2024-02-05", "end_date": "2024-02-07", "reason": "Rest"}

    response = await client.post("/leaves/", json=payload, headers=auth_headers(employee_user))

    assert response.status_code == 422


async def test_employee_cannot_touch_other_leaves(client, employee_user, hr_user):
    leave = await _submit(hr_user)

    response = await client.get(f"/leaves/{leave['_id']}", headers=auth_headers(employee_user))
    assert response.status_code == 403

    response = await client.delete(f"/leaves/{leave['_id']}", headers=auth_headers(employee_user))
    assert response.status_code == 403


async def test_employee_lists_only_own_leaves(client, employee_user, hr_user):
    await _submit(employee_user)
    await _submit(hr_user)

    response = await client.get("/leaves/", headers=auth_headers(employee_user))
    assert response.json()["pagination"]["total"] == 1

    response = await client.get("/leaves/", headers=auth_headers(hr_user))
    assert response.json()["pagination"]["total"] == 2


async def test_unknown_leave_id(client, hr_user):
    response = await client.get("/leaves/not-an-id", headers=auth_headers(hr_user))

    assert response.status_code == 404
