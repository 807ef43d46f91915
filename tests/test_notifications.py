from bson import ObjectId

import db
from conftest import auth_headers
from schemas.notification import NotificationCreate, NotificationType
from utils.notification_utils import create_notification, notify_employee


async def _notify(user, title="Hello", **overrides):
    fields = {"user_id": str(user["_id"]), "title": title, "message": "Body", "type": NotificationType.SYSTEM}
    fields.update(overrides)
    return await create_notification(NotificationCreate(**fields))


async def test_notify_employee_without_account_is_a_no_op(employee):
    assert await notify_employee(str(employee["_id"]), "Leave approved", "ok") is None
    assert await db.notifications_collection.count_documents({}) == 0


async def test_list_is_scoped_to_caller(client, employee_user, hr_user):
    await _notify(employee_user, title="Mine")
    await _notify(employee_user, title="Also mine")
    await _notify(hr_user, title="Not mine")

    response = await client.get("/notifications/", headers=auth_headers(employee_user))

    assert response.status_code == 200
    body = response.json()
    assert sorted(item["title"] for item in body["data"]) == ["Also mine", "Mine"]
    assert body["unread_count"] == 2
    assert body["data"][0]["type"] == "system"
    assert "id" in body["data"][0]


async def test_mark_read_and_unread_count(client, employee_user):
    notification = await _notify(employee_user)
    await _notify(employee_user)

    response = await client.patch(f"/notifications/{notification['_id']}/read", headers=auth_headers(employee_user))
    assert response.status_code == 200

    response = await client.get("/notifications/unread-count", headers=auth_headers(employee_user))
    assert response.json() == {"count": 1}

    response = await client.get("/notifications/", params={"unread_only": True}, headers=auth_headers(employee_user))
    assert response.json()["pagination"]["total"] == 1


async def test_cannot_touch_someone_elses_notification(client, employee_user, hr_user):
    notification = await _notify(hr_user)

    response = await client.patch(f"/notifications/{notification['_id']}/read", headers=auth_headers(employee_user))
    assert response.status_code == 404

    response = await client.delete(f"/notifications/{notification['_id']}", headers=auth_headers(employee_user))
    assert response.status_code == 404

    response = await client.delete(f"/notifications/{ObjectId()}", headers=auth_headers(hr_user))
    assert response.status_code == 404


async def test_mark_all_read_and_clear_all(client, employee_user, hr_user):
    await _notify(employee_user)
    await _notify(employee_user)
    await _notify(hr_user)

    await client.patch("/notifications/mark-all-read", headers=auth_headers(employee_user))
    assert await db.notifications_collection.count_documents({"is_read": False}) == 1

    await client.delete("/notifications/clear-all", headers=auth_headers(employee_user))
    assert await db.notifications_collection.count_documents({}) == 1
