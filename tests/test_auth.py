import db
from conftest import PASSWORD, insert_user, auth_headers


async def _login(client, email, password=PASSWORD):
    return await client.post("/auth/login", data={"username": email, "password": password})


async def test_login_issues_tokens(client, employee_user):
    response = await _login(client, "grace@example.com")

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert response.cookies.get("refresh_token")

    stored = await db.users_collection.find_one({"_id": employee_user["_id"]})
    assert stored["last_login"] is not None
    assert stored["refresh_token"] == response.cookies.get("refresh_token")


async def test_login_with_wrong_password(client, employee_user):
    response = await _login(client, "grace@example.com", "wrong-password")

    assert response.status_code == 401


async def test_deactivated_account_cannot_log_in(client):
    await insert_user("gone@example.com", is_active=False)

    response = await _login(client, "gone@example.com")

    assert response.status_code == 401
    assert response.json()["detail"] == "Your account has been deactivated"


async def test_deactivated_account_token_is_rejected(client):
    user = await insert_user("gone@example.com", is_active=False)

    response = await client.get("/auth/me", headers=auth_headers(user))

    assert response.status_code == 401


async def test_requests_without_token_are_rejected(client):
    response = await client.get("/attendance/today")

    assert response.status_code == 401


async def test_me_includes_employee_summary(client, employee_user):
    response = await client.get("/auth/me", headers=auth_headers(employee_user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["email"] == "grace@example.com"
    assert data["role"] == "employee"
    assert data["employee"]["last_name"] == "Hopper"
    assert "password" not in data


async def test_refresh_rotates_the_cookie(client, employee_user):
    login = await _login(client, "grace@example.com")
    first_refresh = login.cookies.get("refresh_token")
    client.cookies.clear()
    client.cookies.set("refresh_token", first_refresh)

    response = await client.post("/auth/refresh")

    assert response.status_code == 200
    assert response.json()["access_token"]
    second_refresh = response.cookies.get("refresh_token")
    assert second_refresh and second_refresh != first_refresh

    client.cookies.clear()
    client.cookies.set("refresh_token", first_refresh)
    response = await client.post("/auth/refresh")
    assert response.status_code == 401


async def test_refresh_without_cookie(client):
    response = await client.post("/auth/refresh")

    assert response.status_code == 401


async def test_logout_revokes_refresh_token(client, employee_user):
    login = await _login(client, "grace@example.com")
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    response = await client.post("/auth/logout", headers=headers)

    assert response.status_code == 200
    stored = await db.users_collection.find_one({"_id": employee_user["_id"]})
    assert stored["refresh_token"] is None


async def test_change_password(client, employee_user):
    response = await client.patch(
        "/auth/change-password",
        json={"current_password": "not-it", "new_password": "newsecret"},
        headers=auth_headers(employee_user),
    )
    assert response.status_code == 400

    response = await client.patch(
        "/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "newsecret"},
        headers=auth_headers(employee_user),
    )
    assert response.status_code == 200

    assert (await _login(client, "grace@example.com", "newsecret")).status_code == 200
    assert (await _login(client, "grace@example.com")).status_code == 401


async def test_password_reset_flow(client, employee_user):
    response = await client.post("/auth/forgot-password", json={"email": "grace@example.com"})
    assert response.status_code == 200
    reset_token = response.json()["reset_token"]

    response = await client.post("/auth/reset-password", json={
        "email": "grace@example.com", "reset_token": reset_token, "new_password": "brandnew",
    })
    assert response.status_code == 200
    assert (await _login(client, "grace@example.com", "brandnew")).status_code == 200

    response = await client.post("/auth/reset-password", json={
        "email": "grace@example.com", "reset_token": reset_token, "new_password": "again123",
    })
    assert response.status_code == 400


async def test_forgot_password_for_unknown_email(client):
    response = await client.post("/auth/forgot-password", json={"email": "ghost@example.com"})

    assert response.status_code == 200
    assert "reset_token" not in response.json()


async def test_reset_password_too_short(client, employee_user):
    response = await client.post("/auth/reset-password", json={
        "email": "grace@example.com", "reset_token": "whatever", "new_password": "123",
    })

    assert response.status_code == 422
