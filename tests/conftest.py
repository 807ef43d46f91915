import os
import tempfile
from datetime import datetime

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("DATABASE_NAME", "hr_system_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret-key")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="hr-uploads-"))

import motor.motor_asyncio
from mongomock_motor import AsyncMongoMockClient

# every module below shares one in-memory client
motor.motor_asyncio.AsyncIOMotorClient = AsyncMongoMockClient

import pytest
from httpx import ASGITransport, AsyncClient

import db
from main import app
from models.employees import Employee
from models.users import User
from utils import date_utils, attendance_utils, leave_utils
from utils.app_utils import create_access_token, hash_password

COLLECTIONS = (
    db.users_collection,
    db.employees_collection,
    db.departments_collection,
    db.designations_collection,
    db.attendance_collection,
    db.leaves_collection,
    db.notifications_collection,
)

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
async def clean_db():
    for collection in COLLECTIONS:
        await collection.delete_many({})
    await db.ensure_indexes()
    yield


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def freeze_time(monkeypatch):
    """Pins utc_now() everywhere it is looked up. Returns a setter for moving the clock."""
    def _set(moment: datetime):
        for module in (date_utils, attendance_utils, leave_utils):
            monkeypatch.setattr(module, "utc_now", lambda: moment)
        return moment

    return _set


async def insert_employee(**overrides) -> dict:
    count = await db.employees_collection.count_documents({})
    fields = {
        "employee_code": f"EMP-{count + 1:04d}",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": f"employee{count + 1}@example.com",
        "date_of_joining": datetime(2023, 1, 2),
    }
    fields.update(overrides)
    document = Employee(**fields).model_dump()
    result = await db.employees_collection.insert_one(document)
    document["_id"] = result.inserted_id
    return document


async def insert_user(email: str, role: str = "employee", employee_id=None, **overrides) -> dict:
    fields = {
        "email": email,
        "password": hash_password(PASSWORD),
        "role": role,
        "employee_id": str(employee_id) if employee_id else None,
    }
    fields.update(overrides)
    document = User(**fields).model_dump()
    result = await db.users_collection.insert_one(document)
    document["_id"] = result.inserted_id
    return document


def auth_headers(user: dict) -> dict:
    token = create_access_token(payload={"sub": user["email"]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def employee():
    return await insert_employee(first_name="Grace", last_name="Hopper", email="grace@example.com")


@pytest.fixture
async def employee_user(employee):
    return await insert_user("grace@example.com", role="employee", employee_id=employee["_id"])


@pytest.fixture
async def hr_employee():
    return await insert_employee(first_name="Hedy", last_name="Lamarr", email="hedy@example.com")


@pytest.fixture
async def hr_user(hr_employee):
    return await insert_user("hedy@example.com", role="hr", employee_id=hr_employee["_id"])


@pytest.fixture
async def admin_user():
    return await insert_user("admin@example.com", role="admin")


@pytest.fixture
async def unlinked_user():
    return await insert_user("nobody@example.com", role="employee")
