from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from config import settings


client = AsyncIOMotorClient(settings.MONGODB_URL)
db = client[settings.DATABASE_NAME]


users_collection = db.users
employees_collection = db.employees
departments_collection = db.departments
designations_collection = db.designations
attendance_collection = db.attendance
leaves_collection = db.leaves
notifications_collection = db.notifications


async def ensure_indexes():
    """
    Creates the indexes the application relies on. Safe to call repeatedly.
    The (employee_id, date) unique index is the only guard against a double clock-in.
    """
    await users_collection.create_index("email", unique=True)

    await employees_collection.create_index("email", unique=True)
    await employees_collection.create_index("employee_code", unique=True)
    await employees_collection.create_index("department_id")
    await employees_collection.create_index("status")
    await employees_collection.create_index("manager_id")

    await departments_collection.create_index("name", unique=True)
    await departments_collection.create_index("code", unique=True)

    await designations_collection.create_index("title", unique=True)
    await designations_collection.create_index("code", unique=True)
    await designations_collection.create_index("department_id")

    await attendance_collection.create_index(
        [("employee_id", ASCENDING), ("date", ASCENDING)], unique=True
    )
    await attendance_collection.create_index("date")

    await leaves_collection.create_index("employee_id")
    await leaves_collection.create_index("status")
    await leaves_collection.create_index([("start_date", ASCENDING), ("end_date", ASCENDING)])

    await notifications_collection.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    await notifications_collection.create_index([("user_id", ASCENDING), ("is_read", ASCENDING)])
