import logging
import re
from typing import Optional
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError, DuplicateKeyError
from fastapi import APIRouter, Depends, Query, Response, status, HTTPException

from db import employees_collection, departments_collection, designations_collection, users_collection
from exceptions import get_server_exception, NotFoundError
from models.employees import Employee
from models.users import User
from schemas.employee import CreateEmployee, EditEmployee, EmployeeStatus
from utils.app_utils import (get_current_user, ensure_role, hash_password, serialize_document, pagination, to_object_id, find_by_id,
                             duplicate_key_field, STAFF_ROLES)
from utils.date_utils import utc_now, start_of_day
from utils.employee_utils import generate_employee_code, get_employee_summary

logger = logging.getLogger(__name__)

router = APIRouter()

EMPLOYEE_NOT_FOUND = "Employee not found"
DATE_FIELDS = ("date_of_birth", "date_of_joining", "date_of_leaving")
EMPLOYEE_CODE_ATTEMPTS = 5


def _to_storage(data: dict) -> dict:
    # calendar dates are stored as midnight UTC datetimes
    for field in DATE_FIELDS:
        if data.get(field) is not None:
            data[field] = start_of_day(data[field])
    if data.get("email"):
        data["email"] = data["email"].lower()
    return data


async def _populate(employee: dict) -> dict:
    employee["department"] = await find_by_id(departments_collection, employee.get("department_id"), {"name": 1, "code": 1})
    employee["designation"] = await find_by_id(designations_collection, employee.get("designation_id"), {"title": 1})
    employee["manager"] = await get_employee_summary(employee.get("manager_id"))
    return serialize_document(employee)


async def _create_account(email: str, password: Optional[str], role: str, employee_id: str):
    if not password:
        raise HTTPException(status_code=400, detail="A password is required to create a user account")

    user_instance = User(email=email, password=hash_password(password), role=role, employee_id=employee_id)
    await users_collection.insert_one(user_instance.model_dump())


async def _insert_employee(profile: dict) -> dict:
    """
    Inserts a new employee under the next free employee code.
    A code taken by a concurrent create or an imported record moves on to the following number.
    """
    for attempt in range(EMPLOYEE_CODE_ATTEMPTS):
        document = Employee(employee_code=await generate_employee_code(offset=attempt), **profile).model_dump()
        try:
            result = await employees_collection.insert_one(document)
        except DuplicateKeyError as e:
            field = duplicate_key_field(e)
            if field is None:
                taken = await employees_collection.find_one({"email": document["email"]}, {"_id": 1})
                field = "email" if taken else "employee_code"
            if field != "employee_code":
                raise HTTPException(status_code=400, detail=f"Employee with this {field.replace('_', ' ')} already exists")
            logger.info("Employee code %s already taken", document["employee_code"])
            continue
        document["_id"] = result.inserted_id
        return document

    raise HTTPException(status_code=409, detail="Could not allocate an employee code, please retry")


@router.get("/")
async def list_employees(
    search: Optional[str] = Query(None, description="Search by first name, last name, email or employee code"),
    department: Optional[str] = Query(None, description="Department id"),
    status: Optional[EmployeeStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_and_type: tuple = Depends(get_current_user)
):
    """
    Retrieve a paginated list of employees, newest first.
    Returns:
        dict:
            - data (list): employees with department, designation and manager attached
            - pagination (dict): page, limit, total, total_pages
    """
    query = {}
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [
            {"first_name": pattern},
            {"last_name": pattern},
            {"email": pattern},
            {"employee_code": pattern},
        ]
    if department:
        query["department_id"] = department
    if status:
        query["status"] = status.value

    try:
        employees = await employees_collection.find(
            query, sort=[("created_at", DESCENDING)], skip=(page - 1) * limit, limit=limit
        ).to_list(length=limit)
        total = await employees_collection.count_documents(query)
        data = [await _populate(employee) for employee in employees]
    except PyMongoError as e:
        raise get_server_exception(e, "List employees")

    return {"data": data, "pagination": pagination(page, limit, total)}


@router.get("/stats")
async def get_employee_stats(user_and_type: tuple = Depends(get_current_user)):
    """Headcount (non-terminated), active and on-leave counts, and headcount per department."""
    try:
        total_employees = await employees_collection.count_documents({"status": {"$ne": "terminated"}})
        active_employees = await employees_collection.count_documents({"status": "active"})
        on_leave = await employees_collection.count_documents({"status": "on-leave"})

        pipeline = [
            {"$match": {"status": {"$ne": "terminated"}}},
            {"$group": {"_id": "$department_id", "count": {"$sum": 1}}},
        ]
        department_stats = []
        for group in await employees_collection.aggregate(pipeline).to_list(length=None):
            department = await find_by_id(departments_collection, group["_id"], {"name": 1})
            if department:
                department_stats.append({"_id": group["_id"], "name": department["name"], "count": group["count"]})
    except PyMongoError as e:
        raise get_server_exception(e, "Employee stats")

    return {
        "data": {
            "total_employees": total_employees,
            "active_employees": active_employees,
            "on_leave": on_leave,
            "department_stats": department_stats,
        }
    }


@router.get("/{employee_id}")
async def get_employee(employee_id: str, user_and_type: tuple = Depends(get_current_user)):
    try:
        employee = await employees_collection.find_one({"_id": to_object_id(employee_id)})
        if not employee:
            raise NotFoundError(EMPLOYEE_NOT_FOUND)
        return {"data": await _populate(employee)}
    except PyMongoError as e:
        raise get_server_exception(e, "Get employee")


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_employee(employee_request: CreateEmployee, response: Response,
                          user_and_type: tuple = Depends(get_current_user)):
    """
    Create an employee profile (HR/admin only).
    A terminated employee with the same email is reactivated instead of duplicated.
    With create_account set, a user account with the given role and password is
    created (or reactivated) and linked to the profile.
    Raises:
        HTTPException:
            - 403 if the caller is not HR or admin
            - 400 if a non-terminated employee already uses the email
            - 400 if create_account is set and a user account already uses the email
    """
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    email = employee_request.email.lower()
    account_fields = {"create_account", "password", "role"}
    profile = _to_storage(employee_request.model_dump(exclude=account_fields, exclude_none=True))

    try:
        existing_employee = await employees_collection.find_one({"email": email, "status": {"$ne": "terminated"}})
        if existing_employee:
            raise HTTPException(status_code=400, detail="An active employee with this email already exists")

        terminated_employee = await employees_collection.find_one({"email": email, "status": "terminated"})
        if terminated_employee:
            profile.update({"status": "active", "date_of_leaving": None, "updated_at": utc_now()})
            employee = await employees_collection.find_one_and_update(
                {"_id": terminated_employee["_id"]},
                {"$set": profile},
                return_document=ReturnDocument.AFTER,
            )
            employee_id = str(employee["_id"])

            if employee_request.create_account:
                existing_user = await users_collection.find_one({"email": email})
                if existing_user:
                    updates = {"is_active": True, "employee_id": employee_id, "updated_at": utc_now()}
                    if employee_request.password:
                        updates["password"] = hash_password(employee_request.password)
                    await users_collection.update_one({"_id": existing_user["_id"]}, {"$set": updates})
                else:
                    await _create_account(email, employee_request.password, employee_request.role, employee_id)

            logger.info("Reactivated employee %s", employee_id)
            response.status_code = status.HTTP_200_OK
            return {"message": "Previously terminated employee has been reactivated", "data": await _populate(employee)}

        if employee_request.create_account:
            if await users_collection.find_one({"email": email}):
                raise HTTPException(status_code=400, detail="A user account with this email already exists")
            if not employee_request.password:
                raise HTTPException(status_code=400, detail="A password is required to create a user account")

        document = await _insert_employee(profile)

        user_created = False
        warning = None
        if employee_request.create_account:
            try:
                await _create_account(email, employee_request.password, employee_request.role, str(document["_id"]))
                user_created = True
            except DuplicateKeyError:
                warning = "Employee created but user account could not be created"
                logger.warning("User account for %s could not be created", email)

    except PyMongoError as e:
        raise get_server_exception(e, "Create employee")

    logger.info("Created employee %s (%s)", document["employee_code"], document["_id"])
    data = {"message": "Employee created successfully", "data": await _populate(document), "user_created": user_created}
    if warning:
        data["warning"] = warning
    return data


@router.patch("/{employee_id}")
async def update_employee(employee_id: str, employee_request: EditEmployee,
                          user_and_type: tuple = Depends(get_current_user)):
    """Update an employee profile (HR/admin only). Only the fields sent are changed."""
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    updates = _to_storage(employee_request.model_dump(exclude_unset=True))
    updates["updated_at"] = utc_now()

    try:
        employee = await employees_collection.find_one_and_update(
            {"_id": to_object_id(employee_id)},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        if not employee:
            raise NotFoundError(EMPLOYEE_NOT_FOUND)
        return {"message": "Employee updated successfully", "data": await _populate(employee)}
    except PyMongoError as e:
        raise get_server_exception(e, "Update employee")


@router.delete("/{employee_id}")
async def delete_employee(employee_id: str, user_and_type: tuple = Depends(get_current_user)):
    """
    Terminate an employee (admin only). The profile is kept with status "terminated"
    and the linked user account is deactivated.
    """
    _, user_type = user_and_type
    ensure_role(user_type, "admin")

    now = utc_now()
    try:
        employee = await employees_collection.find_one_and_update(
            {"_id": to_object_id(employee_id)},
            {"$set": {"status": "terminated", "date_of_leaving": now, "updated_at": now}},
        )
        if not employee:
            raise NotFoundError(EMPLOYEE_NOT_FOUND)

        await users_collection.update_one(
            {"employee_id": str(employee["_id"])},
            {"$set": {"is_active": False, "refresh_token": None, "updated_at": now}},
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Delete employee")

    logger.info("Terminated employee %s", employee_id)
    return {"message": "Employee deleted successfully"}
