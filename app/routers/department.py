import logging
from fastapi import APIRouter, Depends, status, HTTPException
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError, DuplicateKeyError

from db import departments_collection, employees_collection, designations_collection
from exceptions import get_server_exception, NotFoundError
from models.departments import Department
from schemas.department import DepartmentCreate, DepartmentEdit
from utils.app_utils import get_current_user, ensure_role, serialize_document, to_object_id, find_by_id, STAFF_ROLES
from utils.date_utils import utc_now
from utils.employee_utils import get_employee_summary

logger = logging.getLogger(__name__)

router = APIRouter()

DEPARTMENT_NOT_FOUND = "Department not found"
DUPLICATE_DEPARTMENT = "Department name or code already exists"


def _active_members(department_id) -> dict:
    return {"department_id": str(department_id), "status": {"$ne": "terminated"}}


@router.get("/")
async def list_departments(user_and_type: tuple = Depends(get_current_user)):
    """
    Retrieve all departments sorted by name.
    Each department carries its head of department and the number of non-terminated employees.
    """
    try:
        departments = await departments_collection.find({}, sort=[("name", ASCENDING)]).to_list(length=None)
        for department in departments:
            department["head"] = await get_employee_summary(department.get("head_id"))
            department["employee_count"] = await employees_collection.count_documents(_active_members(department["_id"]))
    except PyMongoError as e:
        raise get_server_exception(e, "List departments")

    return {"data": serialize_document(departments)}


@router.get("/{department_id}")
async def get_department(department_id: str, user_and_type: tuple = Depends(get_current_user)):
    """
    Retrieve one department with its head and its non-terminated employees.
    Raises:
        HTTPException: 404 if the department does not exist
    """
    try:
        department = await departments_collection.find_one({"_id": to_object_id(department_id)})
        if not department:
            raise NotFoundError(DEPARTMENT_NOT_FOUND)

        department["head"] = await get_employee_summary(department.get("head_id"))
        employees = await employees_collection.find(
            _active_members(department["_id"]),
            {"first_name": 1, "last_name": 1, "email": 1, "employee_code": 1, "designation_id": 1},
        ).to_list(length=None)
        for employee in employees:
            employee["designation"] = await find_by_id(designations_collection, employee.get("designation_id"), {"title": 1})
        department["employees"] = employees
    except PyMongoError as e:
        raise get_server_exception(e, "Get department")

    return {"data": serialize_document(department)}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_department(department_request: DepartmentCreate, user_and_type: tuple = Depends(get_current_user)):
    """
    Create a department (HR/admin only). The code is stored uppercase.
    Raises:
        HTTPException: 400 if the name or code is already taken
    """
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    department_data = department_request.model_dump()
    department_data["code"] = department_data["code"].strip().upper()
    department_instance = Department(**department_data)
    document = department_instance.model_dump()

    try:
        result = await departments_collection.insert_one(document)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail=DUPLICATE_DEPARTMENT)
    except PyMongoError as e:
        raise get_server_exception(e, "Create department")

    document["_id"] = result.inserted_id
    logger.info("Created department %s", document["code"])
    return {"message": "Department created successfully", "data": serialize_document(document)}


@router.patch("/{department_id}")
async def update_department(department_id: str, department_request: DepartmentEdit,
                            user_and_type: tuple = Depends(get_current_user)):
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    updates = department_request.model_dump(exclude_unset=True)
    if updates.get("code"):
        updates["code"] = updates["code"].strip().upper()
    updates["updated_at"] = utc_now()

    try:
        department = await departments_collection.find_one_and_update(
            {"_id": to_object_id(department_id)},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail=DUPLICATE_DEPARTMENT)
    except PyMongoError as e:
        raise get_server_exception(e, "Update department")

    if not department:
        raise NotFoundError(DEPARTMENT_NOT_FOUND)
    return {"message": "Department updated successfully", "data": serialize_document(department)}


@router.delete("/{department_id}")
async def delete_department(department_id: str, user_and_type: tuple = Depends(get_current_user)):
    """
    Delete a department (admin only).
    Raises:
        HTTPException:
            - 404 if the department does not exist
            - 400 while non-terminated employees still belong to it
    """
    _, user_type = user_and_type
    ensure_role(user_type, "admin")

    try:
        department = await departments_collection.find_one({"_id": to_object_id(department_id)})
        if not department:
            raise NotFoundError(DEPARTMENT_NOT_FOUND)

        employee_count = await employees_collection.count_documents(_active_members(department["_id"]))
        if employee_count > 0:
            raise HTTPException(status_code=400, detail=f"Cannot delete department with {employee_count} active employees")

        await departments_collection.delete_one({"_id": department["_id"]})
    except PyMongoError as e:
        raise get_server_exception(e, "Delete department")

    logger.info("Deleted department %s", department.get("code"))
    return {"message": "Department deleted successfully"}
