import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status, HTTPException
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError, DuplicateKeyError

from db import designations_collection, departments_collection, employees_collection
from exceptions import get_server_exception, NotFoundError
from models.designations import Designation
from schemas.designation import DesignationCreate, DesignationEdit
from utils.app_utils import get_current_user, ensure_role, serialize_document, to_object_id, find_by_id, STAFF_ROLES
from utils.date_utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

DESIGNATION_NOT_FOUND = "Designation not found"
DUPLICATE_DESIGNATION = "Designation title or code already exists"


def _holders(designation_id) -> dict:
    return {"designation_id": str(designation_id), "status": {"$ne": "terminated"}}


async def _with_department(designation: dict) -> dict:
    designation["department"] = await find_by_id(
        departments_collection, designation.get("department_id"), {"name": 1, "code": 1}
    )
    return designation


@router.get("/")
async def list_designations(
    department: Optional[str] = Query(None, description="Department id"),
    is_active: Optional[bool] = Query(None),
    user_and_type: tuple = Depends(get_current_user)
):
    """
    Retrieve designations sorted by level, then title, each with its department
    and the number of non-terminated employees holding it.
    """
    query = {}
    if department:
        query["department_id"] = department
    if is_active is not None:
        query["is_active"] = is_active

    try:
        designations = await designations_collection.find(
            query, sort=[("level", ASCENDING), ("title", ASCENDING)]
        ).to_list(length=None)
        for designation in designations:
            await _with_department(designation)
            designation["employee_count"] = await employees_collection.count_documents(_holders(designation["_id"]))
    except PyMongoError as e:
        raise get_server_exception(e, "List designations")

    return {"count": len(designations), "data": serialize_document(designations)}


@router.get("/{designation_id}")
async def get_designation(designation_id: str, user_and_type: tuple = Depends(get_current_user)):
    try:
        designation = await designations_collection.find_one({"_id": to_object_id(designation_id)})
        if not designation:
            raise NotFoundError(DESIGNATION_NOT_FOUND)
        await _with_department(designation)
    except PyMongoError as e:
        raise get_server_exception(e, "Get designation")

    return {"data": serialize_document(designation)}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_designation(designation_request: DesignationCreate, user_and_type: tuple = Depends(get_current_user)):
    """
    Create a designation (HR/admin only). The code is stored uppercase.
    Raises:
        HTTPException: 400 if the title or code is already taken
    """
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    designation_data = designation_request.model_dump()
    designation_data["code"] = designation_data["code"].strip().upper()
    document = Designation(**designation_data).model_dump()

    try:
        result = await designations_collection.insert_one(document)
        document["_id"] = result.inserted_id
        await _with_department(document)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail=DUPLICATE_DESIGNATION)
    except PyMongoError as e:
        raise get_server_exception(e, "Create designation")

    logger.info("Created designation %s", document["code"])
    return {"message": "Designation created successfully", "data": serialize_document(document)}


@router.patch("/{designation_id}")
async def update_designation(designation_id: str, designation_request: DesignationEdit,
                             user_and_type: tuple = Depends(get_current_user)):
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    updates = designation_request.model_dump(exclude_unset=True)
    if updates.get("code"):
        updates["code"] = updates["code"].strip().upper()
    updates["updated_at"] = utc_now()

    try:
        designation = await designations_collection.find_one_and_update(
            {"_id": to_object_id(designation_id)},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        if not designation:
            raise NotFoundError(DESIGNATION_NOT_FOUND)
        await _with_department(designation)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail=DUPLICATE_DESIGNATION)
    except PyMongoError as e:
        raise get_server_exception(e, "Update designation")

    return {"message": "Designation updated successfully", "data": serialize_document(designation)}


@router.delete("/{designation_id}")
async def delete_designation(designation_id: str, user_and_type: tuple = Depends(get_current_user)):
    """
    Delete a designation (admin only). Refused while non-terminated employees hold it.
    """
    _, user_type = user_and_type
    ensure_role(user_type, "admin")

    try:
        designation = await designations_collection.find_one({"_id": to_object_id(designation_id)})
        if not designation:
            raise NotFoundError(DESIGNATION_NOT_FOUND)

        holder_count = await employees_collection.count_documents(_holders(designation["_id"]))
        if holder_count > 0:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot delete designation. {holder_count} employee(s) have this designation."
            )

        await designations_collection.delete_one({"_id": designation["_id"]})
    except PyMongoError as e:
        raise get_server_exception(e, "Delete designation")

    logger.info("Deleted designation %s", designation.get("code"))
    return {"message": "Designation deleted successfully"}
