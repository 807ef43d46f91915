import logging
from typing import Optional
from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, UploadFile
from pymongo.errors import PyMongoError

from db import employees_collection
from exceptions import get_server_exception, NotFoundError, ForbiddenError
from utils.app_utils import get_current_user, ensure_role, to_object_id, serialize_document, STAFF_ROLES
from utils.date_utils import utc_now
from utils.employee_utils import lookup_employee_id
from utils.upload_utils import save_upload, remove_upload, AVATAR_DIR, DOCUMENT_DIR

logger = logging.getLogger(__name__)

router = APIRouter()

EMPLOYEE_NOT_FOUND = "Employee not found"


async def _get_employee_or_404(employee_id: str) -> dict:
    employee = await employees_collection.find_one({"_id": to_object_id(employee_id)})
    if not employee:
        raise NotFoundError(EMPLOYEE_NOT_FOUND)
    return employee


async def _ensure_self_or_staff(user: dict, user_type: str, employee_id: str):
    if user_type in STAFF_ROLES:
        return
    if await lookup_employee_id(user) != employee_id:
        raise ForbiddenError()


@router.post("/avatar/{employee_id}")
async def upload_avatar(employee_id: str, avatar: UploadFile = File(...),
                        user_and_type: tuple = Depends(get_current_user)):
    """
    Upload a profile picture for an employee. Images only.
    Employees may only change their own picture. The previous picture is removed.
    Raises:
        HTTPException:
            - 400 if the file is empty, too large or not an image
            - 403 if an employee targets somebody else's profile
            - 404 if the employee does not exist
    """
    user, user_type = user_and_type
    await _ensure_self_or_staff(user, user_type, employee_id)

    try:
        employee = await _get_employee_or_404(employee_id)
        stored = await save_upload(avatar, AVATAR_DIR, "avatar")
        await employees_collection.update_one(
            {"_id": employee["_id"]},
            {"$set": {"avatar": stored["url"], "updated_at": utc_now()}}
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Upload avatar")

    remove_upload(employee.get("avatar"))
    logger.info("Avatar updated for employee %s", employee_id)
    return {"message": "Avatar uploaded successfully", "data": {"url": stored["url"], "filename": stored["filename"]}}


@router.delete("/avatar/{employee_id}")
async def delete_avatar(employee_id: str, user_and_type: tuple = Depends(get_current_user)):
    user, user_type = user_and_type
    await _ensure_self_or_staff(user, user_type, employee_id)

    try:
        employee = await _get_employee_or_404(employee_id)
        await employees_collection.update_one(
            {"_id": employee["_id"]},
            {"$set": {"avatar": None, "updated_at": utc_now()}}
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Delete avatar")

    remove_upload(employee.get("avatar"))
    return {"message": "Avatar deleted successfully"}


@router.post("/document/{employee_id}")
async def upload_document(
    employee_id: str,
    document: UploadFile = File(...),
    name: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    user_and_type: tuple = Depends(get_current_user)
):
    """
    Attach a document (image, PDF, DOC or DOCX) to an employee profile (HR/admin only).
    Returns the stored document entry including the id used to delete it.
    """
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    try:
        employee = await _get_employee_or_404(employee_id)
        stored = await save_upload(document, DOCUMENT_DIR, "document")
        document_entry = {
            "id": str(ObjectId()),
            "name": name or document.filename,
            "type": type or "other",
            "url": stored["url"],
            "uploaded_at": utc_now(),
        }
        await employees_collection.update_one(
            {"_id": employee["_id"]},
            {"$push": {"documents": document_entry}, "$set": {"updated_at": utc_now()}}
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Upload document")

    logger.info("Document %s attached to employee %s", document_entry["id"], employee_id)
    return {"message": "Document uploaded successfully", "data": serialize_document(document_entry)}


@router.delete("/document/{employee_id}/{document_id}")
async def delete_document(employee_id: str, document_id: str, user_and_type: tuple = Depends(get_current_user)):
    _, user_type = user_and_type
    ensure_role(user_type, *STAFF_ROLES)

    try:
        employee = await _get_employee_or_404(employee_id)
        document_entry = next(
            (entry for entry in employee.get("documents", []) if entry.get("id") == document_id), None
        )
        if document_entry is None:
            raise NotFoundError("Document not found")

        await employees_collection.update_one(
            {"_id": employee["_id"]},
            {"$pull": {"documents": {"id": document_id}}, "$set": {"updated_at": utc_now()}}
        )
    except PyMongoError as e:
        raise get_server_exception(e, "Delete document")

    remove_upload(document_entry.get("url"))
    return {"message": "Document deleted successfully"}
