from typing import Optional
from bson import ObjectId
from db import employees_collection
from exceptions import UnlinkedAccountError

EMPLOYEE_SUMMARY_FIELDS = {"first_name": 1, "last_name": 1, "email": 1, "employee_code": 1, "department_id": 1}


def pick_employee_id(user: dict, explicit_employee_id: Optional[str] = None) -> Optional[str]:
    """
    Picks the employee id a request acts on without touching storage.
    An explicit target wins, then the employee linked to the user account.
    The link may be a bare id or an already resolved employee document.
    """
    if explicit_employee_id:
        return str(explicit_employee_id)

    linked = user.get("employee_id") if user else None
    if isinstance(linked, dict):
        linked = linked.get("_id")
    if linked:
        return str(linked)
    return None


async def lookup_employee_id(user: dict, explicit_employee_id: Optional[str] = None) -> Optional[str]:
    employee_id = pick_employee_id(user, explicit_employee_id)
    if employee_id is None and user and user.get("email"):
        employee = await employees_collection.find_one({"email": user["email"].lower()}, {"_id": 1})
        if employee:
            employee_id = str(employee["_id"])
    return employee_id


async def resolve_employee_id(user: dict, explicit_employee_id: Optional[str] = None,
                              missing_error=UnlinkedAccountError) -> str:
    """
    Resolution order: explicit target, linked employee, employee with the user's email.
    Raises missing_error when the account has no employee profile.
    """
    employee_id = await lookup_employee_id(user, explicit_employee_id)
    if employee_id is None:
        raise missing_error()
    return employee_id


async def scoped_employee_id(user: dict, user_type: str, requested_employee_id: Optional[str] = None) -> Optional[str]:
    """
    Employee filter for history listings. Employees only ever see their own records,
    HR and admins see everything unless they ask for one employee.
    """
    if user_type == "employee":
        return await resolve_employee_id(user)
    return requested_employee_id or None


async def generate_employee_code(offset: int = 0) -> str:
    count = await employees_collection.count_documents({})
    return f"EMP-{count + 1 + offset:04d}"


async def get_employee_summary(employee_id: Optional[str]) -> Optional[dict]:
    if not employee_id or not ObjectId.is_valid(str(employee_id)):
        return None
    employee = await employees_collection.find_one({"_id": ObjectId(str(employee_id))}, EMPLOYEE_SUMMARY_FIELDS)
    if not employee:
        return None
    employee["_id"] = str(employee["_id"])
    return employee


def full_name(employee: Optional[dict], default: str = "Unknown") -> str:
    if not employee:
        return default
    return f"{employee.get('first_name', '')} {employee.get('last_name', '')}".strip() or default
