from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from utils.date_utils import utc_now


def default_leave_balance() -> dict:
    # maternity and paternity carry no counter, approvals of those types deduct nothing
    return {"annual": 20, "sick": 10, "personal": 5, "unpaid": 0}


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class Salary(BaseModel):
    basic: float = 0
    allowances: float = 0
    deductions: float = 0
    currency: str = "USD"


class EmergencyContact(BaseModel):
    name: Optional[str] = None
    relationship: Optional[str] = None
    phone: Optional[str] = None


class Employee(BaseModel):
    employee_code: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    avatar: Optional[str] = None
    address: Address = Field(default_factory=Address)
    department_id: Optional[str] = None
    designation_id: Optional[str] = None
    manager_id: Optional[str] = None
    employment_type: str = "full-time"
    date_of_joining: datetime
    date_of_leaving: Optional[datetime] = None
    salary: Salary = Field(default_factory=Salary)
    status: str = "active" # or inactive, terminated, on-leave
    emergency_contact: EmergencyContact = Field(default_factory=EmergencyContact)
    leave_balance: dict = Field(default_factory=default_leave_balance)
    documents: List[dict] = Field(default_factory=list)  # [{"id": str, "name": str, "type": str, "url": str, "uploaded_at": datetime}]
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
