from enum import Enum
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, Dict
from datetime import date


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"
    ON_LEAVE = "on-leave"


class AddressInput(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class SalaryInput(BaseModel):
    basic: float = 0
    allowances: float = 0
    deductions: float = 0
    currency: str = "USD"


class EmergencyContactInput(BaseModel):
    name: Optional[str] = None
    relationship: Optional[str] = None
    phone: Optional[str] = None


class CreateEmployee(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, pattern="^(male|female|other)$")
    address: Optional[AddressInput] = None
    department_id: Optional[str] = None
    designation_id: Optional[str] = None
    manager_id: Optional[str] = None
    employment_type: str = Field("full-time", pattern="^(full-time|part-time|contract|intern)$")
    date_of_joining: date
    salary: Optional[SalaryInput] = None
    emergency_contact: Optional[EmergencyContactInput] = None
    leave_balance: Optional[Dict[str, float]] = None
    create_account: bool = False
    password: Optional[str] = Field(None, min_length=6)
    role: str = Field("employee", pattern="^(admin|hr|employee)$")


class EditEmployee(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, pattern="^(male|female|other)$")
    address: Optional[AddressInput] = None
    department_id: Optional[str] = None
    designation_id: Optional[str] = None
    manager_id: Optional[str] = None
    employment_type: Optional[str] = Field(None, pattern="^(full-time|part-time|contract|intern)$")
    date_of_joining: Optional[date] = None
    date_of_leaving: Optional[date] = None
    salary: Optional[SalaryInput] = None
    status: Optional[EmployeeStatus] = None
    emergency_contact: Optional[EmergencyContactInput] = None
    leave_balance: Optional[Dict[str, float]] = None
