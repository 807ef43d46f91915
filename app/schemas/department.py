from typing import Optional
from pydantic import BaseModel, Field


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Name of the department.")
    code: str = Field(..., min_length=1, description="Short unique code, stored uppercase.")
    description: Optional[str] = Field(None, description="A brief description of the department.")
    head_id: Optional[str] = Field(None, description="Employee id of the head of department.")
    parent_department_id: Optional[str] = Field(None, description="Id of the parent department.")
    is_active: bool = True


class DepartmentEdit(BaseModel):
    name: Optional[str] = Field(None, description="Name of the department.")
    code: Optional[str] = Field(None, description="Short unique code, stored uppercase.")
    description: Optional[str] = None
    head_id: Optional[str] = None
    parent_department_id: Optional[str] = None
    is_active: Optional[bool] = None
