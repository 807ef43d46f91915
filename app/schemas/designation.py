from typing import Optional
from pydantic import BaseModel, Field


class DesignationCreate(BaseModel):
    title: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    description: Optional[str] = None
    department_id: Optional[str] = None
    level: int = Field(1, ge=1, le=10)
    is_active: bool = True


class DesignationEdit(BaseModel):
    title: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    department_id: Optional[str] = None
    level: Optional[int] = Field(None, ge=1, le=10)
    is_active: Optional[bool] = None
