from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class EmployeeBase(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    employee_number: Optional[str] = Field(default=None, max_length=10)
    position: str = Field(min_length=1, max_length=200)
    department: str = Field(min_length=1, max_length=200)
    hourly_rate: Decimal = Field(default=Decimal("0"), ge=0)
    standard_hours_per_day: Decimal = Field(default=Decimal("8"), ge=1, le=24)
    hire_date: Optional[date] = None
    role: Literal["admin", "manager", "employee"] = "employee"


class EmployeeCreate(EmployeeBase):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class EmployeeUpdate(EmployeeBase):
    email: EmailStr
    is_active: bool = False
    # Blank keeps the current password
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)
