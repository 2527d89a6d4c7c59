import uuid
from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class ProjectForm(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    status: Literal["planning", "active", "on_hold", "completed"] = "active"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    hours_budget: Optional[Decimal] = Field(default=None, ge=0)
    manager_id: Optional[uuid.UUID] = None
    is_active: bool = False
    employee_ids: List[uuid.UUID] = []

    @model_validator(mode="after")
    def _dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self
