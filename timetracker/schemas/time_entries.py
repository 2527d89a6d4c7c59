import uuid
from datetime import date, time
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _naive(value: time) -> time:
    # Stored times are wall-clock times without an offset
    if value.tzinfo is not None:
        raise ValueError("Time must not include a timezone offset")
    return value


NaiveTime = Annotated[time, AfterValidator(_naive)]


class _ApiRequest(BaseModel):
    # Calendar scripts post camelCase; snake_case is accepted as well
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AddEntryRequest(_ApiRequest):
    employee_id: uuid.UUID
    date: date
    start_time: NaiveTime
    end_time: NaiveTime
    project_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(default=None, max_length=1000)


class UpdateEntryRequest(_ApiRequest):
    id: uuid.UUID
    project_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(default=None, max_length=1000)
    # Optional rescheduling
    start_time: Optional[NaiveTime] = None
    end_time: Optional[NaiveTime] = None


class DeleteEntryRequest(_ApiRequest):
    id: uuid.UUID


class SetDayMarkerRequest(_ApiRequest):
    employee_id: uuid.UUID
    date: date
    type: Literal["vacation", "sick", "holiday", "other"]
    note: Optional[str] = Field(default=None, max_length=500)


class RemoveDayMarkerRequest(_ApiRequest):
    employee_id: uuid.UUID
    date: date


class DailyHoursRequest(_ApiRequest):
    employee_id: uuid.UUID
    date: date
    hours: Decimal = Field(ge=0, le=24)
    project_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(default=None, max_length=1000)


class TimeEntryForm(BaseModel):
    employee_id: uuid.UUID
    entry_date: date
    start_time: NaiveTime
    end_time: NaiveTime
    project_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(default=None, max_length=1000)
