"""
Time entry validation rules.
An entry must end after it starts and must not overlap another entry
of the same employee on the same date.
"""
import uuid
from datetime import date, time, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Union

from sqlalchemy.orm import Session

from ..models.models import TimeEntry


class TimeRuleError(ValueError):
    pass


def entry_hours(start: time, end: time) -> Decimal:
    """Decimal hours between two times of the same day, rounded to 2 places."""
    seconds = (end.hour * 3600 + end.minute * 60 + end.second) - (start.hour * 3600 + start.minute * 60 + start.second)
    return (Decimal(seconds) / Decimal(3600)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def validate_interval(start: time, end: time) -> None:
    if start is None or end is None:
        raise TimeRuleError("Start and end time are required")
    if end <= start:
        raise TimeRuleError("End time must be after start time")


def intervals_overlap(start1: time, end1: time, start2: time, end2: time) -> bool:
    """
    Two half-open intervals [start1, end1) and [start2, end2) overlap if
    start1 < end2 AND start2 < end1. Touching intervals do not overlap.
    """
    return start1 < end2 and start2 < end1


def find_overlapping_entries(
    db: Session,
    employee_id: uuid.UUID,
    date_val: date,
    start_time: time,
    end_time: time,
    exclude_entry_id: Optional[uuid.UUID] = None,
) -> List[TimeEntry]:
    query = db.query(TimeEntry).filter(
        TimeEntry.employee_id == employee_id,
        TimeEntry.entry_date == date_val,
    )
    if exclude_entry_id:
        query = query.filter(TimeEntry.id != exclude_entry_id)

    return [
        e for e in query.order_by(TimeEntry.start_time.asc()).all()
        if intervals_overlap(start_time, end_time, e.start_time, e.end_time)
    ]


def has_overlap(
    db: Session,
    employee_id: uuid.UUID,
    date_val: date,
    start_time: time,
    end_time: time,
    exclude_entry_id: Optional[uuid.UUID] = None,
) -> bool:
    return bool(find_overlapping_entries(db, employee_id, date_val, start_time, end_time, exclude_entry_id))


def parse_time(value: Union[str, time, None]) -> time:
    """Accepts HH:MM or HH:MM:SS"""
    if isinstance(value, time):
        return value
    if not value:
        raise TimeRuleError("Time is required")
    value = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise TimeRuleError(f"Invalid time: {value}")


def parse_date(value: Union[str, date, None]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise TimeRuleError("Date is required")
    value = str(value).strip()
    try:
        # Accept full ISO datetimes too ("2024-03-04T00:00:00")
        return datetime.fromisoformat(value).date() if "T" in value else date.fromisoformat(value)
    except ValueError:
        raise TimeRuleError(f"Invalid date: {value}")


def time_plus_hours(start: time, hours: Decimal) -> time:
    """start + hours within the same day; raises when the result passes midnight."""
    total = start.hour * 3600 + start.minute * 60 + start.second + int((Decimal(hours) * 3600).to_integral_value())
    if total >= 24 * 3600:
        raise TimeRuleError("Hours exceed the end of the day")
    return time(total // 3600, (total % 3600) // 60, total % 60)
