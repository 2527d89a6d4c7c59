"""
Time entry service.
All writes validate the interval, reject overlaps and refuse to touch approved entries.
"""
import uuid
from datetime import date, time, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, List

from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..logging import get_logger
from ..models.models import TimeEntry, User
from .audit import create_audit_log, compute_diff, snapshot
from .time_rules import TimeRuleError, validate_interval, has_overlap, entry_hours, time_plus_hours


logger = get_logger(__name__)

ENTRY_FIELDS = ("employee_id", "project_id", "entry_date", "start_time", "end_time", "description", "is_approved")

LOCKED_MESSAGE = "Entry is approved and locked"
OVERLAP_MESSAGE = "Entry overlaps another entry of this employee on that day"


class TimeEntryError(ValueError):
    pass


def _check(db: Session, employee_id, entry_date: date, start_time: time, end_time: time, exclude_entry_id=None) -> None:
    try:
        validate_interval(start_time, end_time)
    except TimeRuleError as e:
        raise TimeEntryError(str(e))
    if has_overlap(db, employee_id, entry_date, start_time, end_time, exclude_entry_id=exclude_entry_id):
        raise TimeEntryError(OVERLAP_MESSAGE)


def get_entries_for_employee(db: Session, employee_id: uuid.UUID, date_from: date, date_to: date) -> List[TimeEntry]:
    return (
        db.query(TimeEntry)
        .options(joinedload(TimeEntry.project))
        .filter(
            TimeEntry.employee_id == employee_id,
            TimeEntry.entry_date >= date_from,
            TimeEntry.entry_date <= date_to,
        )
        .order_by(TimeEntry.entry_date.desc(), TimeEntry.start_time.desc())
        .all()
    )


def get_entries_for_project(db: Session, project_id: uuid.UUID) -> List[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.project_id == project_id)
        .order_by(TimeEntry.entry_date.desc(), TimeEntry.start_time.desc())
        .all()
    )


def get_total_hours(db: Session, employee_id: uuid.UUID, date_from: date, date_to: date) -> Decimal:
    entries = get_entries_for_employee(db, employee_id, date_from, date_to)
    return sum((e.total_hours for e in entries), Decimal("0"))


def create_entry(
    db: Session,
    employee_id: uuid.UUID,
    entry_date: date,
    start_time: time,
    end_time: time,
    project_id: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
    actor: Optional[User] = None,
) -> TimeEntry:
    _check(db, employee_id, entry_date, start_time, end_time)
    entry = TimeEntry(
        employee_id=employee_id,
        project_id=project_id,
        entry_date=entry_date,
        start_time=start_time,
        end_time=end_time,
        description=description,
        created_by=actor.id if actor else None,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    db.flush()
    create_audit_log(db, "time_entry", entry.id, "CREATE", actor=actor, changes_json={"after": snapshot(entry, ENTRY_FIELDS)})
    db.commit()
    db.refresh(entry)
    logger.info("time_entry_created", entry_id=str(entry.id), employee_id=str(employee_id), date=entry_date.isoformat())
    return entry


def update_entry(db: Session, entry: TimeEntry, actor: Optional[User] = None, **changes) -> TimeEntry:
    """Apply changes (entry_date, start_time, end_time, project_id, description) to an unapproved entry."""
    if entry.is_approved:
        raise TimeEntryError(LOCKED_MESSAGE)
    before = snapshot(entry, ENTRY_FIELDS)
    entry_date = changes.get("entry_date", entry.entry_date)
    start_time = changes.get("start_time", entry.start_time)
    end_time = changes.get("end_time", entry.end_time)
    _check(db, entry.employee_id, entry_date, start_time, end_time, exclude_entry_id=entry.id)

    for key in ("entry_date", "start_time", "end_time", "project_id", "description"):
        if key in changes:
            setattr(entry, key, changes[key])
    diff = compute_diff(before, snapshot(entry, ENTRY_FIELDS))
    if diff:
        create_audit_log(db, "time_entry", entry.id, "UPDATE", actor=actor, changes_json=diff)
    db.commit()
    db.refresh(entry)
    logger.info("time_entry_updated", entry_id=str(entry.id), fields=sorted(diff.keys()))
    return entry


def delete_entry(db: Session, entry: TimeEntry, actor: Optional[User] = None) -> None:
    if entry.is_approved:
        raise TimeEntryError(LOCKED_MESSAGE)
    create_audit_log(db, "time_entry", entry.id, "DELETE", actor=actor, changes_json={"before": snapshot(entry, ENTRY_FIELDS)})
    entry_id = entry.id
    db.delete(entry)
    db.commit()
    logger.info("time_entry_deleted", entry_id=str(entry_id))


def get_unapproved_entries(db: Session) -> List[TimeEntry]:
    return (
        db.query(TimeEntry)
        .options(joinedload(TimeEntry.employee), joinedload(TimeEntry.project))
        .filter(TimeEntry.is_approved == False)  # noqa: E712
        .order_by(TimeEntry.entry_date.asc(), TimeEntry.start_time.asc())
        .all()
    )


def approve_entry(db: Session, entry: TimeEntry, approver: User) -> TimeEntry:
    if entry.is_approved:
        return entry
    entry.is_approved = True
    entry.approved_at = datetime.now(timezone.utc)
    entry.approved_by = approver.id
    create_audit_log(db, "time_entry", entry.id, "APPROVE", actor=approver)
    db.commit()
    db.refresh(entry)
    logger.info("time_entry_approved", entry_id=str(entry.id), approver_id=str(approver.id))
    return entry


def reject_entry(db: Session, entry: TimeEntry, approver: User) -> TimeEntry:
    """Clear approval; the entry becomes editable again."""
    entry.is_approved = False
    entry.approved_at = None
    entry.approved_by = None
    create_audit_log(db, "time_entry", entry.id, "REJECT", actor=approver)
    db.commit()
    db.refresh(entry)
    logger.info("time_entry_rejected", entry_id=str(entry.id), approver_id=str(approver.id))
    return entry


def upsert_daily_hours(
    db: Session,
    employee_id: uuid.UUID,
    entry_date: date,
    hours,
    project_id: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
    actor: Optional[User] = None,
) -> Optional[TimeEntry]:
    """
    Represent a day's hours as a single entry starting at DAILY_HOURS_START.
    hours <= 0 removes the day's entries; extra entries for the day are removed.
    Returns the remaining entry, or None when the day was cleared.
    """
    try:
        hours = Decimal(str(hours))
    except (InvalidOperation, ValueError):
        raise TimeEntryError("Invalid hours")

    existing = (
        db.query(TimeEntry)
        .filter(TimeEntry.employee_id == employee_id, TimeEntry.entry_date == entry_date)
        .order_by(TimeEntry.created_at.asc(), TimeEntry.start_time.asc())
        .all()
    )
    if any(e.is_approved for e in existing):
        raise TimeEntryError(LOCKED_MESSAGE)

    if hours <= 0:
        for e in existing:
            create_audit_log(db, "time_entry", e.id, "DELETE", actor=actor, changes_json={"before": snapshot(e, ENTRY_FIELDS)})
            db.delete(e)
        db.commit()
        logger.info("daily_hours_cleared", employee_id=str(employee_id), date=entry_date.isoformat(), removed=len(existing))
        return None

    start = settings.daily_hours_start
    try:
        end = time_plus_hours(start, hours)
    except TimeRuleError as e:
        raise TimeEntryError(str(e))

    entry = existing[0] if existing else None
    for dup in existing[1:]:
        create_audit_log(db, "time_entry", dup.id, "DELETE", actor=actor, changes_json={"before": snapshot(dup, ENTRY_FIELDS)})
        db.delete(dup)

    if entry is None:
        entry = TimeEntry(
            employee_id=employee_id,
            entry_date=entry_date,
            created_by=actor.id if actor else None,
            created_at=datetime.now(timezone.utc),
        )
        db.add(entry)
        action = "CREATE"
    else:
        action = "UPDATE"
    entry.start_time = start
    entry.end_time = end
    entry.project_id = project_id
    entry.description = description
    db.flush()
    create_audit_log(db, "time_entry", entry.id, action, actor=actor, changes_json={"after": snapshot(entry, ENTRY_FIELDS)})
    db.commit()
    db.refresh(entry)
    logger.info("daily_hours_set", employee_id=str(employee_id), date=entry_date.isoformat(), hours=str(entry_hours(start, end)))
    return entry
