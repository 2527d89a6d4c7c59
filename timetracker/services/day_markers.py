import uuid
from datetime import date, datetime, timezone
from typing import Optional, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..logging import get_logger
from ..models.models import DayMarker, User
from .audit import create_audit_log, compute_diff, snapshot


logger = get_logger(__name__)

MARKER_FIELDS = ("employee_id", "date", "type", "note")


def get_marker(db: Session, employee_id: uuid.UUID, day: date) -> Optional[DayMarker]:
    return db.query(DayMarker).filter(DayMarker.employee_id == employee_id, DayMarker.date == day).first()


def get_markers(db: Session, employee_id: uuid.UUID, date_from: date, date_to: date) -> List[DayMarker]:
    return (
        db.query(DayMarker)
        .filter(DayMarker.employee_id == employee_id, DayMarker.date >= date_from, DayMarker.date <= date_to)
        .order_by(DayMarker.date.asc())
        .all()
    )


def set_day_marker(db: Session, employee_id: uuid.UUID, day: date, marker_type: str, note: Optional[str] = None, actor: Optional[User] = None) -> DayMarker:
    """Create the marker or update the existing one; there is at most one per employee and day."""
    marker = get_marker(db, employee_id, day)
    if marker is None:
        marker = DayMarker(
            employee_id=employee_id,
            date=day,
            type=marker_type,
            note=note,
            created_by=actor.id if actor else None,
            created_at=datetime.now(timezone.utc),
        )
        db.add(marker)
        try:
            db.flush()
        except IntegrityError:
            # Inserted concurrently; fall through to update
            db.rollback()
            marker = get_marker(db, employee_id, day)
        else:
            create_audit_log(db, "day_marker", marker.id, "CREATE", actor=actor, changes_json={"after": snapshot(marker, MARKER_FIELDS)})
            db.commit()
            db.refresh(marker)
            logger.info("day_marker_set", employee_id=str(employee_id), date=day.isoformat(), type=marker_type)
            return marker

    before = snapshot(marker, MARKER_FIELDS)
    marker.type = marker_type
    marker.note = note
    diff = compute_diff(before, snapshot(marker, MARKER_FIELDS))
    if diff:
        create_audit_log(db, "day_marker", marker.id, "UPDATE", actor=actor, changes_json=diff)
    db.commit()
    db.refresh(marker)
    logger.info("day_marker_set", employee_id=str(employee_id), date=day.isoformat(), type=marker_type)
    return marker


def remove_day_marker(db: Session, employee_id: uuid.UUID, day: date, actor: Optional[User] = None) -> bool:
    marker = get_marker(db, employee_id, day)
    if marker is None:
        return False
    create_audit_log(db, "day_marker", marker.id, "DELETE", actor=actor, changes_json={"before": snapshot(marker, MARKER_FIELDS)})
    db.delete(marker)
    db.commit()
    logger.info("day_marker_removed", employee_id=str(employee_id), date=day.isoformat())
    return True
