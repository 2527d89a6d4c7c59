"""
Audit logging service.
Append-only log of changes to time entries, day markers, projects and employees.
"""
from datetime import datetime, date, time
from decimal import Decimal
from typing import Optional, Dict, Any
import uuid

from sqlalchemy.orm import Session

from ..models.models import AuditLog, User


def _plain(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    return value


def snapshot(obj: Any, fields: tuple) -> Dict:
    """JSON-safe dict of the given attributes"""
    return {f: _plain(getattr(obj, f, None)) for f in fields}


def create_audit_log(
    db: Session,
    entity_type: str,
    entity_id: uuid.UUID,
    action: str,
    actor: Optional[User] = None,
    changes_json: Optional[Dict] = None,
) -> AuditLog:
    """
    Add an audit log entry to the session.

    Args:
        db: Database session
        entity_type: time_entry|day_marker|project|employee
        entity_id: Entity ID
        action: CREATE|UPDATE|DELETE|APPROVE|REJECT
        actor: User who performed the action
        changes_json: Before/after diff or the created values

    The caller commits together with the change itself.
    """
    audit_log = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor.id if actor else None,
        actor_role=actor.role if actor else "system",
        changes_json=changes_json,
        timestamp_utc=datetime.utcnow(),
    )
    db.add(audit_log)
    return audit_log


def get_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    limit: int = 100,
    offset: int = 0,
) -> list:
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    return query.order_by(AuditLog.timestamp_utc.desc()).limit(limit).offset(offset).all()


def compute_diff(before: Dict, after: Dict) -> Dict:
    """{field: {"before": old, "after": new}} for every field whose snapshot value changed."""
    return {
        key: {"before": before.get(key), "after": after.get(key)}
        for key in sorted(set(before) | set(after))
        if before.get(key) != after.get(key)
    }
