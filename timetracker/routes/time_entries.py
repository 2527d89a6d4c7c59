import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..auth.security import get_current_user, require_manager
from ..config import settings
from ..db import get_db
from ..models.models import User, Employee, Project, TimeEntry
from ..schemas.common import clean_form, error_messages
from ..schemas.time_entries import TimeEntryForm
from ..services import time_entries as entry_service
from ..services.calendar_grid import local_today
from ..services.time_rules import parse_date, TimeRuleError
from ..services.permissions import (
    is_manager_or_admin,
    employee_for_user,
    employees_by_name,
    can_manage_employee_entries,
)
from ..templating import render


router = APIRouter(prefix="/time-entries", tags=["time-entries"])

SAVE_FAILED_MESSAGE = "Entry could not be saved. Check the employee and project."


def _get_entry(db: Session, entry_id: uuid.UUID) -> TimeEntry:
    entry = (
        db.query(TimeEntry)
        .options(joinedload(TimeEntry.employee).joinedload(Employee.user), joinedload(TimeEntry.project))
        .filter(TimeEntry.id == entry_id)
        .first()
    )
    if not entry:
        raise HTTPException(status_code=404, detail="Entry not found")
    return entry


def _check_access(db: Session, user: User, employee_id: uuid.UUID) -> None:
    if not can_manage_employee_entries(db, user, employee_id):
        raise HTTPException(status_code=403, detail="Not allowed")


def _form_context(db: Session, user: User, **extra) -> dict:
    if is_manager_or_admin(user):
        employees = employees_by_name(db)
        projects = db.query(Project).filter(Project.is_active == True).order_by(Project.name.asc()).all()  # noqa: E712
    else:
        own = employee_for_user(db, user)
        employees = [own] if own else []
        projects = sorted(own.projects, key=lambda p: p.name) if own else []
    ctx = {"employees": employees, "projects": projects, "errors": {}, "error": None}
    ctx.update(extra)
    return ctx


def _parse_form(data: dict, user: User, db: Session):
    """Returns (TimeEntryForm, None) or (None, errors)"""
    if not is_manager_or_admin(user):
        own = employee_for_user(db, user)
        # Employees always book for themselves
        data["employee_id"] = str(own.id) if own else None
    try:
        payload = TimeEntryForm.model_validate(data)
    except ValidationError as e:
        return None, error_messages(e)
    errors = {}
    if db.get(Employee, payload.employee_id) is None:
        errors["employee_id"] = "Employee not found"
    if payload.project_id is not None and db.get(Project, payload.project_id) is None:
        errors["project_id"] = "Project not found"
    if errors:
        return None, errors
    return payload, None


@router.get("")
def list_entries(
    request: Request,
    employee_id: Optional[uuid.UUID] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    today = local_today()
    try:
        d_from = parse_date(date_from) if date_from else today - timedelta(days=30)
        d_to = parse_date(date_to) if date_to else today
    except TimeRuleError as e:
        raise HTTPException(status_code=400, detail=str(e))

    query = (
        db.query(TimeEntry)
        .options(joinedload(TimeEntry.employee).joinedload(Employee.user), joinedload(TimeEntry.project))
        .filter(TimeEntry.entry_date >= d_from, TimeEntry.entry_date <= d_to)
    )
    if is_manager_or_admin(user):
        if employee_id:
            query = query.filter(TimeEntry.employee_id == employee_id)
        employees = employees_by_name(db)
    else:
        own = employee_for_user(db, user)
        if own is None:
            return render(request, "time_entries.html", {"entries": [], "employees": None, "date_from": d_from, "date_to": d_to, "total_hours": 0})
        query = query.filter(TimeEntry.employee_id == own.id)
        employees = None
    entries = query.order_by(TimeEntry.entry_date.desc(), TimeEntry.start_time.desc()).all()
    return render(request, "time_entries.html", {
        "entries": entries,
        "employees": employees,
        "selected_employee_id": employee_id,
        "date_from": d_from,
        "date_to": d_to,
        "total_hours": sum(e.total_hours for e in entries),
    })


@router.get("/create")
def create_form(request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    own = employee_for_user(db, user)
    form = {
        "employee_id": str(own.id) if own else "",
        "entry_date": local_today().isoformat(),
        "start_time": settings.default_entry_start.strftime("%H:%M"),
        "end_time": settings.default_entry_end.strftime("%H:%M"),
    }
    return render(request, "time_entry_form.html", _form_context(db, user, form=form, entry=None))


@router.post("/create")
async def create_submit(request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    data = clean_form(await request.form())
    payload, errors = _parse_form(data, user, db)
    if errors:
        return render(request, "time_entry_form.html", _form_context(db, user, form=data, entry=None, errors=errors))
    _check_access(db, user, payload.employee_id)
    try:
        entry_service.create_entry(
            db,
            employee_id=payload.employee_id,
            entry_date=payload.entry_date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            project_id=payload.project_id,
            description=payload.description,
            actor=user,
        )
    except entry_service.TimeEntryError as e:
        return render(request, "time_entry_form.html", _form_context(db, user, form=data, entry=None, error=str(e)))
    except IntegrityError:
        db.rollback()
        return render(request, "time_entry_form.html", _form_context(db, user, form=data, entry=None, error=SAVE_FAILED_MESSAGE))
    return RedirectResponse("/time-entries", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/{entry_id}/edit")
def edit_form(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    entry = _get_entry(db, entry_id)
    _check_access(db, user, entry.employee_id)
    form = {
        "employee_id": str(entry.employee_id),
        "entry_date": entry.entry_date.isoformat(),
        "start_time": entry.start_time.strftime("%H:%M"),
        "end_time": entry.end_time.strftime("%H:%M"),
        "project_id": str(entry.project_id) if entry.project_id else "",
        "description": entry.description or "",
    }
    error = entry_service.LOCKED_MESSAGE if entry.is_approved else None
    return render(request, "time_entry_form.html", _form_context(db, user, form=form, entry=entry, error=error))


@router.post("/{entry_id}/edit")
async def edit_submit(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    entry = _get_entry(db, entry_id)
    _check_access(db, user, entry.employee_id)
    data = clean_form(await request.form())
    if entry.is_approved:
        return render(
            request,
            "time_entry_form.html",
            _form_context(db, user, form=data, entry=entry, error=entry_service.LOCKED_MESSAGE),
            status_code=400,
        )
    data["employee_id"] = str(entry.employee_id)
    payload, errors = _parse_form(data, user, db)
    if errors:
        return render(request, "time_entry_form.html", _form_context(db, user, form=data, entry=entry, errors=errors))
    try:
        entry_service.update_entry(
            db,
            entry,
            actor=user,
            entry_date=payload.entry_date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            project_id=payload.project_id,
            description=payload.description,
        )
    except entry_service.TimeEntryError as e:
        return render(request, "time_entry_form.html", _form_context(db, user, form=data, entry=entry, error=str(e)))
    except IntegrityError:
        db.rollback()
        return render(request, "time_entry_form.html", _form_context(db, user, form=data, entry=entry, error=SAVE_FAILED_MESSAGE))
    return RedirectResponse("/time-entries", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/{entry_id}/delete")
def delete_submit(entry_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    entry = _get_entry(db, entry_id)
    _check_access(db, user, entry.employee_id)
    try:
        entry_service.delete_entry(db, entry, actor=user)
    except entry_service.TimeEntryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return RedirectResponse("/time-entries", status_code=status.HTTP_303_SEE_OTHER)


def _back(request: Request, default: str = "/reports/approval") -> str:
    # Only follow local paths
    target = request.query_params.get("next") or default
    return target if target.startswith("/") and not target.startswith("//") else default


@router.post("/{entry_id}/approve")
def approve(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    entry = _get_entry(db, entry_id)
    entry_service.approve_entry(db, entry, user)
    return RedirectResponse(_back(request), status_code=status.HTTP_303_SEE_OTHER)


@router.post("/{entry_id}/reject")
def reject(entry_id: uuid.UUID, request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    entry = _get_entry(db, entry_id)
    entry_service.reject_entry(db, entry, user)
    return RedirectResponse(_back(request), status_code=status.HTTP_303_SEE_OTHER)
