import uuid
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session, joinedload

from ..auth.security import get_current_user
from ..config import settings
from ..db import get_db
from ..models.models import User, Employee, Project, TimeEntry, DAY_MARKER_TYPES
from ..schemas.time_entries import (
    AddEntryRequest,
    UpdateEntryRequest,
    DeleteEntryRequest,
    SetDayMarkerRequest,
    RemoveDayMarkerRequest,
    DailyHoursRequest,
)
from ..services import time_entries as entry_service
from ..services.calendar_grid import (
    build_week_grid,
    build_month_grid,
    start_of_week,
    month_bounds,
    month_weeks,
    local_today,
    resolve_month,
    is_supported_day,
)
from ..services.day_markers import get_markers, set_day_marker, remove_day_marker
from ..services.permissions import viewable_employee, can_manage_employee_entries, is_manager_or_admin
from ..templating import render


router = APIRouter(prefix="/calendar", tags=["calendar"])


def _entries_between(db: Session, employee_id, date_from: date, date_to: date):
    return (
        db.query(TimeEntry)
        .options(joinedload(TimeEntry.project), joinedload(TimeEntry.created_by_user))
        .filter(TimeEntry.employee_id == employee_id, TimeEntry.entry_date >= date_from, TimeEntry.entry_date <= date_to)
        .order_by(TimeEntry.entry_date.asc(), TimeEntry.start_time.asc())
        .all()
    )


def _projects_for(db: Session, user: User, employee: Employee):
    # Employees only see projects they are assigned to
    if is_manager_or_admin(user):
        return db.query(Project).order_by(Project.name.asc()).all()
    return sorted(employee.projects, key=lambda p: p.name)


def _page_context(db: Session, user: User, employee: Employee, everyone) -> dict:
    return {
        "employee": employee,
        "employees": everyone,
        "can_select_employee": everyone is not None,
        "projects": _projects_for(db, user, employee),
        "marker_types": DAY_MARKER_TYPES,
        "default_start": settings.default_entry_start.strftime("%H:%M"),
        "default_end": settings.default_entry_end.strftime("%H:%M"),
        "today": local_today(),
        "error": None,
    }


@router.get("")
def week_view(
    request: Request,
    date: Optional[date] = None,
    employee_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    employee, everyone = viewable_employee(db, user, employee_id)
    if employee is None:
        return render(request, "calendar_week.html", {"grid": None, "error": "No employee profile found. Contact an administrator."})

    day = date or local_today()
    if not is_supported_day(day):
        raise HTTPException(status_code=400, detail="Invalid date")
    week_start = start_of_week(day)
    week_end = week_start + timedelta(days=6)
    grid = build_week_grid(
        week_start,
        _entries_between(db, employee.id, week_start, week_end),
        get_markers(db, employee.id, week_start, week_end),
    )
    ctx = _page_context(db, user, employee, everyone)
    ctx["grid"] = grid
    return render(request, "calendar_week.html", ctx)


@router.get("/month")
def month_view(
    request: Request,
    year: Optional[int] = None,
    month: Optional[int] = None,
    employee_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        year, month = resolve_month(year, month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    employee, everyone = viewable_employee(db, user, employee_id)
    if employee is None:
        return render(request, "calendar_month.html", {"grid": None, "error": "No employee profile found. Contact an administrator."})

    weeks = month_weeks(year, month)
    grid_from, grid_to = weeks[0][0], weeks[-1][-1]
    grid = build_month_grid(
        year,
        month,
        _entries_between(db, employee.id, grid_from, grid_to),
        get_markers(db, employee.id, grid_from, grid_to),
    )
    ctx = _page_context(db, user, employee, everyone)
    ctx.update({"grid": grid, "month_bounds": month_bounds(year, month)})
    return render(request, "calendar_month.html", ctx)


# JSON API used by the calendar pages


def _require_employee(db: Session, user: User, employee_id: uuid.UUID) -> Employee:
    if not can_manage_employee_entries(db, user, employee_id):
        raise HTTPException(status_code=403, detail="Not allowed")
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


def _require_project(db: Session, project_id: Optional[uuid.UUID]) -> None:
    if project_id and not db.query(Project).filter(Project.id == project_id).first():
        raise HTTPException(status_code=404, detail="Project not found")


def _require_entry(db: Session, user: User, entry_id: uuid.UUID) -> TimeEntry:
    entry = db.query(TimeEntry).filter(TimeEntry.id == entry_id).first()
    if not entry:
        raise HTTPException(status_code=404, detail="Entry not found")
    if not can_manage_employee_entries(db, user, entry.employee_id):
        raise HTTPException(status_code=403, detail="Not allowed")
    return entry


@router.post("/api/add-entry")
def api_add_entry(req: AddEntryRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _require_employee(db, user, req.employee_id)
    _require_project(db, req.project_id)
    try:
        entry = entry_service.create_entry(
            db,
            employee_id=req.employee_id,
            entry_date=req.date,
            start_time=req.start_time,
            end_time=req.end_time,
            project_id=req.project_id,
            description=req.description,
            actor=user,
        )
    except entry_service.TimeEntryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "entryId": str(entry.id), "hours": str(entry.total_hours)}


@router.post("/api/update-entry")
def api_update_entry(req: UpdateEntryRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    entry = _require_entry(db, user, req.id)
    _require_project(db, req.project_id)
    changes = {"project_id": req.project_id, "description": req.description}
    if req.start_time is not None:
        changes["start_time"] = req.start_time
    if req.end_time is not None:
        changes["end_time"] = req.end_time
    try:
        entry_service.update_entry(db, entry, actor=user, **changes)
    except entry_service.TimeEntryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True}


@router.post("/api/delete-entry")
def api_delete_entry(req: DeleteEntryRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    entry = _require_entry(db, user, req.id)
    try:
        entry_service.delete_entry(db, entry, actor=user)
    except entry_service.TimeEntryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True}


@router.post("/api/set-day-marker")
def api_set_day_marker(req: SetDayMarkerRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _require_employee(db, user, req.employee_id)
    marker = set_day_marker(db, req.employee_id, req.date, req.type, note=req.note, actor=user)
    return {"success": True, "markerId": str(marker.id)}


@router.post("/api/remove-day-marker")
def api_remove_day_marker(req: RemoveDayMarkerRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _require_employee(db, user, req.employee_id)
    removed = remove_day_marker(db, req.employee_id, req.date, actor=user)
    return {"success": True, "removed": removed}


@router.post("/api/daily-hours")
def api_daily_hours(req: DailyHoursRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    _require_employee(db, user, req.employee_id)
    _require_project(db, req.project_id)
    try:
        entry = entry_service.upsert_daily_hours(
            db,
            req.employee_id,
            req.date,
            req.hours,
            project_id=req.project_id,
            description=req.description,
            actor=user,
        )
    except entry_service.TimeEntryError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "entryId": str(entry.id) if entry else None}
