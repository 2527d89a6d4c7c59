import uuid
from datetime import date, datetime, timezone, timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..auth.security import get_password_hash, require_manager
from ..db import get_db
from ..logging import get_logger
from ..models.models import User, Employee, USER_ROLES
from ..schemas.common import clean_form, error_messages
from ..schemas.employees import EmployeeCreate, EmployeeUpdate
from ..services.audit import create_audit_log, compute_diff, snapshot, get_audit_logs
from ..services.calendar_grid import local_today, month_bounds
from ..services.permissions import can_create_role, employees_by_name
from ..services.time_entries import get_entries_for_employee
from ..templating import render


logger = get_logger(__name__)

router = APIRouter(prefix="/employees", tags=["employees"])

EMPLOYEE_FIELDS = (
    "employee_number", "position", "department", "hourly_rate",
    "standard_hours_per_day", "hire_date", "is_active",
)


def _get_employee(db: Session, employee_id: uuid.UUID) -> Employee:
    emp = (
        db.query(Employee)
        .options(joinedload(Employee.user), joinedload(Employee.projects))
        .filter(Employee.id == employee_id)
        .first()
    )
    if not emp:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


def _form_page(request: Request, form: dict, employee=None, errors=None, status_code: int = 200):
    return render(
        request,
        "employee_form.html",
        {"form": form, "employee": employee, "errors": errors or {}, "roles": USER_ROLES},
        status_code=status_code,
    )


@router.get("")
def list_employees(request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    return render(request, "employees.html", {"employees": employees_by_name(db)})


@router.get("/create")
def create_form(request: Request, user: User = Depends(require_manager)):
    return _form_page(request, {"role": "employee", "standard_hours_per_day": "8", "hourly_rate": "0", "hire_date": date.today().isoformat()})


@router.post("/create")
async def create_submit(request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    data = clean_form(await request.form())
    try:
        payload = EmployeeCreate.model_validate(data)
    except ValidationError as e:
        return _form_page(request, data, errors=error_messages(e))
    if not can_create_role(user, payload.role):
        raise HTTPException(status_code=403, detail="You may not create users with this role")

    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        return _form_page(request, data, errors={"email": "Email already registered"})

    new_user = User(
        email=email,
        password_hash=get_password_hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(new_user)
    try:
        db.flush()
        emp = Employee(
            user_id=new_user.id,
            employee_number=payload.employee_number,
            position=payload.position,
            department=payload.department,
            hourly_rate=payload.hourly_rate,
            standard_hours_per_day=payload.standard_hours_per_day,
            hire_date=payload.hire_date or date.today(),
            is_active=True,
        )
        db.add(emp)
        db.flush()
        create_audit_log(db, "employee", emp.id, "CREATE", actor=user, changes_json={"after": snapshot(emp, EMPLOYEE_FIELDS)})
        db.commit()
    except IntegrityError:
        db.rollback()
        return _form_page(request, data, errors={"email": "Email already registered"})
    logger.info("employee_created", employee_id=str(emp.id), role=payload.role)
    return RedirectResponse(f"/employees/{emp.id}", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/{employee_id}")
def details(employee_id: uuid.UUID, request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    emp = _get_employee(db, employee_id)
    today = local_today()
    month_from, month_to = month_bounds(today.year, today.month)
    month_entries = get_entries_for_employee(db, emp.id, month_from, month_to)
    return render(request, "employee_details.html", {
        "employee": emp,
        "recent_entries": get_entries_for_employee(db, emp.id, today - timedelta(days=30), today)[:20],
        "month_hours": sum(e.total_hours for e in month_entries),
        "month_label": f"{today.year}-{today.month:02d}",
        "audit_logs": get_audit_logs(db, entity_type="employee", entity_id=emp.id, limit=20),
    })


@router.get("/{employee_id}/edit")
def edit_form(employee_id: uuid.UUID, request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    emp = _get_employee(db, employee_id)
    form = {
        "email": emp.user.email,
        "first_name": emp.user.first_name,
        "last_name": emp.user.last_name,
        "role": emp.user.role,
        "employee_number": emp.employee_number or "",
        "position": emp.position,
        "department": emp.department,
        "hourly_rate": str(emp.hourly_rate),
        "standard_hours_per_day": str(emp.standard_hours_per_day),
        "hire_date": emp.hire_date.isoformat() if emp.hire_date else "",
        "is_active": emp.is_active,
    }
    return _form_page(request, form, employee=emp)


@router.post("/{employee_id}/edit")
async def edit_submit(employee_id: uuid.UUID, request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    emp = _get_employee(db, employee_id)
    data = clean_form(await request.form())
    try:
        payload = EmployeeUpdate.model_validate(data)
    except ValidationError as e:
        return _form_page(request, data, employee=emp, errors=error_messages(e))
    # Both the current and the requested role must be within the actor's reach
    if not (can_create_role(user, emp.user.role) and can_create_role(user, payload.role)):
        raise HTTPException(status_code=403, detail="You may not manage users with this role")

    email = payload.email.lower()
    clash = db.query(User).filter(User.email == email, User.id != emp.user_id).first()
    if clash:
        return _form_page(request, data, employee=emp, errors={"email": "Email already registered"})

    before = snapshot(emp, EMPLOYEE_FIELDS)
    emp.user.email = email
    emp.user.first_name = payload.first_name
    emp.user.last_name = payload.last_name
    emp.user.role = payload.role
    emp.user.is_active = payload.is_active
    if payload.password:
        emp.user.password_hash = get_password_hash(payload.password)
    emp.employee_number = payload.employee_number
    emp.position = payload.position
    emp.department = payload.department
    emp.hourly_rate = payload.hourly_rate
    emp.standard_hours_per_day = payload.standard_hours_per_day
    if payload.hire_date:
        emp.hire_date = payload.hire_date
    emp.is_active = payload.is_active
    diff = compute_diff(before, snapshot(emp, EMPLOYEE_FIELDS))
    create_audit_log(db, "employee", emp.id, "UPDATE", actor=user, changes_json=diff or None)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return _form_page(request, data, employee=emp, errors={"email": "Email already registered"})
    logger.info("employee_updated", employee_id=str(emp.id))
    return RedirectResponse(f"/employees/{emp.id}", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/{employee_id}/deactivate")
def deactivate(employee_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    emp = _get_employee(db, employee_id)
    if emp.user_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate yourself")
    if not can_create_role(user, emp.user.role):
        raise HTTPException(status_code=403, detail="You may not manage users with this role")
    emp.is_active = False
    emp.user.is_active = False
    create_audit_log(db, "employee", emp.id, "UPDATE", actor=user, changes_json={"is_active": {"before": True, "after": False}})
    db.commit()
    logger.info("employee_deactivated", employee_id=str(emp.id))
    return RedirectResponse("/employees", status_code=status.HTTP_303_SEE_OTHER)
