import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session, joinedload

from ..auth.security import require_manager
from ..db import get_db
from ..logging import get_logger
from ..models.models import User, Employee, Project, PROJECT_STATUSES
from ..schemas.common import clean_form, error_messages
from ..schemas.projects import ProjectForm
from ..services.audit import create_audit_log, compute_diff, snapshot
from ..services.permissions import employees_by_name, can_be_project_manager
from ..templating import render


logger = get_logger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])

PROJECT_FIELDS = ("name", "description", "status", "start_date", "end_date", "hours_budget", "manager_id", "is_active")


def _get_project(db: Session, project_id: uuid.UUID) -> Project:
    proj = (
        db.query(Project)
        .options(joinedload(Project.employees).joinedload(Employee.user))
        .filter(Project.id == project_id)
        .first()
    )
    if not proj:
        raise HTTPException(status_code=404, detail="Project not found")
    return proj


def _form_page(request: Request, db: Session, form: dict, project=None, errors=None):
    everyone = employees_by_name(db)
    return render(request, "project_form.html", {
        "form": form,
        "project": project,
        "errors": errors or {},
        "statuses": PROJECT_STATUSES,
        "employees": everyone,
        "managers": [e for e in everyone if can_be_project_manager(e)],
    })


def _validate(db: Session, data: dict):
    """Returns (ProjectForm, assigned employees, None) or (None, None, errors)"""
    try:
        payload = ProjectForm.model_validate(data)
    except ValidationError as e:
        return None, None, error_messages(e)
    if payload.manager_id:
        manager = db.query(Employee).filter(Employee.id == payload.manager_id).first()
        if not can_be_project_manager(manager):
            return None, None, {"manager_id": "Project manager must be a manager or an administrator"}
    employees = []
    if payload.employee_ids:
        employees = db.query(Employee).filter(Employee.id.in_(payload.employee_ids)).all()
    return payload, employees, None


def _apply(project: Project, payload: ProjectForm, employees) -> None:
    project.name = payload.name
    project.description = payload.description
    project.status = payload.status
    if payload.start_date:
        project.start_date = payload.start_date
    project.end_date = payload.end_date
    project.hours_budget = payload.hours_budget
    project.manager_id = payload.manager_id
    project.is_active = payload.is_active
    project.employees = list(employees)


@router.get("")
def list_projects(request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    projects = (
        db.query(Project)
        .options(joinedload(Project.employees).joinedload(Employee.user), joinedload(Project.time_entries))
        .order_by(Project.name.asc())
        .all()
    )
    return render(request, "projects.html", {"projects": projects})


@router.get("/create")
def create_form(request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    return _form_page(request, db, {"status": "active", "is_active": True, "employee_ids": []})


@router.post("/create")
async def create_submit(request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    data = clean_form(await request.form(), list_fields=("employee_ids",))
    payload, employees, errors = _validate(db, data)
    if errors:
        return _form_page(request, db, data, errors=errors)
    project = Project()
    _apply(project, payload, employees)
    db.add(project)
    db.flush()
    create_audit_log(db, "project", project.id, "CREATE", actor=user, changes_json={"after": snapshot(project, PROJECT_FIELDS)})
    db.commit()
    logger.info("project_created", project_id=str(project.id), employees=len(employees))
    return RedirectResponse("/projects", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/{project_id}/edit")
def edit_form(project_id: uuid.UUID, request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    project = _get_project(db, project_id)
    form = {
        "name": project.name,
        "description": project.description or "",
        "status": project.status,
        "start_date": project.start_date.isoformat() if project.start_date else "",
        "end_date": project.end_date.isoformat() if project.end_date else "",
        "hours_budget": str(project.hours_budget) if project.hours_budget is not None else "",
        "manager_id": str(project.manager_id) if project.manager_id else "",
        "is_active": project.is_active,
        "employee_ids": [str(e.id) for e in project.employees],
    }
    return _form_page(request, db, form, project=project)


@router.post("/{project_id}/edit")
async def edit_submit(project_id: uuid.UUID, request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    project = _get_project(db, project_id)
    data = clean_form(await request.form(), list_fields=("employee_ids",))
    payload, employees, errors = _validate(db, data)
    if errors:
        return _form_page(request, db, data, project=project, errors=errors)
    before = snapshot(project, PROJECT_FIELDS)
    before["employee_ids"] = sorted(str(e.id) for e in project.employees)
    _apply(project, payload, employees)
    after = snapshot(project, PROJECT_FIELDS)
    after["employee_ids"] = sorted(str(e.id) for e in employees)
    diff = compute_diff(before, after)
    if diff:
        create_audit_log(db, "project", project.id, "UPDATE", actor=user, changes_json=diff)
    db.commit()
    logger.info("project_updated", project_id=str(project.id))
    return RedirectResponse("/projects", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/{project_id}/delete")
def delete_project(project_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    project = _get_project(db, project_id)
    # Time entries keep their hours and lose the project link
    create_audit_log(db, "project", project.id, "DELETE", actor=user, changes_json={"before": snapshot(project, PROJECT_FIELDS)})
    db.delete(project)
    db.commit()
    logger.info("project_deleted", project_id=str(project_id))
    return RedirectResponse("/projects", status_code=status.HTTP_303_SEE_OTHER)
