import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_manager
from ..db import get_db
from ..logging import get_logger
from ..models.models import User
from ..services import reports as report_service
from ..services.calendar_grid import local_today, resolve_month
from ..services.export import monthly_report_workbook, monthly_report_filename, XLSX_MEDIA_TYPE
from ..services.permissions import viewable_employee
from ..services.time_entries import get_unapproved_entries
from ..services.time_rules import parse_date, TimeRuleError
from ..templating import render


logger = get_logger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


def _month(year: Optional[int], month: Optional[int]):
    try:
        return resolve_month(year, month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/summary")
def summary(
    request: Request,
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
    report = report_service.summary(db, user, d_from, d_to)
    return render(request, "report_summary.html", {"report": report})


@router.get("/monthly")
def monthly(
    request: Request,
    employee_id: Optional[uuid.UUID] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    year, month = _month(year, month)
    employee, everyone = viewable_employee(db, user, employee_id)
    if employee is None:
        return RedirectResponse("/reports/summary", status_code=status.HTTP_303_SEE_OTHER)
    report = report_service.monthly_report(db, employee, year, month)
    return render(request, "report_monthly.html", {
        "report": report,
        "employees": everyone,
        "can_select_employee": everyone is not None,
    })


@router.get("/monthly/export")
def monthly_export(
    employee_id: Optional[uuid.UUID] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    year, month = _month(year, month)
    employee, _ = viewable_employee(db, user, employee_id)
    if employee is None:
        raise HTTPException(status_code=404, detail="Employee not found")
    report = report_service.monthly_report(db, employee, year, month)
    content = monthly_report_workbook(report)
    filename = monthly_report_filename(report)
    logger.info("export_generated", employee_id=str(employee.id), year=year, month=month, size=len(content))
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/approval")
def approval(request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    return render(request, "report_approval.html", {"entries": get_unapproved_entries(db)})


@router.get("/projects")
def projects(request: Request, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    return render(request, "report_projects.html", {"rows": report_service.project_usage(db)})
