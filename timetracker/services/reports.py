from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from ..models.models import TimeEntry, Employee, Project, User
from .calendar_grid import month_bounds
from .permissions import is_manager_or_admin, employee_for_user


NO_PROJECT = "(no project)"


@dataclass
class SummaryReport:
    date_from: date
    date_to: date
    entries: List[TimeEntry]
    total_hours: Decimal = Decimal("0")
    total_earnings: Decimal = Decimal("0")


@dataclass
class DailyHours:
    day: date
    total_hours: Decimal
    entries: List[TimeEntry] = field(default_factory=list)


@dataclass
class ProjectHours:
    project_name: str
    total_hours: Decimal
    entry_count: int


@dataclass
class MonthlyReport:
    employee: Employee
    year: int
    month: int
    date_from: date
    date_to: date
    by_day: List[DailyHours]
    by_project: List[ProjectHours]
    total_hours: Decimal
    total_days: int

    @property
    def employee_name(self) -> str:
        return self.employee.display_name


@dataclass
class ProjectUsage:
    project: Project
    hours_spent: Decimal
    hours_budget: Optional[Decimal]
    is_over_budget: bool
    employee_count: int


def _earnings(entry: TimeEntry) -> Decimal:
    rate = entry.employee.hourly_rate if entry.employee and entry.employee.hourly_rate is not None else Decimal("0")
    return (entry.total_hours * Decimal(rate)).quantize(Decimal("0.01"))


def summary(db: Session, user: User, date_from: date, date_to: date) -> SummaryReport:
    """Employees see their own entries; managers and admins see everyone's."""
    query = (
        db.query(TimeEntry)
        .options(joinedload(TimeEntry.employee).joinedload(Employee.user), joinedload(TimeEntry.project))
        .filter(TimeEntry.entry_date >= date_from, TimeEntry.entry_date <= date_to)
    )
    if not is_manager_or_admin(user):
        own = employee_for_user(db, user)
        if own is None:
            return SummaryReport(date_from=date_from, date_to=date_to, entries=[])
        query = query.filter(TimeEntry.employee_id == own.id)
    entries = query.order_by(TimeEntry.entry_date.desc(), TimeEntry.start_time.desc()).all()
    return SummaryReport(
        date_from=date_from,
        date_to=date_to,
        entries=entries,
        total_hours=sum((e.total_hours for e in entries), Decimal("0")),
        total_earnings=sum((_earnings(e) for e in entries), Decimal("0")),
    )


def monthly_report(db: Session, employee: Employee, year: int, month: int) -> MonthlyReport:
    date_from, date_to = month_bounds(year, month)
    entries = (
        db.query(TimeEntry)
        .options(joinedload(TimeEntry.project), joinedload(TimeEntry.created_by_user))
        .filter(
            TimeEntry.employee_id == employee.id,
            TimeEntry.entry_date >= date_from,
            TimeEntry.entry_date <= date_to,
        )
        .order_by(TimeEntry.entry_date.asc(), TimeEntry.start_time.asc())
        .all()
    )

    days = {}
    for e in entries:
        days.setdefault(e.entry_date, []).append(e)
    by_day = [
        DailyHours(day=d, total_hours=sum((e.total_hours for e in items), Decimal("0")), entries=items)
        for d, items in sorted(days.items())
    ]

    projects = {}
    for e in entries:
        projects.setdefault(e.project.name if e.project else NO_PROJECT, []).append(e)
    by_project = sorted(
        (
            ProjectHours(project_name=name, total_hours=sum((e.total_hours for e in items), Decimal("0")), entry_count=len(items))
            for name, items in projects.items()
        ),
        key=lambda p: p.total_hours,
        reverse=True,
    )

    return MonthlyReport(
        employee=employee,
        year=year,
        month=month,
        date_from=date_from,
        date_to=date_to,
        by_day=by_day,
        by_project=by_project,
        total_hours=sum((d.total_hours for d in by_day), Decimal("0")),
        total_days=len(by_day),
    )


def project_usage(db: Session) -> List[ProjectUsage]:
    projects = (
        db.query(Project)
        .options(joinedload(Project.time_entries), joinedload(Project.employees))
        .order_by(Project.name.asc())
        .all()
    )
    return [
        ProjectUsage(
            project=p,
            hours_spent=p.total_hours_spent,
            hours_budget=p.hours_budget,
            is_over_budget=p.is_over_budget,
            employee_count=len(p.employees),
        )
        for p in projects
    ]
