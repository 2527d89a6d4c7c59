"""
Demo data: an admin, a manager and an employee, three projects and two entries.

Idempotent: users are matched by email, projects by name, entries by
employee/date/start.
"""
from datetime import date, time, timedelta, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..auth.security import get_password_hash
from ..logging import get_logger
from ..models.models import User, Employee, Project, TimeEntry, ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE


logger = get_logger(__name__)


def ensure_user(session: Session, email: str, password: str, first_name: str, last_name: str, role: str) -> User:
    user = session.query(User).filter(User.email == email).first()
    if user:
        user.first_name = first_name
        user.last_name = last_name
        user.role = role
        # Keep an existing password
        if not user.password_hash:
            user.password_hash = get_password_hash(password)
        session.flush()
        return user
    user = User(
        email=email,
        password_hash=get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    session.add(user)
    session.flush()
    return user


def ensure_employee(session: Session, user: User, position: str, department: str, hire_date: date, hourly_rate: Decimal = Decimal("0")) -> Employee:
    emp = session.query(Employee).filter(Employee.user_id == user.id).first()
    if emp:
        return emp
    emp = Employee(
        user_id=user.id,
        position=position,
        department=department,
        hire_date=hire_date,
        hourly_rate=hourly_rate,
        is_active=True,
    )
    session.add(emp)
    session.flush()
    return emp


def ensure_project(session: Session, name: str, manager: Optional[Employee] = None, **kwargs) -> Project:
    proj = session.query(Project).filter(Project.name == name).first()
    if proj:
        return proj
    proj = Project(name=name, manager_id=manager.id if manager else None, **kwargs)
    session.add(proj)
    session.flush()
    return proj


def ensure_entry(session: Session, employee: Employee, project: Optional[Project], entry_date: date, start: time, end: time, description: str, created_by: User) -> TimeEntry:
    entry = (
        session.query(TimeEntry)
        .filter(TimeEntry.employee_id == employee.id, TimeEntry.entry_date == entry_date, TimeEntry.start_time == start)
        .first()
    )
    if entry:
        return entry
    entry = TimeEntry(
        employee_id=employee.id,
        project_id=project.id if project else None,
        entry_date=entry_date,
        start_time=start,
        end_time=end,
        description=description,
        created_by=created_by.id,
        created_at=datetime.now(timezone.utc),
    )
    session.add(entry)
    session.flush()
    return entry


def seed_demo_data(session: Session) -> None:
    today = date.today()

    admin = ensure_user(session, "admin@example.com", "admin123", "Admin", "System", ROLE_ADMIN)
    manager = ensure_user(session, "manager@example.com", "manager123", "Jan", "Kierownik", ROLE_MANAGER)
    worker = ensure_user(session, "employee@example.com", "employee123", "Piotr", "Pracownik", ROLE_EMPLOYEE)

    worker_emp = ensure_employee(session, worker, "Developer", "IT", today - timedelta(days=365), Decimal("50"))
    manager_emp = ensure_employee(session, manager, "Project Manager", "Management", today - timedelta(days=730), Decimal("80"))

    shop = ensure_project(
        session, "E-commerce portal", manager_emp,
        description="Online sales platform", status="active", hours_budget=Decimal("160"),
        start_date=today - timedelta(days=60), is_active=True,
    )
    crm = ensure_project(
        session, "CRM system", manager_emp,
        description="Customer relationship management", status="active", hours_budget=Decimal("240"),
        start_date=today - timedelta(days=90), is_active=True,
    )
    ensure_project(
        session, "IT modernisation", manager_emp,
        description="Infrastructure upgrade", status="planning", hours_budget=Decimal("80"),
        start_date=today - timedelta(days=30), is_active=True,
    )

    for p in (shop, crm):
        if p not in worker_emp.projects:
            worker_emp.projects.append(p)

    ensure_entry(session, worker_emp, shop, today, time(9, 0), time(17, 0), "Main view implementation", worker)
    ensure_entry(session, manager_emp, shop, today - timedelta(days=1), time(8, 30), time(17, 30), "Team meeting", manager)

    session.commit()
    logger.info("demo_data_seeded", admin=admin.email, manager=manager.email, employee=worker.email)
