import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENABLE_METRICS"] = "false"
os.environ["JWT_SECRET"] = "test-secret"

from datetime import date, time, datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from timetracker.auth.security import get_password_hash  # noqa: E402
from timetracker.db import Base, get_db  # noqa: E402
from timetracker.main import app  # noqa: E402
from timetracker.models.models import User, Employee, Project, TimeEntry  # noqa: E402


MONDAY = date(2024, 3, 4)

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _user(db, email, password, first, last, role, position, department, rate):
    user = User(
        email=email,
        password_hash=get_password_hash(password),
        first_name=first,
        last_name=last,
        role=role,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    db.flush()
    emp = Employee(user_id=user.id, position=position, department=department, hourly_rate=Decimal(rate), hire_date=date(2023, 1, 2))
    db.add(emp)
    db.flush()
    return user, emp


@pytest.fixture
def seeded(db):
    admin, admin_emp = _user(db, "admin@test.com", "Admin123!", "Ada", "Admin", "admin", "Administrator", "IT", "100")
    manager, manager_emp = _user(db, "manager@test.com", "Manager123!", "Mia", "Manager", "manager", "Project Manager", "Management", "80")
    employee, employee_emp = _user(db, "employee@test.com", "Employee123!", "Eli", "Worker", "employee", "Developer", "IT", "50")

    alpha = Project(name="Alpha", status="active", is_active=True, hours_budget=Decimal("10"), manager_id=manager_emp.id, start_date=date(2024, 1, 1))
    beta = Project(name="Beta", status="planning", is_active=True, start_date=date(2024, 1, 1))
    db.add_all([alpha, beta])
    db.flush()
    employee_emp.projects.append(alpha)

    entry = TimeEntry(
        employee_id=employee_emp.id,
        project_id=alpha.id,
        entry_date=MONDAY,
        start_time=time(9, 0),
        end_time=time(12, 0),
        description="Seeded work",
        created_by=employee.id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    db.commit()

    return SimpleNamespace(
        admin=admin,
        manager=manager,
        employee=employee,
        admin_emp=admin_emp,
        manager_emp=manager_emp,
        employee_emp=employee_emp,
        alpha=alpha,
        beta=beta,
        entry=entry,
    )


@pytest.fixture
def client(db, seeded):
    def _get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


CREDENTIALS = {
    "admin": ("admin@test.com", "Admin123!"),
    "manager": ("manager@test.com", "Manager123!"),
    "employee": ("employee@test.com", "Employee123!"),
}


def login(client, role):
    email, password = CREDENTIALS[role]
    resp = client.post("/login", data={"email": email, "password": password}, follow_redirects=False)
    assert resp.status_code == 303, resp.text
    return resp


@pytest.fixture
def login_as(client):
    def _login(role):
        return login(client, role)

    return _login
