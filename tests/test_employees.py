from timetracker.models.models import User, Employee, AuditLog


def _form(**overrides):
    data = {
        "email": "new.hire@test.com",
        "password": "welcome1",
        "first_name": "Noa",
        "last_name": "Hire",
        "position": "Developer",
        "department": "IT",
        "hourly_rate": "42.50",
        "standard_hours_per_day": "8",
        "hire_date": "2024-02-01",
        "role": "employee",
    }
    data.update(overrides)
    return data


def test_create_employee(client, db, login_as):
    login_as("manager")
    assert client.get("/employees/create").status_code == 200
    resp = client.post("/employees/create", data=_form(), follow_redirects=False)
    assert resp.status_code == 303

    db.expire_all()
    user = db.query(User).filter(User.email == "new.hire@test.com").one()
    assert user.role == "employee"
    assert str(user.employee.hourly_rate) == "42.50"
    assert resp.headers["location"] == f"/employees/{user.employee.id}"
    assert db.query(AuditLog).filter(AuditLog.entity_id == user.employee.id).count() == 1

    # The new account can sign in
    client.cookies.clear()
    resp = client.post("/login", data={"email": "new.hire@test.com", "password": "welcome1"}, follow_redirects=False)
    assert resp.headers["location"] == "/calendar"


def test_manager_cannot_create_admin(client, db, login_as):
    login_as("manager")
    resp = client.post("/employees/create", data=_form(role="admin"), follow_redirects=False)
    assert resp.status_code == 403
    db.expire_all()
    assert db.query(User).filter(User.email == "new.hire@test.com").count() == 0


def test_admin_can_create_manager(client, db, login_as):
    login_as("admin")
    resp = client.post("/employees/create", data=_form(role="manager"), follow_redirects=False)
    assert resp.status_code == 303
    db.expire_all()
    assert db.query(User).filter(User.email == "new.hire@test.com").one().role == "manager"


def test_duplicate_email_is_reported(client, db, login_as):
    login_as("admin")
    resp = client.post("/employees/create", data=_form(email="Employee@test.com"), follow_redirects=False)
    assert resp.status_code == 200
    assert "Email already registered" in resp.text
    db.expire_all()
    assert db.query(Employee).count() == 3


def test_invalid_form_is_rerendered(client, login_as):
    login_as("admin")
    resp = client.post("/employees/create", data=_form(password="abc", hourly_rate="-1"), follow_redirects=False)
    assert resp.status_code == 200
    assert "String should have at least 6 characters" in resp.text
    assert "greater than or equal to 0" in resp.text


def test_employee_pages_require_manager(client, seeded, login_as):
    login_as("employee")
    assert client.get("/employees", follow_redirects=False).status_code == 403
    assert client.get(f"/employees/{seeded.employee_emp.id}", follow_redirects=False).status_code == 403


def test_list_and_details(client, seeded, login_as):
    login_as("manager")
    resp = client.get("/employees")
    assert resp.status_code == 200
    assert "Worker" in resp.text
    resp = client.get(f"/employees/{seeded.employee_emp.id}")
    assert resp.status_code == 200
    assert "employee@test.com" in resp.text
    assert "Alpha" in resp.text


def test_edit_employee(client, db, seeded, login_as):
    login_as("manager")
    assert client.get(f"/employees/{seeded.employee_emp.id}/edit").status_code == 200
    resp = client.post(
        f"/employees/{seeded.employee_emp.id}/edit",
        data=_form(email="employee@test.com", password="", position="Senior Developer", is_active="on"),
        follow_redirects=False,
    )
    assert resp.status_code == 303
    db.expire_all()
    emp = db.get(Employee, seeded.employee_emp.id)
    assert emp.position == "Senior Developer"
    assert emp.user.first_name == "Noa"
    log = db.query(AuditLog).filter(AuditLog.entity_id == emp.id, AuditLog.action == "UPDATE").one()
    assert log.changes_json["position"] == {"before": "Developer", "after": "Senior Developer"}

    # Blank password keeps the old one
    client.cookies.clear()
    resp = client.post("/login", data={"email": "employee@test.com", "password": "Employee123!"}, follow_redirects=False)
    assert resp.status_code == 303


def test_manager_cannot_edit_admin(client, seeded, login_as):
    login_as("manager")
    resp = client.post(
        f"/employees/{seeded.admin_emp.id}/edit",
        data=_form(email="admin@test.com", role="admin", is_active="on"),
        follow_redirects=False,
    )
    assert resp.status_code == 403


def test_deactivate_blocks_login(client, db, seeded, login_as):
    login_as("manager")
    resp = client.post(f"/employees/{seeded.employee_emp.id}/deactivate", follow_redirects=False)
    assert resp.status_code == 303
    db.expire_all()
    assert db.get(Employee, seeded.employee_emp.id).is_active is False

    client.cookies.clear()
    resp = client.post("/login", data={"email": "employee@test.com", "password": "Employee123!"}, follow_redirects=False)
    assert resp.status_code == 200
    assert "Invalid email or password" in resp.text


def test_cannot_deactivate_self(client, seeded, login_as):
    login_as("admin")
    resp = client.post(f"/employees/{seeded.admin_emp.id}/deactivate", follow_redirects=False)
    assert resp.status_code == 400
