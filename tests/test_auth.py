import bcrypt

from timetracker.auth.security import verify_password, get_password_hash, create_session_token
from timetracker.models.models import User


def test_login_redirects_by_role(client):
    resp = client.post("/login", data={"email": "admin@test.com", "password": "Admin123!"}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/employees"
    assert "tt_session" in resp.cookies

    client.cookies.clear()
    resp = client.post("/login", data={"email": "Employee@Test.com", "password": "Employee123!"}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/calendar"


def test_invalid_login_shows_error(client):
    resp = client.post("/login", data={"email": "admin@test.com", "password": "wrong"}, follow_redirects=False)
    assert resp.status_code == 200
    assert "Invalid email or password" in resp.text
    assert "tt_session" not in resp.cookies


def test_inactive_user_cannot_login(client, db, seeded):
    seeded.employee.is_active = False
    db.commit()
    resp = client.post("/login", data={"email": "employee@test.com", "password": "Employee123!"}, follow_redirects=False)
    assert resp.status_code == 200
    assert "Invalid email or password" in resp.text


def test_pages_redirect_to_login_without_session(client):
    for path in ("/calendar", "/time-entries", "/reports/summary", "/"):
        resp = client.get(path, follow_redirects=False)
        assert resp.status_code == 303, path
        assert resp.headers["location"] == "/login"


def test_api_without_session_returns_json_envelope(client, seeded):
    resp = client.post("/calendar/api/delete-entry", json={"id": str(seeded.entry.id)})
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Not authenticated"}


def test_session_cookie_slides_on_authenticated_requests(client, login_as):
    login_as("employee")
    resp = client.get("/calendar?date=2024-03-04")
    assert resp.status_code == 200
    assert "tt_session" in resp.headers.get("set-cookie", "")


def test_token_and_me_with_bearer(client, seeded):
    resp = client.post("/auth/token", json={"email": "manager@test.com", "password": "Manager123!"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] > 0

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "manager@test.com"
    assert me.json()["role"] == "manager"
    assert me.json()["employee_id"] == str(seeded.manager_emp.id)


def test_token_rejects_bad_credentials(client):
    resp = client.post("/auth/token", json={"email": "manager@test.com", "password": "nope"})
    assert resp.status_code == 401


def test_me_rejects_garbage_token(client):
    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_token_of_deactivated_user_is_rejected(client, db, seeded):
    token = create_session_token(seeded.employee)
    seeded.employee.is_active = False
    db.commit()
    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_register_creates_employee_and_signs_in(client, db):
    resp = client.post(
        "/register",
        data={
            "email": "new@test.com",
            "password": "secret123",
            "confirm_password": "secret123",
            "first_name": "Nia",
            "last_name": "New",
        },
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/calendar"
    assert "tt_session" in resp.cookies

    user = db.query(User).filter(User.email == "new@test.com").one()
    assert user.role == "employee"
    assert user.employee is not None
    assert user.employee.department == "General"


def test_register_rejects_duplicate_email_and_mismatch(client):
    resp = client.post(
        "/register",
        data={
            "email": "employee@test.com",
            "password": "secret123",
            "confirm_password": "secret123",
            "first_name": "Eli",
            "last_name": "Again",
        },
        follow_redirects=False,
    )
    assert resp.status_code == 200
    assert "Email already registered" in resp.text

    resp = client.post(
        "/register",
        data={
            "email": "other@test.com",
            "password": "secret123",
            "confirm_password": "secret124",
            "first_name": "O",
            "last_name": "Ther",
        },
        follow_redirects=False,
    )
    assert resp.status_code == 200
    assert "Passwords do not match" in resp.text


def test_logout_clears_session(client, login_as):
    login_as("employee")
    resp = client.post("/logout", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"
    client.cookies.clear()
    assert client.get("/calendar", follow_redirects=False).status_code == 303


def test_password_hashing_and_legacy_bcrypt():
    hashed = get_password_hash("s3cret")
    assert hashed.startswith("$pbkdf2-sha256$")
    assert verify_password("s3cret", hashed)
    assert not verify_password("other", hashed)

    legacy = bcrypt.hashpw(b"s3cret", bcrypt.gensalt()).decode()
    assert verify_password("s3cret", legacy)
    assert not verify_password("other", legacy)
    assert not verify_password("s3cret", "")
