import uuid
from datetime import date, time

from timetracker.models.models import TimeEntry, DayMarker, AuditLog


MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)


def _add(client, employee_id, start, end, day=MONDAY, **extra):
    payload = {"employeeId": str(employee_id), "date": day.isoformat(), "startTime": start, "endTime": end}
    payload.update(extra)
    return client.post("/calendar/api/add-entry", json=payload)


def test_add_entry(client, db, seeded, login_as):
    login_as("employee")
    resp = _add(client, seeded.employee_emp.id, "13:00", "17:30", projectId=str(seeded.alpha.id), description="Afternoon")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["hours"] == "4.50"

    db.expire_all()
    entry = db.get(TimeEntry, uuid.UUID(body["entryId"]))
    assert entry.start_time == time(13, 0)
    assert entry.project_id == seeded.alpha.id
    assert entry.created_by == seeded.employee.id
    assert db.query(AuditLog).filter(AuditLog.entity_id == entry.id, AuditLog.action == "CREATE").count() == 1


def test_add_entry_accepts_snake_case(client, seeded, login_as):
    login_as("employee")
    resp = client.post("/calendar/api/add-entry", json={
        "employee_id": str(seeded.employee_emp.id),
        "date": "2024-03-05",
        "start_time": "08:00",
        "end_time": "09:00",
    })
    assert resp.status_code == 200
    assert resp.json()["hours"] == "1.00"


def test_add_entry_rejects_overlap(client, db, seeded, login_as):
    login_as("employee")
    resp = _add(client, seeded.employee_emp.id, "11:00", "13:00")
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "overlaps" in resp.json()["message"]
    db.expire_all()
    assert db.query(TimeEntry).count() == 1


def test_touching_entries_are_accepted(client, seeded, login_as):
    login_as("employee")
    assert _add(client, seeded.employee_emp.id, "12:00", "13:00").status_code == 200
    assert _add(client, seeded.employee_emp.id, "08:00", "09:00").status_code == 200


def test_add_entry_rejects_end_before_start(client, seeded, login_as):
    login_as("employee")
    resp = _add(client, seeded.employee_emp.id, "15:00", "14:00", day=TUESDAY)
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "End time must be after start time"}


def test_employee_cannot_add_for_someone_else(client, seeded, login_as):
    login_as("employee")
    resp = _add(client, seeded.manager_emp.id, "09:00", "10:00")
    assert resp.status_code == 403
    assert resp.json()["success"] is False


def test_manager_can_add_for_employee(client, db, seeded, login_as):
    login_as("manager")
    resp = _add(client, seeded.employee_emp.id, "13:00", "14:00")
    assert resp.status_code == 200
    db.expire_all()
    assert db.query(TimeEntry).filter(TimeEntry.employee_id == seeded.employee_emp.id).count() == 2


def test_unknown_project_is_rejected(client, seeded, login_as):
    login_as("employee")
    resp = _add(client, seeded.employee_emp.id, "13:00", "14:00", projectId="00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404


def test_missing_field_returns_envelope(client, seeded, login_as):
    login_as("employee")
    resp = client.post("/calendar/api/add-entry", json={"employeeId": str(seeded.employee_emp.id), "date": "2024-03-05"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["message"]


def test_times_with_offset_are_rejected(client, db, seeded, login_as):
    login_as("employee")
    resp = _add(client, seeded.employee_emp.id, "13:00+02:00", "14:00+02:00")
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["message"].startswith("startTime:")
    assert "timezone offset" in body["message"]

    resp = client.post("/calendar/api/update-entry", json={"id": str(seeded.entry.id), "endTime": "12:30Z"})
    assert resp.status_code == 422
    assert resp.json()["success"] is False
    db.expire_all()
    assert db.get(TimeEntry, seeded.entry.id).end_time == time(12, 0)


def test_update_entry(client, db, seeded, login_as):
    login_as("employee")
    resp = client.post("/calendar/api/update-entry", json={
        "id": str(seeded.entry.id),
        "projectId": None,
        "description": "Changed",
        "startTime": "08:00",
        "endTime": "12:30",
    })
    assert resp.status_code == 200, resp.text
    db.expire_all()
    entry = db.get(TimeEntry, seeded.entry.id)
    assert entry.description == "Changed"
    assert entry.project_id is None
    assert entry.start_time == time(8, 0)
    assert entry.end_time == time(12, 30)
    log = db.query(AuditLog).filter(AuditLog.entity_id == entry.id, AuditLog.action == "UPDATE").one()
    assert "description" in log.changes_json


def test_update_entry_rejects_overlap(client, seeded, login_as):
    login_as("employee")
    assert _add(client, seeded.employee_emp.id, "13:00", "14:00").status_code == 200
    resp = client.post("/calendar/api/update-entry", json={"id": str(seeded.entry.id), "endTime": "13:30"})
    assert resp.status_code == 400


def test_approved_entry_is_locked(client, db, seeded, login_as):
    seeded.entry.is_approved = True
    db.commit()
    login_as("employee")
    resp = client.post("/calendar/api/update-entry", json={"id": str(seeded.entry.id), "description": "x"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Entry is approved and locked"
    resp = client.post("/calendar/api/delete-entry", json={"id": str(seeded.entry.id)})
    assert resp.status_code == 400
    db.expire_all()
    assert db.get(TimeEntry, seeded.entry.id) is not None


def test_delete_entry(client, db, seeded, login_as):
    login_as("employee")
    resp = client.post("/calendar/api/delete-entry", json={"id": str(seeded.entry.id)})
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    db.expire_all()
    assert db.query(TimeEntry).count() == 0
    assert db.query(AuditLog).filter(AuditLog.action == "DELETE").count() == 1


def test_delete_of_other_employees_entry_is_forbidden(client, db, seeded, login_as):
    other = TimeEntry(employee_id=seeded.manager_emp.id, entry_date=MONDAY, start_time=time(9), end_time=time(10))
    db.add(other)
    db.commit()
    login_as("employee")
    resp = client.post("/calendar/api/delete-entry", json={"id": str(other.id)})
    assert resp.status_code == 403


def test_missing_entry_is_404(client, login_as):
    login_as("manager")
    resp = client.post("/calendar/api/delete-entry", json={"id": "00000000-0000-0000-0000-000000000000"})
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Entry not found"}


def test_day_marker_is_upserted(client, db, seeded, login_as):
    login_as("employee")
    emp_id = str(seeded.employee_emp.id)
    first = client.post("/calendar/api/set-day-marker", json={"employeeId": emp_id, "date": "2024-03-06", "type": "vacation"})
    assert first.status_code == 200
    second = client.post("/calendar/api/set-day-marker", json={"employeeId": emp_id, "date": "2024-03-06", "type": "sick", "note": "Flu"})
    assert second.status_code == 200
    assert first.json()["markerId"] == second.json()["markerId"]

    db.expire_all()
    markers = db.query(DayMarker).all()
    assert len(markers) == 1
    assert markers[0].type == "sick"
    assert markers[0].note == "Flu"


def test_day_marker_rejects_unknown_type(client, seeded, login_as):
    login_as("employee")
    resp = client.post("/calendar/api/set-day-marker", json={"employeeId": str(seeded.employee_emp.id), "date": "2024-03-06", "type": "party"})
    assert resp.status_code == 422
    assert resp.json()["success"] is False


def test_remove_day_marker(client, db, seeded, login_as):
    login_as("employee")
    emp_id = str(seeded.employee_emp.id)
    client.post("/calendar/api/set-day-marker", json={"employeeId": emp_id, "date": "2024-03-07", "type": "holiday"})
    resp = client.post("/calendar/api/remove-day-marker", json={"employeeId": emp_id, "date": "2024-03-07"})
    assert resp.json() == {"success": True, "removed": True}
    resp = client.post("/calendar/api/remove-day-marker", json={"employeeId": emp_id, "date": "2024-03-07"})
    assert resp.json() == {"success": True, "removed": False}
    db.expire_all()
    assert db.query(DayMarker).count() == 0


def test_daily_hours_replaces_the_day(client, db, seeded, login_as):
    db.add(TimeEntry(employee_id=seeded.employee_emp.id, entry_date=MONDAY, start_time=time(13), end_time=time(14)))
    db.commit()
    login_as("employee")
    resp = client.post("/calendar/api/daily-hours", json={"employeeId": str(seeded.employee_emp.id), "date": "2024-03-04", "hours": 7.5})
    assert resp.status_code == 200, resp.text
    assert resp.json()["entryId"]

    db.expire_all()
    entries = db.query(TimeEntry).filter(TimeEntry.entry_date == MONDAY).all()
    assert len(entries) == 1
    assert entries[0].start_time == time(9, 0)
    assert entries[0].end_time == time(16, 30)

    resp = client.post("/calendar/api/daily-hours", json={"employeeId": str(seeded.employee_emp.id), "date": "2024-03-04", "hours": 0})
    assert resp.json() == {"success": True, "entryId": None}
    db.expire_all()
    assert db.query(TimeEntry).filter(TimeEntry.entry_date == MONDAY).count() == 0


def test_daily_hours_bounds(client, seeded, login_as):
    login_as("employee")
    emp_id = str(seeded.employee_emp.id)
    resp = client.post("/calendar/api/daily-hours", json={"employeeId": emp_id, "date": "2024-03-05", "hours": 25})
    assert resp.status_code == 422
    # 09:00 + 15h passes midnight
    resp = client.post("/calendar/api/daily-hours", json={"employeeId": emp_id, "date": "2024-03-05", "hours": 15})
    assert resp.status_code == 400


def test_calendar_pages_render(client, seeded, login_as):
    login_as("employee")
    week = client.get("/calendar?date=2024-03-06")
    assert week.status_code == 200
    assert "Seeded work" in week.text
    month = client.get("/calendar/month?year=2024&month=3")
    assert month.status_code == 200
    assert client.get("/calendar/month?year=2024&month=13").status_code == 400


def test_month_navigation_crosses_year_boundary(client, login_as):
    login_as("employee")
    december = client.get("/calendar/month?year=2024&month=12")
    assert december.status_code == 200
    assert "/calendar/month?year=2024&month=11&" in december.text
    assert "/calendar/month?year=2025&month=1&" in december.text

    january = client.get("/calendar/month?year=2025&month=1")
    assert january.status_code == 200
    assert "/calendar/month?year=2024&month=12&" in january.text
    assert "/calendar/month?year=2025&month=2&" in january.text


def test_month_outside_supported_range_is_rejected(client, login_as):
    login_as("employee")
    for query in ("year=9999&month=12", "year=1&month=1", "year=2024&month=0", "year=0&month=5"):
        assert client.get(f"/calendar/month?{query}").status_code == 400, query
        assert client.get(f"/reports/monthly?{query}").status_code == 400, query
        assert client.get(f"/reports/monthly/export?{query}").status_code == 400, query

    assert client.get("/calendar/month?year=9998&month=12").status_code == 200
    assert client.get("/calendar/month?year=2&month=1").status_code == 200
    assert client.get("/calendar?date=9999-12-31").status_code == 400
    assert client.get("/calendar?date=0001-01-01").status_code == 400


def test_manager_can_view_employee_calendar(client, seeded, login_as):
    login_as("manager")
    resp = client.get(f"/calendar?date=2024-03-04&employee_id={seeded.employee_emp.id}")
    assert resp.status_code == 200
    assert "Seeded work" in resp.text
