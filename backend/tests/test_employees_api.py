from __future__ import annotations

from sidur.models import Assignment

from conftest import seed_north_station


def test_employee_crud(client):
    created = client.post("/api/employees", json={
        "first_name": " Dana ", "last_name": "Levi", "employee_id": "1001", "station": "צפון",
    })
    assert created.status_code == 201
    employee = created.json()
    assert employee["first_name"] == "Dana"

    assert client.get(f"/api/employees/{employee['id']}").json()["employee_id"] == "1001"

    updated = client.put(f"/api/employees/{employee['id']}", json={"phone": "050-0000000"})
    assert updated.status_code == 200
    assert updated.json()["phone"] == "050-0000000"
    assert updated.json()["last_name"] == "Levi"

    assert client.put(f"/api/employees/{employee['id']}", json={"last_name": "  "}).status_code == 400

    assert client.delete(f"/api/employees/{employee['id']}").status_code == 200
    assert client.get(f"/api/employees/{employee['id']}").status_code == 404


def test_names_are_required(client):
    assert client.post("/api/employees", json={"first_name": "", "last_name": "Levi"}).status_code == 422
    assert client.post("/api/employees", json={"first_name": "Dana"}).status_code == 422


def test_list_ordered_by_last_name(client):
    for first, last in [("Noa", "Cohen"), ("Avi", "Levi"), ("Dana", "Avraham"), ("Ami", "Cohen")]:
        client.post("/api/employees", json={"first_name": first, "last_name": last})

    names = [(e["last_name"], e["first_name"]) for e in client.get("/api/employees").json()]
    assert names == [("Avraham", "Dana"), ("Cohen", "Ami"), ("Cohen", "Noa"), ("Levi", "Avi")]


def test_bulk_import_skips_bad_rows(client):
    response = client.post("/api/employees/bulk-import", json={"employees": [
        {"first_name": "Dana", "last_name": "Levi"},
        {"first_name": "", "last_name": "Nobody"},
        {"last_name": "Missing"},
        {"first_name": "Yossi", "last_name": "Cohen", "position": "נהג"},
    ]})
    assert response.status_code == 200
    result = response.json()
    assert result["imported"] == 2
    assert result["failed"] == 2
    assert [e["last_name"] for e in result["employees"]] == ["Levi", "Cohen"]

    logs = client.get("/api/activity/logs/entity/employee").json()["logs"]
    assert logs[0]["action_type"] == "import"
    assert logs[0]["details"] == {"imported": 2, "failed": 2}


def test_deleting_employee_keeps_assignment(client, session_factory):
    session = session_factory()
    try:
        schedule_id = seed_north_station(session).id
        employee_id = session.query(Assignment).first().employee_id
    finally:
        session.close()

    assert client.delete(f"/api/employees/{employee_id}").status_code == 200

    role = client.get(f"/api/schedules/{schedule_id}").json()["shifts"][0]["units"][0]["roles"][0]
    assert role["assignment"] is not None
    assert role["assignment"]["employee_id"] is None
    assert role["is_filled"] is False
