from __future__ import annotations

from sidur.core.config import settings
from sidur.core.database import get_session_factory
from sidur.main import app
from sidur.models import ExtraMission, Role

from conftest import BrokenSession, seed_north_station


def _create_schedule(client, **overrides):
    payload = {
        "schedule_date": "2024-05-01",
        "shifts": [
            {
                "shift_name": "ערב",
                "units": [{"unit_name": "מרכז", "roles": [{"role_name": "נהג", "ambulance_number": "7"}]}],
            },
            {
                "shift_name": "בוקר",
                "start_time": "07:00",
                "end_time": "15:00",
                "units": [
                    {
                        "unit_name": "צפון",
                        "unit_type": "אטן",
                        "roles": [{"role_name": "נהג"}, {"role_name": "פראמדיק"}],
                    },
                ],
            },
        ],
    }
    payload.update(overrides)
    return client.post("/api/schedules", json=payload, headers={"X-Username": "dispatcher"})


def test_create_schedule_with_nested_structure(client):
    response = _create_schedule(client)
    assert response.status_code == 201
    created = response.json()
    assert created["station"] == "כללי"
    assert created["status"] == "draft"
    assert created["created_by"] == "dispatcher"

    tree = client.get(f"/api/schedules/{created['id']}").json()
    # morning sorts before evening regardless of input order
    assert [s["shift_name"] for s in tree["shifts"]] == ["בוקר", "ערב"]
    north = tree["shifts"][0]["units"][0]
    assert north["unit_name"] == "צפון"
    assert [r["role_name"] for r in north["roles"]] == ["נהג", "פראמדיק"]
    assert [r["role_order"] for r in north["roles"]] == [0, 1]
    assert north["roles"][0]["occupant_name"] == ""


def test_duplicate_date_and_station_conflicts(client):
    assert _create_schedule(client).status_code == 201
    response = _create_schedule(client)
    assert response.status_code == 409

    # another station on the same date is fine
    assert _create_schedule(client, station="צפון").status_code == 201


def test_list_schedules_filters_by_date(client):
    _create_schedule(client)
    _create_schedule(client, schedule_date="2024-05-02")

    all_schedules = client.get("/api/schedules").json()
    assert [s["schedule_date"] for s in all_schedules] == ["2024-05-02", "2024-05-01"]

    filtered = client.get("/api/schedules", params={"date": "2024-05-01"}).json()
    assert len(filtered) == 1


def test_missing_schedule_is_404(client):
    assert client.get("/api/schedules/999").status_code == 404
    assert client.put("/api/schedules/999", json={"status": "published"}).status_code == 404


def test_publish_and_notes(client):
    schedule_id = _create_schedule(client).json()["id"]

    response = client.put(f"/api/schedules/{schedule_id}",
                          json={"status": "published", "notes": ["לבדוק חמצן", "תדלוק"]})
    assert response.status_code == 200
    assert response.json()["status"] == "published"

    tree = client.get(f"/api/schedules/{schedule_id}").json()
    assert tree["notes"] == ["לבדוק חמצן", "תדלוק"]

    logs = client.get("/api/activity/logs/entity/schedule").json()["logs"]
    assert logs[0]["action_type"] == "publish"


def test_republishing_is_logged_as_update(client):
    schedule_id = _create_schedule(client).json()["id"]

    client.put(f"/api/schedules/{schedule_id}", json={"status": "published"})
    client.put(f"/api/schedules/{schedule_id}", json={"status": "published", "notes": ["תדלוק"]})

    logs = client.get("/api/activity/logs/entity/schedule").json()["logs"]
    assert [log["action_type"] for log in logs[:3]] == ["update", "publish", "create"]


def test_invalid_status_rejected(client):
    schedule_id = _create_schedule(client).json()["id"]
    assert client.put(f"/api/schedules/{schedule_id}", json={"status": "done"}).status_code == 422


def test_assignment_upsert_and_removal(client):
    schedule_id = _create_schedule(client).json()["id"]
    tree = client.get(f"/api/schedules/{schedule_id}").json()
    role_id = tree["shifts"][0]["units"][0]["roles"][1]["id"]

    first = client.post("/api/schedules/assignments", json={
        "schedule_id": schedule_id, "role_id": role_id, "manual_employee_name": " יוסי ",
    })
    assert first.status_code == 200
    assert first.json()["manual_employee_name"] == "יוסי"

    employee = client.post("/api/employees", json={"first_name": "Dana", "last_name": "Levi"}).json()
    second = client.post("/api/schedules/assignments", json={
        "schedule_id": schedule_id, "role_id": role_id, "employee_id": employee["id"],
    })
    assert second.status_code == 200
    # same row replaced, not a second assignment
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["manual_employee_name"] is None

    role = client.get(f"/api/schedules/{schedule_id}").json()["shifts"][0]["units"][0]["roles"][1]
    assert role["occupant_name"] == "Dana Levi"
    assert role["is_filled"]

    removed = client.delete(f"/api/schedules/assignments/{first.json()['id']}")
    assert removed.status_code == 200
    role = client.get(f"/api/schedules/{schedule_id}").json()["shifts"][0]["units"][0]["roles"][1]
    assert role["assignment"] is None


def test_assignment_requires_exactly_one_occupant(client):
    schedule_id = _create_schedule(client).json()["id"]
    role_id = client.get(f"/api/schedules/{schedule_id}").json()["shifts"][0]["units"][0]["roles"][0]["id"]

    neither = client.post("/api/schedules/assignments", json={"schedule_id": schedule_id, "role_id": role_id})
    assert neither.status_code == 400

    blank = client.post("/api/schedules/assignments", json={
        "schedule_id": schedule_id, "role_id": role_id, "manual_employee_name": "   ",
    })
    assert blank.status_code == 400

    both = client.post("/api/schedules/assignments", json={
        "schedule_id": schedule_id, "role_id": role_id, "employee_id": 1, "manual_employee_name": "x",
    })
    assert both.status_code == 400


def test_assignment_to_role_of_another_schedule_is_rejected(client):
    first_id = _create_schedule(client).json()["id"]
    second_id = _create_schedule(client, schedule_date="2024-05-02").json()["id"]
    foreign_role = client.get(f"/api/schedules/{second_id}").json()["shifts"][0]["units"][0]["roles"][0]["id"]

    response = client.post("/api/schedules/assignments", json={
        "schedule_id": first_id, "role_id": foreign_role, "manual_employee_name": "דנה",
    })
    assert response.status_code == 400


def test_shared_ambulance_number_fans_out_to_unit(client):
    schedule_id = _create_schedule(client).json()["id"]
    north = client.get(f"/api/schedules/{schedule_id}").json()["shifts"][0]["units"][0]
    role_id = north["roles"][0]["id"]

    response = client.put(f"/api/schedules/roles/{role_id}", json={"ambulance_number": "101"})
    assert response.status_code == 200
    roles = response.json()
    assert isinstance(roles, list)
    assert [r["ambulance_number"] for r in roles] == ["101", "101"]


def test_plain_unit_updates_only_one_role(client):
    schedule_id = _create_schedule(client).json()["id"]
    center = client.get(f"/api/schedules/{schedule_id}").json()["shifts"][1]["units"][0]
    role_id = center["roles"][0]["id"]

    response = client.put(f"/api/schedules/roles/{role_id}", json={"role_name": "נהג בכיר", "ambulance_number": "8"})
    assert response.status_code == 200
    assert response.json()["role_name"] == "נהג בכיר"
    assert response.json()["ambulance_number"] == "8"

    assert client.put(f"/api/schedules/roles/{role_id}", json={}).status_code == 400


def test_structure_editing(client):
    schedule_id = _create_schedule(client).json()["id"]

    shift = client.post(f"/api/schedules/{schedule_id}/shifts", json={"shift_name": "לילה"})
    assert shift.status_code == 201
    unit = client.post(f"/api/schedules/shifts/{shift.json()['id']}/units", json={"unit_name": "דרום"})
    assert unit.status_code == 201
    role = client.post(f"/api/schedules/units/{unit.json()['id']}/roles", json={"role_name": "נהג"})
    assert role.status_code == 201

    tree = client.get(f"/api/schedules/{schedule_id}").json()
    assert tree["shifts"][0]["shift_name"] == "לילה"
    assert tree["shifts"][0]["units"][0]["unit_name"] == "דרום"

    renamed = client.put(f"/api/schedules/units/{unit.json()['id']}", json={"unit_name": "דרום 2"})
    assert renamed.json()["unit_name"] == "דרום 2"
    assert client.put(f"/api/schedules/units/{unit.json()['id']}", json={}).status_code == 400

    assert client.delete(f"/api/schedules/roles/{role.json()['id']}").status_code == 200
    assert client.delete(f"/api/schedules/units/{unit.json()['id']}").status_code == 200
    assert client.delete(f"/api/schedules/shifts/{shift.json()['id']}").status_code == 200
    assert client.delete(f"/api/schedules/shifts/{shift.json()['id']}").status_code == 404

    tree = client.get(f"/api/schedules/{schedule_id}").json()
    assert [s["shift_name"] for s in tree["shifts"]] == ["בוקר", "ערב"]


def test_extra_missions_and_ambulances(client):
    schedule_id = _create_schedule(client).json()["id"]

    mission = client.post(f"/api/schedules/{schedule_id}/extra-missions",
                          json={"hours": "10:00-12:00", "location": "נמל"})
    assert mission.status_code == 201
    updated = client.put(f"/api/schedules/extra-missions/{mission.json()['id']}", json={"vehicle": "3"})
    assert updated.json()["vehicle"] == "3"
    assert updated.json()["location"] == "נמל"

    ambulance = client.post(f"/api/schedules/{schedule_id}/extra-ambulances",
                            json={"working_hours": "08:00-16:00", "ambulance_number": "880"})
    assert ambulance.status_code == 201

    assert len(client.get(f"/api/schedules/{schedule_id}/extra-missions").json()) == 1
    assert len(client.get(f"/api/schedules/{schedule_id}/extra-ambulances").json()) == 1

    assert client.delete(f"/api/schedules/extra-ambulances/{ambulance.json()['id']}").status_code == 200
    assert client.get(f"/api/schedules/{schedule_id}/extra-ambulances").json() == []


def test_delete_schedule_cascades(client, session_factory):
    schedule_id = _create_schedule(client).json()["id"]
    client.post(f"/api/schedules/{schedule_id}/extra-missions", json={"location": "נמל"})

    assert client.delete(f"/api/schedules/{schedule_id}").status_code == 200
    assert client.get(f"/api/schedules/{schedule_id}").status_code == 404

    session = session_factory()
    try:
        assert session.query(Role).count() == 0
        assert session.query(ExtraMission).count() == 0
    finally:
        session.close()


def test_export_endpoints(client, session_factory):
    session = session_factory()
    try:
        schedule_id = seed_north_station(session).id
    finally:
        session.close()

    grid = client.get(f"/api/export/grid/{schedule_id}").json()
    [station] = grid["stations"]
    assert station["station_name"] == "North Station"
    morning = [row["cells"][1] for row in station["rows"]]
    assert morning[0]["ambulance"] == {"value": "55", "rowspan": 2}
    assert morning[1]["unfilled"] is True

    excel = client.get(f"/api/export/excel/{schedule_id}")
    assert excel.status_code == 200
    assert "sidur-2024-05-01.xlsx" in excel.headers["content-disposition"]
    assert excel.content[:2] == b"PK"

    html = client.get(f"/api/export/html/{schedule_id}")
    assert html.status_code == 200
    assert "text/html" in html.headers["content-type"]
    assert "Dana Levi" in html.text

    pdf = client.get(f"/api/export/pdf/{schedule_id}")
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    assert client.get("/api/export/excel/999").status_code == 404


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/api/ws/status").json()["online_clients"] == 0


def test_database_failure_is_503(client):
    app.dependency_overrides[get_session_factory] = lambda: BrokenSession

    response = client.get("/api/export/grid/1")
    assert response.status_code == 503
    assert response.json()["detail"] == "שגיאה בגישה למסד הנתונים, נסה שוב"
    assert client.get("/api/schedules/1").status_code == 503


def test_pdf_export_without_hebrew_font_is_500(client, session_factory, monkeypatch, tmp_path):
    session = session_factory()
    try:
        schedule_id = seed_north_station(session).id
    finally:
        session.close()
    monkeypatch.setattr(settings, "PDF_FONT_PATH", str(tmp_path / "missing.ttf"))

    response = client.get(f"/api/export/pdf/{schedule_id}")
    assert response.status_code == 500
    assert response.json()["detail"] == "שגיאה ביצירת קובץ הייצוא"
