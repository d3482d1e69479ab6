from __future__ import annotations

from sidur.services.activity import log_activity


def test_actor_comes_from_header(client):
    client.post("/api/employees", json={"first_name": "Dana", "last_name": "Levi"},
                headers={"X-Username": "מוקדן", "X-Forwarded-For": "10.0.0.7, 10.0.0.1"})
    client.post("/api/employees", json={"first_name": "Avi", "last_name": "Cohen"})

    logs = client.get("/api/activity/logs").json()["logs"]
    assert [log["username"] for log in logs] == ["Unknown", "מוקדן"]
    assert logs[1]["ip_address"] == "10.0.0.7"
    assert logs[1]["entity_type"] == "employee"


def test_logs_are_paginated(db_session, client):
    for index in range(5):
        log_activity(db_session, "tester", "update", "schedule", index)

    page = client.get("/api/activity/logs", params={"page": 2, "limit": 2}).json()
    assert page["pagination"] == {"page": 2, "limit": 2, "total_count": 5, "total_pages": 3}
    assert [log["entity_id"] for log in page["logs"]] == [2, 1]

    recent = client.get("/api/activity/recent", params={"limit": 3}).json()
    assert [log["entity_id"] for log in recent["logs"]] == [4, 3, 2]
    assert recent["pagination"] is None

    by_user = client.get("/api/activity/logs/user/tester").json()
    assert len(by_user["logs"]) == 5
    assert client.get("/api/activity/logs/entity/employee").json()["logs"] == []


def test_failed_activity_write_does_not_raise(db_session):
    # action_type is NOT NULL
    assert log_activity(db_session, "tester", None) is None
