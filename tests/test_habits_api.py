from datetime import date, datetime, timedelta

import pytest

from models import Habit, User, db


def create(client, headers, **overrides):
    payload = {
        "description": "Take the bus",
        "category": "transport",
        "carbonFootprint": 2.5,
        "sustainableAlternative": "Cycle instead",
    }
    payload.update(overrides)
    return client.post("/api/habits", json=payload, headers=headers)


def test_create_and_get(client, user, auth_headers):
    resp = create(client, auth_headers)
    habit = resp.get_json()

    assert resp.status_code == 201
    assert habit["userId"] == user["id"]
    assert habit["isCompleted"] is False
    assert habit["completedDate"] is None

    resp = client.get(f"/api/habits/{habit['id']}", headers=auth_headers)
    assert resp.get_json()["description"] == "Take the bus"


@pytest.mark.parametrize("overrides", [
    {"description": "  "},
    {"category": "space"},
    {"carbonFootprint": -1},
    {"carbonFootprint": "a lot"},
    {"date": "yesterday"},
    {"description": 5},
    {"sustainableAlternative": ["walk"]},
])
def test_create_validation(client, auth_headers, overrides):
    assert create(client, auth_headers, **overrides).status_code == 400


def test_create_rejects_non_object_body(client, auth_headers):
    resp = client.post("/api/habits", json=["Take the bus"], headers=auth_headers)

    assert resp.status_code == 400
    assert resp.get_json() == {"message": "Request body must be a JSON object"}


def test_update_rejects_non_string_description(client, auth_headers):
    habit = create(client, auth_headers).get_json()

    resp = client.put(f"/api/habits/{habit['id']}", json={"description": 5}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json() == {"message": "description must be a string"}


def test_create_for_unknown_user(client, auth_headers):
    assert create(client, auth_headers, userId=999).status_code == 404


def test_create_accepts_client_date(client, auth_headers):
    resp = create(client, auth_headers, date="2024-03-01T10:00:00")
    assert resp.get_json()["date"] == "2024-03-01T10:00:00"


def test_list_newest_first(client, user, auth_headers):
    create(client, auth_headers, description="old", date="2024-01-01T09:00:00")
    create(client, auth_headers, description="new", date="2024-02-01T09:00:00")

    resp = client.get(f"/api/habits?userId={user['id']}", headers=auth_headers)
    assert [h["description"] for h in resp.get_json()] == ["new", "old"]


def test_update_only_editable_fields(client, auth_headers):
    habit = create(client, auth_headers).get_json()

    resp = client.put(f"/api/habits/{habit['id']}", json={
        "description": "Take the train",
        "carbonFootprint": 3,
        "isCompleted": True,
    }, headers=auth_headers)
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["description"] == "Take the train"
    assert body["carbonFootprint"] == 3.0
    assert body["category"] == "transport"
    assert body["isCompleted"] is False


def test_delete(client, auth_headers):
    habit = create(client, auth_headers).get_json()

    resp = client.delete(f"/api/habits/{habit['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert client.get(f"/api/habits/{habit['id']}", headers=auth_headers).status_code == 404
    assert client.delete(f"/api/habits/{habit['id']}", headers=auth_headers).status_code == 404


def test_complete_awards_points_and_badge(client, user, auth_headers):
    habit = create(client, auth_headers).get_json()

    resp = client.post(f"/api/habits/{habit['id']}/complete", headers=auth_headers)
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["habit"]["isCompleted"] is True
    assert body["habit"]["completedDate"] is not None
    assert body["habit"]["pointsEarned"] == 10
    assert body["greenPoints"] == 10
    assert body["newBadges"] == ["First Step"]

    stored = db.session.get(User, user["id"])
    assert stored.badges == ["First Step"]
    assert stored.sustainabilityScore == 2

    resp = client.post(f"/api/habits/{habit['id']}/complete", headers=auth_headers)
    assert resp.status_code == 400


def test_second_completion_has_no_new_badge(client, auth_headers):
    first = create(client, auth_headers).get_json()
    second = create(client, auth_headers, description="Reusable cup").get_json()

    client.post(f"/api/habits/{first['id']}/complete", headers=auth_headers)
    resp = client.post(f"/api/habits/{second['id']}/complete", headers=auth_headers)

    assert resp.get_json()["newBadges"] == []
    assert resp.get_json()["greenPoints"] == 20


def test_by_category(client, user, auth_headers):
    create(client, auth_headers)
    create(client, auth_headers, description="Compost", category="waste")

    resp = client.get(f"/api/habits/categories/waste?userId={user['id']}", headers=auth_headers)
    assert [h["description"] for h in resp.get_json()] == ["Compost"]

    resp = client.get("/api/habits/categories/space", headers=auth_headers)
    assert resp.status_code == 400


def test_weekly_summary(client, user, auth_headers):
    now = datetime.now()
    db.session.add_all([
        Habit(userId=user["id"], description="Bus", category="transport", carbonFootprint=1.25,
              isCompleted=True, completedDate=now, date=now),
        Habit(userId=user["id"], description="Veg", category="diet", carbonFootprint=2.0,
              date=now - timedelta(days=2)),
        Habit(userId=user["id"], description="Ancient", category="diet", carbonFootprint=9.0,
              isCompleted=True, completedDate=now - timedelta(days=30),
              date=now - timedelta(days=30)),
    ])
    db.session.commit()

    resp = client.get("/api/habits/summary/weekly", headers=auth_headers)
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["endDate"] == date.today().isoformat()
    assert body["totalHabits"] == 2
    assert body["completedHabits"] == 1
    assert body["carbonSaved"] == 1.3
    assert body["byCategory"]["transport"] == 1
    assert body["byCategory"]["diet"] == 1
    assert body["byCategory"]["water"] == 0
    assert len(body["dailyCompletions"]) == 7
    assert body["dailyCompletions"][-1] == {"date": date.today().isoformat(), "count": 1}
